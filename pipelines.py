"""
Aggregation pipelines

Stage builders for MongoDB's aggregation framework and the pipelines behind
every report. Builders only return plain lists/dicts; running them is the job
of ``reports.AggregationEngine``.
"""

from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId

from database import COMMENTS, LIKES, SUBSCRIPTIONS, TWEETS, USERS, VIDEOS

Stage = Dict[str, Any]
Pipeline = List[Stage]


# -------------------- Stage primitives --------------------

def match(criteria: Dict[str, Any]) -> Stage:
    return {"$match": criteria}


def lookup(from_collection: str, local_field: str, foreign_field: str, as_field: str) -> Stage:
    """Equi-join: attach every ``from_collection`` document whose
    ``foreign_field`` equals ``local_field`` (or one of its elements when
    it is an array) as the array ``as_field``."""
    return {
        "$lookup": {
            "from": from_collection,
            "localField": local_field,
            "foreignField": foreign_field,
            "as": as_field,
        }
    }


def unwind(field: str, keep_empty: bool = False) -> Stage:
    return {"$unwind": {"path": f"${field}", "preserveNullAndEmptyArrays": keep_empty}}


def add_fields(**fields: Any) -> Stage:
    return {"$addFields": fields}


def project(*include: str, **fields: Any) -> Stage:
    projection = {field: 1 for field in include}
    projection.update(fields)
    return {"$project": projection}


def group(key: Any = None, **accumulators: Any) -> Stage:
    return {"$group": {"_id": key, **accumulators}}


def sort(*keys: Tuple[str, int]) -> Stage:
    return {"$sort": dict(keys)}


def skip(count: int) -> Stage:
    return {"$skip": count}


def limit(count: int) -> Stage:
    return {"$limit": count}


# -------------------- Roll-up expressions --------------------

def count() -> Dict[str, Any]:
    return {"$sum": 1}


def sum_of(path: str) -> Dict[str, Any]:
    """Sum of a numeric field; over an array path this sums its elements."""
    return {"$sum": f"${path}"}


def size_of(field: str) -> Dict[str, Any]:
    return {"$size": f"${field}"}


def push(path: str) -> Dict[str, Any]:
    return {"$push": f"${path}"}


def first(path: str) -> Dict[str, Any]:
    return {"$first": f"${path}"}


def published_only(field: str) -> Dict[str, Any]:
    return {
        "$filter": {
            "input": f"${field}",
            "as": "video",
            "cond": {"$eq": ["$$video.isPublished", True]},
        }
    }


# -------------------- Report pipelines --------------------

def subscriber_count_pipeline(channel_id: ObjectId) -> Pipeline:
    return [
        match({"channel": channel_id}),
        group(None, subscribersCount=count()),
    ]


def channel_video_stats_pipeline(owner_id: ObjectId) -> Pipeline:
    return [
        match({"owner": owner_id}),
        lookup(LIKES, "_id", "video", "likes"),
        add_fields(likesCount=size_of("likes")),
        group(
            None,
            totalLikes=sum_of("likesCount"),
            totalViews=sum_of("views"),
            totalVideos=count(),
        ),
    ]


def channel_videos_pipeline(owner_id: ObjectId) -> Pipeline:
    return [
        match({"owner": owner_id}),
        lookup(LIKES, "_id", "video", "likes"),
        add_fields(likesCount=size_of("likes")),
        sort(("createdAt", -1), ("_id", -1)),
        project("videoFile", "thumbnail", "title", "description", "createdAt", "isPublished", "likesCount"),
    ]


def liked_videos_pipeline(user_id: ObjectId) -> Pipeline:
    return [
        match({"likedBy": user_id, "video": {"$exists": True, "$ne": None}}),
        lookup(VIDEOS, "video", "_id", "videoDetail"),
        unwind("videoDetail"),
        lookup(USERS, "likedBy", "_id", "userDetail"),
        unwind("userDetail"),
        sort(("createdAt", -1), ("_id", -1)),
        project("video", "videoDetail", "userDetail", "createdAt"),
    ]


def playlist_pipeline(criteria: Dict[str, Any], published: bool = False) -> Pipeline:
    """Playlists matching ``criteria`` with their videos and owner resolved and
    per-playlist totals computed over the resolved (optionally published-only)
    videos."""
    pipeline = [
        match(criteria),
        lookup(VIDEOS, "videos", "_id", "resolvedVideos"),
    ]
    if published:
        pipeline.append(add_fields(resolvedVideos=published_only("resolvedVideos")))
    pipeline += [
        lookup(USERS, "owner", "_id", "ownerDetail"),
        unwind("ownerDetail", keep_empty=True),
        add_fields(
            totalVideos=size_of("resolvedVideos"),
            totalViews=sum_of("resolvedVideos.views"),
        ),
        sort(("createdAt", -1), ("_id", -1)),
        project(
            "name",
            "description",
            "createdAt",
            "updatedAt",
            "totalVideos",
            "totalViews",
            "videos",
            "resolvedVideos",
            "ownerDetail",
        ),
    ]
    return pipeline


def user_playlists_pipeline(owner_id: ObjectId) -> Pipeline:
    return playlist_pipeline({"owner": owner_id})


def playlist_by_id_pipeline(playlist_id: ObjectId) -> Pipeline:
    return playlist_pipeline({"_id": playlist_id}, published=True)


def user_tweets_summary_pipeline(owner_id: ObjectId) -> Pipeline:
    return [
        match({"owner": owner_id}),
        sort(("createdAt", 1), ("_id", 1)),
        lookup(USERS, "owner", "_id", "author"),
        unwind("author"),
        group(None, content=push("content"), user=first("author")),
        project("content", "user", _id=0),
    ]


def comments_pipeline(video_id: ObjectId, offset: int, size: int) -> Pipeline:
    return [
        match({"video": video_id}),
        sort(("createdAt", -1), ("_id", -1)),
        skip(offset),
        limit(size),
        lookup(USERS, "owner", "_id", "ownerDetail"),
        unwind("ownerDetail", keep_empty=True),
    ]


def subscription_edges_pipeline(criteria: Dict[str, Any], other_end: str) -> Pipeline:
    """Subscription edges matching ``criteria`` joined to the user at
    ``other_end`` (``subscriber`` or ``channel``)."""
    return [
        match(criteria),
        lookup(USERS, other_end, "_id", "user"),
        unwind("user"),
        sort(("createdAt", -1), ("_id", -1)),
        project("user", "createdAt"),
    ]


def video_listing_pipeline(
    criteria: Dict[str, Any],
    sort_by: Optional[str],
    direction: int,
    offset: int,
    size: int,
) -> Pipeline:
    keys = [(sort_by, direction)] if sort_by else []
    keys.append(("_id", direction if sort_by else 1))
    return [
        match(criteria),
        sort(*keys),
        skip(offset),
        limit(size),
    ]


def like_subject_collection(kind: str) -> str:
    return {"video": VIDEOS, "comment": COMMENTS, "tweet": TWEETS}[kind]


def channel_profile_pipeline(username: str) -> Pipeline:
    return [
        match({"username": username}),
        lookup(SUBSCRIPTIONS, "_id", "channel", "subscribers"),
        lookup(SUBSCRIPTIONS, "_id", "subscriber", "subscribedTo"),
        add_fields(
            subscribersCount=size_of("subscribers"),
            channelsSubscribedToCount=size_of("subscribedTo"),
        ),
        project(
            "username",
            "fullName",
            "email",
            "avatar",
            "coverImage",
            "createdAt",
            "subscribersCount",
            "channelsSubscribedToCount",
        ),
    ]
