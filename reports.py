"""
Aggregation Engine

Runs the pipelines from ``pipelines`` against an injected MongoDB database
and shapes the rows into API-ready dictionaries. Reports never write; the
two toggles are the only operations here that do.
"""

import math
import re
from typing import Any, Dict, Iterable, List, NamedTuple, Optional

import structlog
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError, PyMongoError

import config
import pipelines
from database import (
    COMMENTS,
    LIKE_SUBJECTS,
    LIKES,
    PLAYLISTS,
    SUBSCRIPTIONS,
    TWEETS,
    USERS,
    VIDEOS,
    get_documents,
    utcnow,
)
from errors import InternalError, NotFoundError, ValidationError
from helpers import to_str_id
from schemas import ChannelStats, Video

logger = structlog.get_logger()

ADDED = "added"
REMOVED = "removed"

# Any stored video field; operator-like or dotted names never match
SORTABLE_VIDEO_FIELDS = ("_id", *Video.model_fields, "createdAt", "updatedAt")


class ToggleResult(NamedTuple):
    state: str
    document: Optional[Dict[str, Any]]

    @property
    def present(self) -> bool:
        return self.state == ADDED


# -------------------- Result shaping --------------------

def pick(document: Optional[Dict[str, Any]], *fields: str, **renamed: str) -> Optional[Dict[str, Any]]:
    """Copy ``fields`` (and ``renamed`` as new_name=source_field) out of a document."""
    if not document:
        return None
    d = {}
    if "_id" in document:
        d["id"] = document["_id"]
    for field in fields:
        d[field] = document.get(field)
    for new_name, source in renamed.items():
        d[new_name] = document.get(source)
    return d


def date_parts(value) -> Optional[Dict[str, int]]:
    if value is None:
        return None
    return {"year": value.year, "month": value.month, "day": value.day}


def in_playlist_order(videos: Iterable[Dict[str, Any]], order: List[ObjectId]) -> List[Dict[str, Any]]:
    position = {}
    for index, video_id in enumerate(order or []):
        position.setdefault(video_id, index)
    return sorted(videos, key=lambda video: position.get(video["_id"], len(position)))


def playlist_summary(row: Dict[str, Any]) -> Dict[str, Any]:
    videos = in_playlist_order(row.get("resolvedVideos") or [], row.get("videos"))
    return to_str_id({
        "_id": row["_id"],
        "name": row.get("name"),
        "description": row.get("description"),
        "createdAt": row.get("createdAt"),
        "updatedAt": row.get("updatedAt"),
        "totalVideos": row.get("totalVideos") or 0,
        "totalViews": row.get("totalViews") or 0,
        "owner": pick(row.get("ownerDetail"), "username", "fullName", avatarUrl="avatar"),
        "videos": [
            pick(video, "videoFile", "thumbnail", "title", "description", "duration", "createdAt", "views")
            for video in videos
        ],
    })


def user_summary(user: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    return pick(user, "username", "fullName", "avatar")


# -------------------- Engine --------------------

class AggregationEngine:
    def __init__(self, db: Database):
        self.db = db

    def _aggregate(self, collection: str, pipeline: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        try:
            return list(self.db[collection].aggregate(pipeline))
        except PyMongoError as exc:
            logger.error("Aggregation failed", collection=collection, error=str(exc))
            raise InternalError("Failed to build report") from exc

    def _require(self, collection: str, criteria: Dict[str, Any], message: str) -> Dict[str, Any]:
        document = self.db[collection].find_one(criteria)
        if not document:
            raise NotFoundError(message)
        return document

    def _toggle(self, collection: str, criteria: Dict[str, Any]) -> ToggleResult:
        """Remove the edge matching ``criteria`` if present, else create it.

        Deletion and creation are each a single atomic store operation; the
        upsert together with the unique indexes keeps at most one edge per
        key even when two callers race.
        """
        removed = self.db[collection].find_one_and_delete(criteria)
        if removed is not None:
            return ToggleResult(REMOVED, removed)
        now = utcnow()
        try:
            created = self.db[collection].find_one_and_update(
                criteria,
                {"$setOnInsert": {"createdAt": now, "updatedAt": now}},
                upsert=True,
                return_document=ReturnDocument.AFTER,
            )
        except DuplicateKeyError:
            created = self.db[collection].find_one(criteria)
        return ToggleResult(ADDED, created)

    # ---- dashboard ----

    def channel_stats(self, owner_id: ObjectId) -> ChannelStats:
        subscribers = self._aggregate(SUBSCRIPTIONS, pipelines.subscriber_count_pipeline(owner_id))
        videos = self._aggregate(VIDEOS, pipelines.channel_video_stats_pipeline(owner_id))
        subscriber_row = subscribers[0] if subscribers else {}
        video_row = videos[0] if videos else {}
        return ChannelStats(
            totalSubscribers=subscriber_row.get("subscribersCount") or 0,
            totalLikes=video_row.get("totalLikes") or 0,
            totalViews=video_row.get("totalViews") or 0,
            totalVideos=video_row.get("totalVideos") or 0,
        )

    def channel_videos(self, owner_id: ObjectId) -> List[Dict[str, Any]]:
        rows = self._aggregate(VIDEOS, pipelines.channel_videos_pipeline(owner_id))
        videos = []
        for row in rows:
            video = pick(row, "videoFile", "thumbnail", "title", "description", "isPublished")
            video["createdAt"] = date_parts(row.get("createdAt"))
            video["likesCount"] = row.get("likesCount") or 0
            videos.append(video)
        return to_str_id(videos)

    # ---- likes ----

    def toggle_like(self, kind: str, subject_id: Optional[ObjectId], user_id: ObjectId) -> ToggleResult:
        if kind not in LIKE_SUBJECTS:
            raise ValidationError(f"Cannot like a {kind}")
        if not subject_id:
            raise ValidationError(f"No such {kind}")
        self._require(
            pipelines.like_subject_collection(kind),
            {"_id": subject_id},
            f"{kind.capitalize()} not found",
        )
        result = self._toggle(LIKES, {kind: subject_id, "likedBy": user_id})
        logger.info("Like toggled", subject=kind, subject_id=str(subject_id), user_id=str(user_id), state=result.state)
        return result

    def liked_videos(self, user_id: ObjectId) -> List[Dict[str, Any]]:
        rows = self._aggregate(LIKES, pipelines.liked_videos_pipeline(user_id))
        return to_str_id([
            {
                "_id": row["_id"],
                "video": row.get("video"),
                "videoDetail": pick(row.get("videoDetail"), "videoFile", "thumbnail"),
                "userDetail": pick(row.get("userDetail"), "username"),
            }
            for row in rows
        ])

    # ---- playlists ----

    def user_playlists(self, user_id: ObjectId) -> List[Dict[str, Any]]:
        self._require(USERS, {"_id": user_id}, "No such user exists")
        rows = self._aggregate(PLAYLISTS, pipelines.user_playlists_pipeline(user_id))
        return [playlist_summary(row) for row in rows]

    def playlist_by_id(self, playlist_id: ObjectId) -> Dict[str, Any]:
        rows = self._aggregate(PLAYLISTS, pipelines.playlist_by_id_pipeline(playlist_id))
        if not rows:
            raise NotFoundError("Playlist not found")
        return playlist_summary(rows[0])

    # ---- tweets ----

    def user_tweets(self, owner_id: ObjectId) -> Dict[str, Any]:
        """All tweets of a user plus one denormalised summary holding every
        tweet body and the resolved author."""
        user = self._require(USERS, {"_id": owner_id}, "No such user exists")
        tweets = get_documents(self.db, TWEETS, {"owner": owner_id}, sort=[("createdAt", -1), ("_id", -1)])
        rows = self._aggregate(TWEETS, pipelines.user_tweets_summary_pipeline(owner_id))
        # Grouping zero tweets may still yield one row with empty content
        summary = {
            "content": (rows[0].get("content") if rows else None) or [],
            "user": {field: user.get(field) for field in ("fullName", "avatar", "email", "username")},
        }
        return to_str_id({"tweets": tweets, "summary": summary})

    # ---- videos ----

    def video_listing(
        self,
        owner_id: Optional[ObjectId] = None,
        query: Optional[str] = None,
        sort_by: Optional[str] = None,
        sort_type: Optional[str] = None,
        page: int = config.DEFAULT_PAGE,
        limit: int = config.DEFAULT_PAGE_LIMIT,
    ) -> Dict[str, Any]:
        if page < 1:
            raise ValidationError("page must be at least 1")
        if limit < 1:
            raise ValidationError("limit must be at least 1")
        limit = min(limit, config.MAX_PAGE_LIMIT)
        if sort_by and sort_by not in SORTABLE_VIDEO_FIELDS:
            raise ValidationError(f"Cannot sort videos by {sort_by}")

        criteria: Dict[str, Any] = {}
        if owner_id:
            criteria["owner"] = owner_id
        if query and query.strip():
            regex = {"$regex": re.escape(query.strip()), "$options": "i"}
            criteria["$or"] = [{"title": regex}, {"description": regex}]

        direction = -1 if sort_type == "desc" else 1
        total = self.db[VIDEOS].count_documents(criteria)
        rows = self._aggregate(
            VIDEOS,
            pipelines.video_listing_pipeline(criteria, sort_by, direction, (page - 1) * limit, limit),
        )
        return {
            "videos": to_str_id(rows),
            "page": page,
            "limit": limit,
            "totalVideos": total,
            "totalPages": math.ceil(total / limit) if total else 0,
        }

    # ---- comments ----

    def video_comments(self, video_id: ObjectId, page: int, limit: int) -> List[Dict[str, Any]]:
        if page < 1 or limit < 1:
            raise ValidationError("page and limit must be at least 1")
        limit = min(limit, config.MAX_PAGE_LIMIT)
        self._require(VIDEOS, {"_id": video_id}, "Video not found")
        rows = self._aggregate(COMMENTS, pipelines.comments_pipeline(video_id, (page - 1) * limit, limit))
        comments = []
        for row in rows:
            comment = pick(row, "video", "content", "createdAt", "updatedAt")
            comment["owner"] = user_summary(row.get("ownerDetail"))
            comments.append(comment)
        return to_str_id(comments)

    # ---- subscriptions ----

    def toggle_subscription(self, channel_id: ObjectId, subscriber_id: ObjectId) -> Dict[str, Any]:
        if str(channel_id) == str(subscriber_id):
            raise ValidationError("You cannot subscribe to your own channel")
        self._require(USERS, {"_id": channel_id}, "Channel not found")
        result = self._toggle(SUBSCRIPTIONS, {"subscriber": subscriber_id, "channel": channel_id})
        subscribers = self.db[SUBSCRIPTIONS].count_documents({"channel": channel_id})
        logger.info(
            "Subscription toggled",
            channel_id=str(channel_id),
            subscriber_id=str(subscriber_id),
            state=result.state,
        )
        return {
            "channelId": str(channel_id),
            "subscribed": result.present,
            "subscribersCount": subscribers,
        }

    def _subscription_edges(self, criteria: Dict[str, Any], other_end: str) -> List[Dict[str, Any]]:
        rows = self._aggregate(SUBSCRIPTIONS, pipelines.subscription_edges_pipeline(criteria, other_end))
        users = []
        for row in rows:
            user = user_summary(row.get("user"))
            user["subscribedAt"] = row.get("createdAt")
            users.append(user)
        return to_str_id(users)

    def channel_subscribers(self, channel_id: ObjectId) -> List[Dict[str, Any]]:
        self._require(USERS, {"_id": channel_id}, "Channel not found")
        return self._subscription_edges({"channel": channel_id}, "subscriber")

    def subscribed_channels(self, subscriber_id: ObjectId) -> List[Dict[str, Any]]:
        self._require(USERS, {"_id": subscriber_id}, "No such user exists")
        return self._subscription_edges({"subscriber": subscriber_id}, "channel")

    # ---- users ----

    def channel_profile(self, username: str, viewer_id: Optional[ObjectId] = None) -> Dict[str, Any]:
        rows = self._aggregate(USERS, pipelines.channel_profile_pipeline(username.lower()))
        if not rows:
            raise NotFoundError("Channel does not exist")
        profile = rows[0]
        profile["isSubscribed"] = bool(
            viewer_id
            and self.db[SUBSCRIPTIONS].find_one({"channel": profile["_id"], "subscriber": viewer_id})
        )
        return to_str_id(profile)
