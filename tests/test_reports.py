from __future__ import annotations

from datetime import datetime

import pytest
from bson import ObjectId

import config
from database import LIKES, SUBSCRIPTIONS
from errors import InternalError, NotFoundError, ValidationError
from reports import ADDED, REMOVED


# -------------------- ChannelStats --------------------

def test_channel_stats_empty_channel_is_all_zero(engine, factory) -> None:
    owner = factory.user("quiet")
    stats = engine.channel_stats(owner["_id"])
    assert stats.model_dump() == {"totalSubscribers": 0, "totalLikes": 0, "totalViews": 0, "totalVideos": 0}


def test_channel_stats_rolls_up_videos_likes_and_subscribers(engine, factory) -> None:
    owner = factory.user("owner")
    fans = [factory.user(f"fan{i}") for i in range(4)]
    videos = [factory.video(owner, views=views) for views in (10, 20, 5)]
    factory.like(fans[0], video=videos[0]["_id"])
    factory.like(fans[1], video=videos[2]["_id"])
    for fan in fans:
        factory.subscribe(fan, owner)

    # Noise that must not be counted
    other = factory.user("other")
    other_video = factory.video(other, views=100)
    factory.like(fans[0], video=other_video["_id"])
    factory.like(fans[0], tweet=factory.tweet(owner, "hi")["_id"])
    factory.subscribe(owner, other)

    stats = engine.channel_stats(owner["_id"])
    assert stats.model_dump() == {"totalSubscribers": 4, "totalLikes": 2, "totalViews": 35, "totalVideos": 3}


def test_channel_stats_surfaces_store_failure_as_internal_error(engine, factory, monkeypatch) -> None:
    from pymongo.errors import OperationFailure

    def broken(*args, **kwargs):
        raise OperationFailure("boom")

    monkeypatch.setattr(type(engine.db[SUBSCRIPTIONS]), "aggregate", broken)
    with pytest.raises(InternalError):
        engine.channel_stats(ObjectId())


# -------------------- ChannelVideos --------------------

def test_channel_videos_newest_first_with_like_counts(engine, factory) -> None:
    owner = factory.user("owner")
    fan = factory.user("fan")
    old = factory.video(owner, title="old", createdAt=datetime(2023, 5, 17, 8, 30))
    new = factory.video(owner, title="new", published=False, createdAt=datetime(2024, 2, 29, 23, 0))
    factory.like(fan, video=old["_id"])
    factory.like(owner, video=old["_id"])
    factory.video(factory.user("stranger"), title="not mine")

    videos = engine.channel_videos(owner["_id"])

    assert [video["title"] for video in videos] == ["new", "old"]
    assert videos[0]["id"] == str(new["_id"])
    assert videos[0]["isPublished"] is False
    assert videos[0]["likesCount"] == 0
    assert videos[1]["likesCount"] == 2
    assert videos[1]["createdAt"] == {"year": 2023, "month": 5, "day": 17}
    assert set(videos[1]) == {
        "id",
        "videoFile",
        "thumbnail",
        "title",
        "description",
        "createdAt",
        "isPublished",
        "likesCount",
    }


def test_channel_videos_empty(engine, factory) -> None:
    assert engine.channel_videos(factory.user("nobody")["_id"]) == []


# -------------------- ToggleReactionLike --------------------

def test_toggle_like_twice_restores_absence(engine, factory, db) -> None:
    caller = factory.user("caller")
    video = factory.video(factory.user("owner"))

    first = engine.toggle_like("video", video["_id"], caller["_id"])
    assert first.state == ADDED
    assert first.present
    assert first.document["video"] == video["_id"]
    assert first.document["likedBy"] == caller["_id"]
    assert db[LIKES].count_documents({"video": video["_id"], "likedBy": caller["_id"]}) == 1

    second = engine.toggle_like("video", video["_id"], caller["_id"])
    assert second.state == REMOVED
    assert second.document["_id"] == first.document["_id"]
    assert db[LIKES].count_documents({}) == 0


def test_toggle_like_twice_restores_presence(engine, factory, db) -> None:
    caller = factory.user("caller")
    video = factory.video(factory.user("owner"))
    factory.like(caller, video=video["_id"])

    assert engine.toggle_like("video", video["_id"], caller["_id"]).state == REMOVED
    assert engine.toggle_like("video", video["_id"], caller["_id"]).state == ADDED
    assert db[LIKES].count_documents({"video": video["_id"]}) == 1


def test_toggle_like_kinds_are_independent(engine, factory, db) -> None:
    caller = factory.user("caller")
    owner = factory.user("owner")
    video = factory.video(owner)
    tweet = factory.tweet(owner, "hello")
    comment = factory.comment(owner, video)

    for kind, subject in (("video", video), ("tweet", tweet), ("comment", comment)):
        assert engine.toggle_like(kind, subject["_id"], caller["_id"]).state == ADDED

    assert db[LIKES].count_documents({"likedBy": caller["_id"]}) == 3
    assert db[LIKES].count_documents({"tweet": tweet["_id"]}) == 1


def test_toggle_like_requires_subject_id(engine, factory) -> None:
    with pytest.raises(ValidationError):
        engine.toggle_like("video", None, factory.user("caller")["_id"])


def test_toggle_like_rejects_unknown_kind(engine, factory) -> None:
    with pytest.raises(ValidationError):
        engine.toggle_like("playlist", ObjectId(), factory.user("caller")["_id"])


def test_toggle_like_unknown_subject(engine, factory, db) -> None:
    with pytest.raises(NotFoundError):
        engine.toggle_like("tweet", ObjectId(), factory.user("caller")["_id"])
    assert db[LIKES].count_documents({}) == 0


# -------------------- LikedVideosByUser --------------------

def test_liked_videos_only_returns_video_likes_of_caller(engine, factory) -> None:
    caller = factory.user("caller")
    owner = factory.user("owner")
    video = factory.video(owner, videoFile="/static/videos/a.mp4", thumbnail="/static/images/a.jpg")
    factory.like(caller, video=video["_id"])
    factory.like(caller, tweet=factory.tweet(owner, "hi")["_id"])
    factory.like(caller, comment=factory.comment(owner, video)["_id"])
    factory.like(owner, video=video["_id"])

    liked = engine.liked_videos(caller["_id"])

    assert len(liked) == 1
    row = liked[0]
    assert row["video"] == str(video["_id"])
    assert row["videoDetail"] == {
        "id": str(video["_id"]),
        "videoFile": "/static/videos/a.mp4",
        "thumbnail": "/static/images/a.jpg",
    }
    assert row["userDetail"] == {"id": str(caller["_id"]), "username": "caller"}


def test_liked_videos_drops_likes_of_deleted_videos(engine, factory) -> None:
    caller = factory.user("caller")
    factory.like(caller, video=ObjectId())
    assert engine.liked_videos(caller["_id"]) == []


# -------------------- Playlists --------------------

def test_user_playlists_totals_cover_resolved_videos(engine, factory) -> None:
    owner = factory.user("owner", fullName="Play Lister")
    a = factory.video(owner, views=7, title="a")
    b = factory.video(owner, views=11, title="b", published=False)
    c = factory.video(owner, views=3, title="c")
    factory.playlist(owner, videos=[c, a, b], name="mix")
    factory.playlist(owner, videos=[], name="empty")
    factory.playlist(factory.user("stranger"), videos=[a])

    playlists = engine.user_playlists(owner["_id"])

    assert [playlist["name"] for playlist in playlists] == ["empty", "mix"]
    empty, mix = playlists
    assert empty["totalVideos"] == 0
    assert empty["totalViews"] == 0
    assert empty["videos"] == []
    assert mix["totalVideos"] == 3
    assert mix["totalViews"] == sum(video["views"] for video in mix["videos"]) == 21
    assert [video["title"] for video in mix["videos"]] == ["c", "a", "b"]
    assert mix["owner"] == {
        "id": str(owner["_id"]),
        "username": "owner",
        "fullName": "Play Lister",
        "avatarUrl": "/static/images/owner.png",
    }
    assert set(mix["videos"][0]) == {
        "id",
        "videoFile",
        "thumbnail",
        "title",
        "description",
        "duration",
        "createdAt",
        "views",
    }


def test_user_playlists_unknown_user(engine) -> None:
    with pytest.raises(NotFoundError):
        engine.user_playlists(ObjectId())


def test_playlist_by_id_hides_unpublished_videos(engine, factory) -> None:
    owner = factory.user("owner")
    other = factory.user("other")
    public = factory.video(owner, views=4, title="public")
    private = factory.video(other, views=50, title="private", published=False)
    playlist = factory.playlist(owner, videos=[public, private])

    result = engine.playlist_by_id(playlist["_id"])

    assert [video["title"] for video in result["videos"]] == ["public"]
    assert result["totalVideos"] == 1
    assert result["totalViews"] == 4
    assert result["owner"]["username"] == "owner"


def test_playlist_by_id_without_published_videos_is_empty_not_missing(engine, factory) -> None:
    owner = factory.user("owner")
    hidden = factory.video(owner, views=9, published=False)
    playlist = factory.playlist(owner, videos=[hidden])

    result = engine.playlist_by_id(playlist["_id"])

    assert result["id"] == str(playlist["_id"])
    assert result["videos"] == []
    assert result["totalVideos"] == 0
    assert result["totalViews"] == 0


def test_playlist_by_id_unknown(engine) -> None:
    with pytest.raises(NotFoundError):
        engine.playlist_by_id(ObjectId())


# -------------------- Tweets --------------------

def test_user_tweets_flattens_content_under_one_user(engine, factory) -> None:
    owner = factory.user("writer", fullName="Tweet Writer")
    factory.tweet(owner, "first")
    factory.tweet(owner, "second")
    factory.tweet(factory.user("other"), "not mine")

    result = engine.user_tweets(owner["_id"])

    assert [tweet["content"] for tweet in result["tweets"]] == ["second", "first"]
    assert result["summary"]["content"] == ["first", "second"]
    assert result["summary"]["user"] == {
        "fullName": "Tweet Writer",
        "avatar": "/static/images/writer.png",
        "email": "writer@example.com",
        "username": "writer",
    }


def test_user_tweets_without_tweets(engine, factory) -> None:
    owner = factory.user("silent")
    factory.tweet(factory.user("chatty"), "not theirs")

    result = engine.user_tweets(owner["_id"])

    assert result["tweets"] == []
    assert result["summary"] == {
        "content": [],
        "user": {
            "fullName": "Silent",
            "avatar": "/static/images/silent.png",
            "email": "silent@example.com",
            "username": "silent",
        },
    }


def test_user_tweets_unknown_user(engine) -> None:
    with pytest.raises(NotFoundError):
        engine.user_tweets(ObjectId())


# -------------------- VideoListing --------------------

def test_video_listing_second_page_returns_rows_six_to_ten(engine, factory) -> None:
    owner = factory.user("owner")
    for views in range(12):
        factory.video(owner, views=views, title=f"v{views}")

    listing = engine.video_listing(sort_by="views", sort_type="asc", page=2, limit=5)

    assert [video["views"] for video in listing["videos"]] == [5, 6, 7, 8, 9]
    assert listing["page"] == 2
    assert listing["limit"] == 5
    assert listing["totalVideos"] == 12
    assert listing["totalPages"] == 3


def test_video_listing_descending_and_owner_filter(engine, factory) -> None:
    owner = factory.user("owner")
    other = factory.user("other")
    for views in (3, 1, 2):
        factory.video(owner, views=views)
    factory.video(other, views=99)

    listing = engine.video_listing(owner_id=owner["_id"], sort_by="views", sort_type="desc")

    assert [video["views"] for video in listing["videos"]] == [3, 2, 1]
    assert all(video["owner"] == str(owner["_id"]) for video in listing["videos"])


def test_video_listing_defaults_to_insertion_order(engine, factory) -> None:
    owner = factory.user("owner")
    titles = [f"t{i}" for i in range(config.DEFAULT_PAGE_LIMIT + 2)]
    for title in titles:
        factory.video(owner, title=title)

    listing = engine.video_listing()

    assert [video["title"] for video in listing["videos"]] == titles[: config.DEFAULT_PAGE_LIMIT]


def test_video_listing_query_matches_title_or_description(engine, factory) -> None:
    owner = factory.user("owner")
    factory.video(owner, title="Cooking pasta", description="dinner")
    factory.video(owner, title="Guitar", description="How to COOK rice")
    factory.video(owner, title="Running", description="morning")

    listing = engine.video_listing(query="cook")

    assert sorted(video["title"] for video in listing["videos"]) == ["Cooking pasta", "Guitar"]


def test_video_listing_sorts_by_any_video_field(engine, factory) -> None:
    owner = factory.user("owner")
    draft = factory.video(owner, title="draft", published=False)
    live = factory.video(owner, title="live")

    by_flag = engine.video_listing(sort_by="isPublished", sort_type="desc")
    by_owner = engine.video_listing(sort_by="owner", sort_type="asc")
    by_id = engine.video_listing(sort_by="_id", sort_type="desc")

    assert [video["title"] for video in by_flag["videos"]] == ["live", "draft"]
    assert len(by_owner["videos"]) == 2
    assert [video["_id"] for video in by_id["videos"]] == [str(live["_id"]), str(draft["_id"])]


def test_video_listing_beyond_last_page_is_empty(engine, factory) -> None:
    factory.video(factory.user("owner"))
    listing = engine.video_listing(page=5, limit=10)
    assert listing["videos"] == []
    assert listing["totalVideos"] == 1


def test_video_listing_caps_limit(engine) -> None:
    assert engine.video_listing(limit=config.MAX_PAGE_LIMIT + 50)["limit"] == config.MAX_PAGE_LIMIT


@pytest.mark.parametrize(
    "kwargs",
    [{"page": 0}, {"limit": 0}, {"sort_by": "passwordHash"}, {"sort_by": "$where"}, {"sort_by": "owner.$id"}],
)
def test_video_listing_rejects_bad_parameters(engine, kwargs) -> None:
    with pytest.raises(ValidationError):
        engine.video_listing(**kwargs)


# -------------------- Subscriptions and comments --------------------

def test_toggle_subscription_round_trip(engine, factory) -> None:
    channel = factory.user("channel")
    fan = factory.user("fan")

    subscribed = engine.toggle_subscription(channel["_id"], fan["_id"])
    assert subscribed == {"channelId": str(channel["_id"]), "subscribed": True, "subscribersCount": 1}

    unsubscribed = engine.toggle_subscription(channel["_id"], fan["_id"])
    assert unsubscribed["subscribed"] is False
    assert unsubscribed["subscribersCount"] == 0


def test_toggle_subscription_rejects_self(engine, factory) -> None:
    user = factory.user("narcissus")
    with pytest.raises(ValidationError):
        engine.toggle_subscription(user["_id"], user["_id"])


def test_toggle_subscription_unknown_channel(engine, factory) -> None:
    with pytest.raises(NotFoundError):
        engine.toggle_subscription(ObjectId(), factory.user("fan")["_id"])


def test_subscription_lists_join_the_other_end(engine, factory) -> None:
    channel = factory.user("channel")
    fans = [factory.user("ann"), factory.user("bob")]
    for fan in fans:
        factory.subscribe(fan, channel)

    subscribers = engine.channel_subscribers(channel["_id"])
    assert [user["username"] for user in subscribers] == ["bob", "ann"]

    channels = engine.subscribed_channels(fans[0]["_id"])
    assert [user["username"] for user in channels] == ["channel"]


def test_channel_profile_counts(engine, factory) -> None:
    channel = factory.user("channel")
    fan = factory.user("fan")
    factory.subscribe(fan, channel)
    factory.subscribe(channel, factory.user("idol"))

    profile = engine.channel_profile("Channel", viewer_id=fan["_id"])

    assert profile["subscribersCount"] == 1
    assert profile["channelsSubscribedToCount"] == 1
    assert profile["isSubscribed"] is True
    assert "passwordHash" not in profile
    assert engine.channel_profile("channel")["isSubscribed"] is False


def test_channel_profile_unknown(engine) -> None:
    with pytest.raises(NotFoundError):
        engine.channel_profile("ghost")


def test_video_comments_newest_first_with_author(engine, factory) -> None:
    owner = factory.user("owner")
    video = factory.video(owner)
    factory.comment(owner, video, "first")
    factory.comment(factory.user("fan"), video, "second")

    comments = engine.video_comments(video["_id"], page=1, limit=10)

    assert [comment["content"] for comment in comments] == ["second", "first"]
    assert comments[0]["owner"]["username"] == "fan"
    assert engine.video_comments(video["_id"], page=2, limit=1)[0]["content"] == "first"
