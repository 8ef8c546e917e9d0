from bson import ObjectId
from fastapi import APIRouter, Depends

from dependencies import get_current_user_id, get_engine
from helpers import objid, to_str_id
from reports import AggregationEngine
from schemas import ApiResponse

router = APIRouter(prefix="/likes", tags=["likes"])


def _toggle(kind: str, subject_id: str, user_id: ObjectId, engine: AggregationEngine) -> ApiResponse:
    result = engine.toggle_like(kind, objid(subject_id, f"{kind} id"), user_id)
    label = kind.capitalize()
    if result.present:
        return ApiResponse.ok({"liked": True, "like": to_str_id(result.document)}, f"{label} liked successfully")
    return ApiResponse.ok({"liked": False}, f"{label} unliked successfully")


@router.post("/toggle/v/{video_id}")
def toggle_video_like(
    video_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_engine),
):
    return _toggle("video", video_id, user_id, engine)


@router.post("/toggle/c/{comment_id}")
def toggle_comment_like(
    comment_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_engine),
):
    return _toggle("comment", comment_id, user_id, engine)


@router.post("/toggle/t/{tweet_id}")
def toggle_tweet_like(
    tweet_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_engine),
):
    return _toggle("tweet", tweet_id, user_id, engine)


@router.get("/videos")
def get_liked_videos(
    user_id: ObjectId = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_engine),
):
    liked_videos = engine.liked_videos(user_id)
    return ApiResponse.ok({"likedVideos": liked_videos}, "Liked videos fetched successfully")
