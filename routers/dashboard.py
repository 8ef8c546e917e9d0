from bson import ObjectId
from fastapi import APIRouter, Depends

from dependencies import get_current_user_id, get_engine
from reports import AggregationEngine
from schemas import ApiResponse

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("/stats")
def get_channel_stats(
    user_id: ObjectId = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_engine),
):
    stats = engine.channel_stats(user_id)
    return ApiResponse.ok(stats, "Channel stats fetched successfully")


@router.get("/videos")
def get_channel_videos(
    user_id: ObjectId = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_engine),
):
    videos = engine.channel_videos(user_id)
    return ApiResponse.ok(videos, "Channel videos fetched successfully")
