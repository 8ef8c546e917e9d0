from bson import ObjectId
from fastapi import APIRouter, Depends

from dependencies import get_current_user_id, get_engine
from helpers import objid
from reports import AggregationEngine
from schemas import ApiResponse

router = APIRouter(prefix="/subscriptions", tags=["subscriptions"])


@router.post("/c/{channel_id}")
def toggle_subscription(
    channel_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    engine: AggregationEngine = Depends(get_engine),
):
    result = engine.toggle_subscription(objid(channel_id, "channel id"), user_id)
    message = "Subscribed successfully" if result["subscribed"] else "Unsubscribed successfully"
    return ApiResponse.ok(result, message)


@router.get("/c/{channel_id}")
def get_channel_subscribers(channel_id: str, engine: AggregationEngine = Depends(get_engine)):
    subscribers = engine.channel_subscribers(objid(channel_id, "channel id"))
    return ApiResponse.ok({"subscribers": subscribers}, "Subscribers fetched successfully")


@router.get("/u/{subscriber_id}")
def get_subscribed_channels(subscriber_id: str, engine: AggregationEngine = Depends(get_engine)):
    channels = engine.subscribed_channels(objid(subscriber_id, "user id"))
    return ApiResponse.ok({"channels": channels}, "Subscribed channels fetched successfully")
