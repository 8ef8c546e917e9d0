import structlog
from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import TWEETS, create_document, get_db, utcnow
from dependencies import get_current_user_id, get_engine
from errors import NotFoundError, ValidationError
from helpers import objid, to_str_id
from permissions import ensure_owner
from reports import AggregationEngine
from schemas import ApiResponse, Tweet, TweetRequest

logger = structlog.get_logger()

router = APIRouter(prefix="/tweets", tags=["tweets"])


def _tweet_text(payload: TweetRequest) -> str:
    text = (payload.tweet or "").strip()
    if not text:
        raise ValidationError("Provide content to post as tweet")
    return text


def _owned_tweet(db: Database, tweet_id: str, user_id: ObjectId) -> dict:
    tweet = db[TWEETS].find_one({"_id": objid(tweet_id, "tweet id")})
    if not tweet:
        raise NotFoundError("Tweet not found")
    ensure_owner(tweet, user_id, "tweet")
    return tweet


@router.post("", status_code=201)
def create_tweet(
    payload: TweetRequest,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    tweet = create_document(db, TWEETS, Tweet(owner=user_id, content=_tweet_text(payload)))
    logger.info("Tweet created", tweet_id=str(tweet["_id"]), owner=str(user_id))
    return ApiResponse.ok({"tweet": to_str_id(tweet)}, "Tweet created successfully", 201)


@router.get("/user/{owner_id}")
def get_user_tweets(owner_id: str, engine: AggregationEngine = Depends(get_engine)):
    tweets = engine.user_tweets(objid(owner_id, "user id"))
    return ApiResponse.ok(tweets, "These are user tweets")


@router.patch("/{tweet_id}")
def update_tweet(
    tweet_id: str,
    payload: TweetRequest,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    text = _tweet_text(payload)
    tweet = _owned_tweet(db, tweet_id, user_id)
    updated = db[TWEETS].find_one_and_update(
        {"_id": tweet["_id"]},
        {"$set": {"content": text, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return ApiResponse.ok({"tweet": to_str_id(updated)}, "Tweet updated successfully")


@router.delete("/{tweet_id}")
def delete_tweet(
    tweet_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    tweet = _owned_tweet(db, tweet_id, user_id)
    db[TWEETS].delete_one({"_id": tweet["_id"]})
    logger.info("Tweet deleted", tweet_id=str(tweet["_id"]), owner=str(user_id))
    return ApiResponse.ok({}, "Tweet deleted successfully")
