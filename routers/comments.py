import structlog
from bson import ObjectId
from fastapi import APIRouter, Depends, Query
from pymongo import ReturnDocument
from pymongo.database import Database

import config
from database import COMMENTS, VIDEOS, create_document, get_db, utcnow
from dependencies import get_current_user_id, get_engine
from errors import NotFoundError, ValidationError
from helpers import objid, to_str_id
from permissions import ensure_owner
from reports import AggregationEngine
from schemas import ApiResponse, Comment, CommentRequest

logger = structlog.get_logger()

router = APIRouter(prefix="/comments", tags=["comments"])


def _comment_text(payload: CommentRequest) -> str:
    text = (payload.content or "").strip()
    if not text:
        raise ValidationError("Comment content is required")
    return text


def _owned_comment(db: Database, comment_id: str, user_id: ObjectId) -> dict:
    comment = db[COMMENTS].find_one({"_id": objid(comment_id, "comment id")})
    if not comment:
        raise NotFoundError("Comment not found")
    ensure_owner(comment, user_id, "comment")
    return comment


@router.get("/{video_id}")
def get_video_comments(
    video_id: str,
    page: int = Query(config.DEFAULT_PAGE),
    limit: int = Query(config.DEFAULT_PAGE_LIMIT),
    engine: AggregationEngine = Depends(get_engine),
):
    comments = engine.video_comments(objid(video_id, "video id"), page, limit)
    return ApiResponse.ok({"comments": comments}, "Comments fetched successfully")


@router.post("/{video_id}", status_code=201)
def add_comment(
    video_id: str,
    payload: CommentRequest,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    text = _comment_text(payload)
    video_oid = objid(video_id, "video id")
    if not db[VIDEOS].find_one({"_id": video_oid}, {"_id": 1}):
        raise NotFoundError("Video not found")
    comment = create_document(db, COMMENTS, Comment(video=video_oid, owner=user_id, content=text))
    logger.info("Comment added", comment_id=str(comment["_id"]), video_id=video_id)
    return ApiResponse.ok({"comment": to_str_id(comment)}, "Comment added successfully", 201)


@router.patch("/c/{comment_id}")
def update_comment(
    comment_id: str,
    payload: CommentRequest,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    text = _comment_text(payload)
    comment = _owned_comment(db, comment_id, user_id)
    updated = db[COMMENTS].find_one_and_update(
        {"_id": comment["_id"]},
        {"$set": {"content": text, "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return ApiResponse.ok({"comment": to_str_id(updated)}, "Comment updated successfully")


@router.delete("/c/{comment_id}")
def delete_comment(
    comment_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    comment = _owned_comment(db, comment_id, user_id)
    db[COMMENTS].delete_one({"_id": comment["_id"]})
    return ApiResponse.ok({}, "Comment deleted successfully")
