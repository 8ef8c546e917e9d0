from typing import Optional

import structlog
from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from pymongo import ReturnDocument
from pymongo.database import Database

import config
from database import VIDEOS, create_document, get_db, utcnow
from dependencies import get_current_user_id, get_engine, get_optional_user_id
from errors import NotFoundError, ValidationError
from helpers import objid, to_str_id
from permissions import ensure_owner, is_owner
from reports import AggregationEngine
from schemas import ApiResponse, Video
from storage import IMAGE_FOLDER, VIDEO_FOLDER, LocalAssetStorage, get_storage

logger = structlog.get_logger()

router = APIRouter(prefix="/videos", tags=["videos"])


def _owned_video(db: Database, video_id: str, user_id: ObjectId) -> dict:
    video = db[VIDEOS].find_one({"_id": objid(video_id, "video id")})
    if not video:
        raise NotFoundError("Video not found")
    ensure_owner(video, user_id, "video")
    return video


@router.get("")
def get_all_videos(
    page: int = Query(config.DEFAULT_PAGE),
    limit: int = Query(config.DEFAULT_PAGE_LIMIT),
    query: Optional[str] = None,
    sortBy: Optional[str] = None,
    sortType: Optional[str] = None,
    userId: Optional[str] = None,
    engine: AggregationEngine = Depends(get_engine),
):
    owner_id = objid(userId, "user id") if userId else None
    listing = engine.video_listing(
        owner_id=owner_id,
        query=query,
        sort_by=sortBy,
        sort_type=sortType,
        page=page,
        limit=limit,
    )
    return ApiResponse.ok(listing, "Videos fetched successfully")


@router.post("", status_code=201)
def publish_video(
    title: str = Form(""),
    description: str = Form(""),
    duration: Optional[float] = Form(None),
    videoFile: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    storage: LocalAssetStorage = Depends(get_storage),
):
    if not title.strip() or not description.strip():
        raise ValidationError("Title and description are required")
    if videoFile is None or not videoFile.filename or thumbnail is None or not thumbnail.filename:
        raise ValidationError("Video file and thumbnail are required")
    if videoFile.content_type and not videoFile.content_type.startswith("video/"):
        raise ValidationError("Only video files are allowed")
    if duration is not None and duration < 0:
        raise ValidationError("Duration cannot be negative")

    video_asset = storage.upload(videoFile, VIDEO_FOLDER, ".mp4")
    thumbnail_asset = storage.upload(thumbnail, IMAGE_FOLDER, ".jpg")

    video = Video(
        owner=user_id,
        videoFile=video_asset.url,
        thumbnail=thumbnail_asset.url,
        title=title.strip(),
        description=description.strip(),
        duration=video_asset.duration if video_asset.duration is not None else (duration or 0),
    )
    created = create_document(db, VIDEOS, video)
    logger.info("Video published", video_id=str(created["_id"]), owner=str(user_id))
    return ApiResponse.ok({"video": to_str_id(created)}, "Video uploaded successfully", 201)


@router.get("/{video_id}")
def get_video_by_id(
    video_id: str,
    viewer_id: Optional[ObjectId] = Depends(get_optional_user_id),
    db: Database = Depends(get_db),
):
    video_oid = objid(video_id, "video id")
    video = db[VIDEOS].find_one({"_id": video_oid})
    # Unpublished videos are only visible to their owner
    if not video or (not video.get("isPublished") and not is_owner(video, viewer_id)):
        raise NotFoundError("Video not found")
    video = db[VIDEOS].find_one_and_update(
        {"_id": video_oid},
        {"$inc": {"views": 1}},
        return_document=ReturnDocument.AFTER,
    )
    return ApiResponse.ok({"video": to_str_id(video)}, "Video found")


@router.patch("/{video_id}")
def update_video(
    video_id: str,
    title: str = Form(""),
    description: str = Form(""),
    thumbnail: Optional[UploadFile] = File(None),
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
    storage: LocalAssetStorage = Depends(get_storage),
):
    if not title.strip() or not description.strip():
        raise ValidationError("Title and description are required to update a video")
    video = _owned_video(db, video_id, user_id)

    changes = {"title": title.strip(), "description": description.strip(), "updatedAt": utcnow()}
    if thumbnail is not None and thumbnail.filename:
        changes["thumbnail"] = storage.upload(thumbnail, IMAGE_FOLDER, ".jpg").url

    updated = db[VIDEOS].find_one_and_update(
        {"_id": video["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    return ApiResponse.ok({"video": to_str_id(updated)}, "Video updated successfully")


@router.delete("/{video_id}")
def delete_video(
    video_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    video = _owned_video(db, video_id, user_id)
    db[VIDEOS].delete_one({"_id": video["_id"]})
    logger.info("Video deleted", video_id=str(video["_id"]), owner=str(user_id))
    return ApiResponse.ok({"video": to_str_id(video)}, "Video deleted successfully")


@router.patch("/toggle/publish/{video_id}")
def toggle_publish_status(
    video_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    video = _owned_video(db, video_id, user_id)
    updated = db[VIDEOS].find_one_and_update(
        {"_id": video["_id"]},
        {"$set": {"isPublished": not video.get("isPublished", False), "updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    return ApiResponse.ok({"video": to_str_id(updated)}, "Publish status toggled")
