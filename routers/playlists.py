import structlog
from bson import ObjectId
from fastapi import APIRouter, Depends
from pymongo import ReturnDocument
from pymongo.database import Database

from database import PLAYLISTS, VIDEOS, create_document, get_db, utcnow
from dependencies import get_current_user_id, get_engine
from errors import NotFoundError, ValidationError
from helpers import objid, to_str_id
from permissions import ensure_owner, is_owner
from reports import AggregationEngine
from schemas import ApiResponse, Playlist, PlaylistRequest

logger = structlog.get_logger()

router = APIRouter(prefix="/playlists", tags=["playlists"])


def _owned_playlist(db: Database, playlist_id: str, user_id: ObjectId) -> dict:
    playlist = db[PLAYLISTS].find_one({"_id": objid(playlist_id, "playlist id")})
    if not playlist:
        raise NotFoundError("Playlist not found")
    ensure_owner(playlist, user_id, "playlist")
    return playlist


@router.post("", status_code=201)
def create_playlist(
    payload: PlaylistRequest,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    name = (payload.name or "").strip()
    description = (payload.description or "").strip()
    if not name or not description:
        raise ValidationError("Give name and description for playlist")
    playlist = create_document(db, PLAYLISTS, Playlist(owner=user_id, name=name, description=description))
    logger.info("Playlist created", playlist_id=str(playlist["_id"]), owner=str(user_id))
    return ApiResponse.ok({"playlist": to_str_id(playlist)}, "New playlist created successfully", 201)


@router.get("/user/{user_id}")
def get_user_playlists(user_id: str, engine: AggregationEngine = Depends(get_engine)):
    playlists = engine.user_playlists(objid(user_id, "user id"))
    return ApiResponse.ok({"playlists": playlists}, "Playlist retrieval success")


@router.get("/{playlist_id}")
def get_playlist_by_id(playlist_id: str, engine: AggregationEngine = Depends(get_engine)):
    playlist = engine.playlist_by_id(objid(playlist_id, "playlist id"))
    return ApiResponse.ok({"playlist": playlist}, "Playlist retrieved successfully")


def _change_videos(db: Database, playlist_id: str, video_id: str, user_id: ObjectId, operator: str) -> dict:
    video_oid = objid(video_id, "video id")
    playlist = _owned_playlist(db, playlist_id, user_id)
    if operator == "$push":
        video = db[VIDEOS].find_one({"_id": video_oid}, {"owner": 1, "isPublished": 1})
        # Someone else's draft is treated as missing, as on the video routes
        if not video or (not video.get("isPublished") and not is_owner(video, user_id)):
            raise NotFoundError("Video not found")
    updated = db[PLAYLISTS].find_one_and_update(
        {"_id": playlist["_id"]},
        {operator: {"videos": video_oid}, "$set": {"updatedAt": utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    logger.info("Playlist videos changed", playlist_id=str(playlist["_id"]), video_id=video_id, operation=operator)
    return to_str_id(updated)


@router.patch("/add/{video_id}/{playlist_id}")
def add_video_to_playlist(
    video_id: str,
    playlist_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    playlist = _change_videos(db, playlist_id, video_id, user_id, "$push")
    return ApiResponse.ok({"playlist": playlist}, "Video added successfully")


@router.patch("/remove/{video_id}/{playlist_id}")
def remove_video_from_playlist(
    video_id: str,
    playlist_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    playlist = _change_videos(db, playlist_id, video_id, user_id, "$pull")
    return ApiResponse.ok({"playlist": playlist}, "Video removed successfully")


@router.patch("/{playlist_id}")
def update_playlist(
    playlist_id: str,
    payload: PlaylistRequest,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    changes = {
        field: value.strip()
        for field, value in (("name", payload.name), ("description", payload.description))
        if value and value.strip()
    }
    if not changes:
        raise ValidationError("Give name or description to update")
    playlist = _owned_playlist(db, playlist_id, user_id)
    changes["updatedAt"] = utcnow()
    updated = db[PLAYLISTS].find_one_and_update(
        {"_id": playlist["_id"]},
        {"$set": changes},
        return_document=ReturnDocument.AFTER,
    )
    return ApiResponse.ok({"playlist": to_str_id(updated)}, "Playlist updated successfully")


@router.delete("/{playlist_id}")
def delete_playlist(
    playlist_id: str,
    user_id: ObjectId = Depends(get_current_user_id),
    db: Database = Depends(get_db),
):
    playlist = _owned_playlist(db, playlist_id, user_id)
    db[PLAYLISTS].delete_one({"_id": playlist["_id"]})
    logger.info("Playlist deleted", playlist_id=str(playlist["_id"]), owner=str(user_id))
    return ApiResponse.ok({"playlist": to_str_id(playlist)}, "Playlist deleted successfully")
