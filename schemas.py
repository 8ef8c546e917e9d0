"""
Database Schemas for the video sharing backend

Each Pydantic model describes the documents of one MongoDB collection.
References to other documents are stored as ObjectIds.

Collections:
- User -> users
- Video -> videos
- Like -> likes
- Subscription -> subscriptions
- Playlist -> playlists
- Tweet -> tweets
- Comment -> comments
"""

from typing import Any, List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field


class Document(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)


class User(Document):
    username: str = Field(..., min_length=3, max_length=30)
    email: EmailStr
    fullName: str = Field(..., min_length=1, max_length=80)
    avatar: str = Field(..., description="Avatar image URL")
    coverImage: str = Field("", description="Cover image URL, empty when not uploaded")
    passwordHash: str = Field(..., description="Bcrypt hash")


class Video(Document):
    owner: ObjectId
    videoFile: str = Field(..., description="Video asset URL")
    thumbnail: str = Field(..., description="Thumbnail image URL")
    title: str = Field(..., min_length=1, max_length=120)
    description: str
    duration: float = Field(0, ge=0, description="Length in seconds")
    views: int = Field(0, ge=0)
    isPublished: bool = True


class Subscription(Document):
    subscriber: ObjectId = Field(..., description="The user who subscribes")
    channel: ObjectId = Field(..., description="The user being subscribed to")


class Playlist(Document):
    owner: ObjectId
    name: str = Field(..., min_length=1, max_length=120)
    description: str
    videos: List[ObjectId] = Field(default_factory=list, description="Video ids in insertion order")


class Tweet(Document):
    owner: ObjectId
    content: str = Field(..., min_length=1, max_length=500)


class Comment(Document):
    video: ObjectId
    owner: ObjectId
    content: str = Field(..., min_length=1, max_length=500)


# -------------------- Request bodies --------------------

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class PlaylistRequest(BaseModel):
    name: Optional[str] = None
    description: Optional[str] = None


class TweetRequest(BaseModel):
    tweet: Optional[str] = None


class CommentRequest(BaseModel):
    content: Optional[str] = None


# -------------------- Responses --------------------

class ApiResponse(BaseModel):
    statusCode: int = 200
    data: Any = None
    message: str = "Success"
    success: bool = True

    @classmethod
    def ok(cls, data: Any = None, message: str = "Success", status_code: int = 200) -> "ApiResponse":
        return cls(statusCode=status_code, data=data, message=message, success=status_code < 400)


class ChannelStats(BaseModel):
    totalSubscribers: int = 0
    totalLikes: int = 0
    totalViews: int = 0
    totalVideos: int = 0
