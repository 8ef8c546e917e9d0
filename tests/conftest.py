from __future__ import annotations

from datetime import datetime, timedelta
from itertools import count

import mongomock
import pytest
from fastapi.testclient import TestClient

import main
from database import COMMENTS, LIKES, PLAYLISTS, SUBSCRIPTIONS, TWEETS, USERS, VIDEOS, create_document
from reports import AggregationEngine
from storage import LocalAssetStorage, get_storage


class Factory:
    """Inserts documents straight into the store with strictly increasing createdAt."""

    def __init__(self, db) -> None:
        self.db = db
        self._clock = count()
        self._base = datetime(2024, 1, 1, 12, 0, 0)

    def _stamp(self) -> datetime:
        return self._base + timedelta(minutes=next(self._clock))

    def user(self, username: str, **fields) -> dict:
        doc = {
            "username": username,
            "email": f"{username}@example.com",
            "fullName": username.title(),
            "avatar": f"/static/images/{username}.png",
            "coverImage": "",
            "passwordHash": "not-a-real-hash",
            "createdAt": self._stamp(),
        }
        doc.update(fields)
        return create_document(self.db, USERS, doc)

    def video(self, owner: dict, views: int = 0, published: bool = True, **fields) -> dict:
        doc = {
            "owner": owner["_id"],
            "videoFile": "/static/videos/v.mp4",
            "thumbnail": "/static/images/t.jpg",
            "title": "A video",
            "description": "Something to watch",
            "duration": 60,
            "views": views,
            "isPublished": published,
            "createdAt": self._stamp(),
        }
        doc.update(fields)
        return create_document(self.db, VIDEOS, doc)

    def like(self, user: dict, **subject) -> dict:
        return create_document(self.db, LIKES, {"likedBy": user["_id"], "createdAt": self._stamp(), **subject})

    def subscribe(self, subscriber: dict, channel: dict) -> dict:
        return create_document(
            self.db,
            SUBSCRIPTIONS,
            {"subscriber": subscriber["_id"], "channel": channel["_id"], "createdAt": self._stamp()},
        )

    def playlist(self, owner: dict, videos=(), **fields) -> dict:
        doc = {
            "owner": owner["_id"],
            "name": "Favourites",
            "description": "Good ones",
            "videos": [video["_id"] for video in videos],
            "createdAt": self._stamp(),
        }
        doc.update(fields)
        return create_document(self.db, PLAYLISTS, doc)

    def tweet(self, owner: dict, content: str) -> dict:
        return create_document(self.db, TWEETS, {"owner": owner["_id"], "content": content, "createdAt": self._stamp()})

    def comment(self, owner: dict, video: dict, content: str = "Nice") -> dict:
        return create_document(
            self.db,
            COMMENTS,
            {"owner": owner["_id"], "video": video["_id"], "content": content, "createdAt": self._stamp()},
        )


@pytest.fixture
def db():
    return mongomock.MongoClient().videotube_test


@pytest.fixture
def engine(db):
    return AggregationEngine(db)


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def storage(tmp_path):
    return LocalAssetStorage(str(tmp_path / "uploads"), "/static")


@pytest.fixture
def client(db, storage):
    main.app.state.db = db
    main.app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()
    del main.app.state.db


def auth(user: dict) -> dict:
    return {"X-User-Id": str(user["_id"])}
