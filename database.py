"""
MongoDB access

The client is opened by the application lifespan and handed to request
handlers through the ``get_db`` dependency. Nothing outside this module
creates connections.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog
from fastapi import Request
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

import config

logger = structlog.get_logger()

USERS = "users"
VIDEOS = "videos"
LIKES = "likes"
SUBSCRIPTIONS = "subscriptions"
PLAYLISTS = "playlists"
TWEETS = "tweets"
COMMENTS = "comments"

# Subject fields a like may point at, exactly one per like document
LIKE_SUBJECTS = ("video", "comment", "tweet")


def utcnow() -> datetime:
    # Naive UTC, the same form pymongo returns stored dates in
    return datetime.now(timezone.utc).replace(tzinfo=None)


def connect(url: Optional[str] = None, name: Optional[str] = None):
    """Open a client and return ``(client, database)``."""
    client = MongoClient(url or config.DATABASE_URL)
    database = client[name or config.DATABASE_NAME]
    logger.info("Connected to MongoDB", database=database.name)
    return client, database


def get_db(request: Request) -> Database:
    return request.app.state.db


def ensure_indexes(database: Database) -> None:
    """Create the indexes the toggles and lookups rely on."""
    database[USERS].create_index("username", unique=True)
    database[USERS].create_index("email", unique=True)
    database[VIDEOS].create_index([("owner", ASCENDING), ("createdAt", DESCENDING)])
    database[PLAYLISTS].create_index("owner")
    database[TWEETS].create_index("owner")
    database[COMMENTS].create_index([("video", ASCENDING), ("createdAt", DESCENDING)])
    database[SUBSCRIPTIONS].create_index(
        [("subscriber", ASCENDING), ("channel", ASCENDING)], unique=True
    )
    database[SUBSCRIPTIONS].create_index("channel")
    for subject in LIKE_SUBJECTS:
        # One like per (subject, user); rows for other subject kinds are not indexed
        database[LIKES].create_index(
            [(subject, ASCENDING), ("likedBy", ASCENDING)],
            unique=True,
            partialFilterExpression={subject: {"$exists": True}},
            name=f"{subject}_likedBy_unique",
        )
    logger.info("Indexes ensured", database=database.name)


def create_document(database: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> Dict[str, Any]:
    """Insert a document with createdAt/updatedAt stamps and return it with its _id."""
    if isinstance(data, BaseModel):
        document = data.model_dump()
    else:
        document = dict(data)
    now = utcnow()
    document.setdefault("createdAt", now)
    document.setdefault("updatedAt", now)
    result = database[collection_name].insert_one(document)
    document["_id"] = result.inserted_id
    return document


def get_documents(
    database: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[tuple]] = None,
) -> List[Dict[str, Any]]:
    cursor = database[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
