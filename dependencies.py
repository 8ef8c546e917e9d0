from typing import Optional

from bson import ObjectId
from fastapi import Depends, Header
from pymongo.database import Database

from database import USERS, get_db
from errors import UnauthenticatedError
from helpers import objid
from reports import AggregationEngine


def get_engine(db: Database = Depends(get_db)) -> AggregationEngine:
    return AggregationEngine(db)


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    db: Database = Depends(get_db),
) -> ObjectId:
    """Resolve the caller from the X-User-Id header."""
    if not x_user_id:
        raise UnauthenticatedError("Missing X-User-Id header")
    user_id = objid(x_user_id, "user id")
    if not db[USERS].find_one({"_id": user_id}, {"_id": 1}):
        raise UnauthenticatedError("Invalid user id")
    return user_id


def get_optional_user_id(
    x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
    db: Database = Depends(get_db),
) -> Optional[ObjectId]:
    if not x_user_id:
        return None
    return get_current_user_id(x_user_id, db)
