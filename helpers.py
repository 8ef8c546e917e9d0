from datetime import datetime
from typing import Any, Optional

from bson import ObjectId
from bson.errors import InvalidId
from passlib.context import CryptContext

from errors import ValidationError

# Password hashing
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


def objid(id_str: Optional[str], label: str = "id") -> ObjectId:
    if isinstance(id_str, ObjectId):
        return id_str
    if not id_str or not str(id_str).strip():
        raise ValidationError(f"{label} is required")
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label} format")


def to_str_id(value: Any) -> Any:
    """Make a document JSON friendly: ``_id`` becomes ``id``, ObjectIds become
    strings and datetimes become ISO strings, at any depth."""
    if isinstance(value, dict):
        d = {}
        for k, v in value.items():
            if k == "_id":
                d["id"] = to_str_id(v)
            else:
                d[k] = to_str_id(v)
        return d
    if isinstance(value, list):
        return [to_str_id(v) for v in value]
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def public_user(user: Optional[dict]) -> Optional[dict]:
    """Strip the password hash from a user document."""
    if not user:
        return user
    d = {k: v for k, v in user.items() if k != "passwordHash"}
    return to_str_id(d)
