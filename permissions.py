from typing import Any, Dict, Optional

from bson import ObjectId

from errors import AuthorizationError


def is_owner(document: Optional[Dict[str, Any]], user_id: ObjectId) -> bool:
    if not document or user_id is None:
        return False
    owner = document.get("owner")
    return owner is not None and str(owner) == str(user_id)


def ensure_owner(document: Dict[str, Any], user_id: ObjectId, resource: str = "resource") -> None:
    """Raise AuthorizationError unless ``user_id`` owns ``document``."""
    if not is_owner(document, user_id):
        raise AuthorizationError(f"You are not the owner of this {resource}")
