from typing import Optional

import structlog
from bson import ObjectId
from fastapi import APIRouter, Depends, File, Form, UploadFile
from pydantic import ValidationError as SchemaError
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import USERS, create_document, get_db
from dependencies import get_current_user_id, get_engine, get_optional_user_id
from errors import ConflictError, UnauthenticatedError, ValidationError
from helpers import hash_password, public_user, verify_password
from reports import AggregationEngine
from schemas import ApiResponse, LoginRequest, User
from storage import IMAGE_FOLDER, LocalAssetStorage, get_storage

logger = structlog.get_logger()

router = APIRouter(prefix="/users", tags=["users"])


@router.post("/register", status_code=201)
def register_user(
    fullName: str = Form(""),
    email: str = Form(""),
    username: str = Form(""),
    password: str = Form(""),
    avatar: Optional[UploadFile] = File(None),
    coverImage: Optional[UploadFile] = File(None),
    db: Database = Depends(get_db),
    storage: LocalAssetStorage = Depends(get_storage),
):
    if any(not field.strip() for field in (fullName, email, username, password)):
        raise ValidationError("All fields are required")
    username = username.strip().lower()
    email = email.strip().lower()

    # Uniqueness checks
    if db[USERS].find_one({"$or": [{"username": username}, {"email": email}]}):
        raise ConflictError("User with email or username already exists")
    if avatar is None or not avatar.filename:
        raise ValidationError("Avatar file is required")

    try:
        # Validate the profile before anything is uploaded
        User(
            username=username,
            email=email,
            fullName=fullName.strip(),
            avatar="pending",
            passwordHash="pending",
        )
    except SchemaError as exc:
        raise ValidationError(
            "Invalid user details",
            errors=[{"field": ".".join(str(p) for p in e["loc"]), "message": e["msg"]} for e in exc.errors()],
        )

    avatar_asset = storage.upload(avatar, IMAGE_FOLDER, ".jpg")
    cover_url = ""
    if coverImage is not None and coverImage.filename:
        cover_url = storage.upload(coverImage, IMAGE_FOLDER, ".jpg").url

    user = User(
        username=username,
        email=email,
        fullName=fullName.strip(),
        avatar=avatar_asset.url,
        coverImage=cover_url,
        passwordHash=hash_password(password),
    )
    try:
        created = create_document(db, USERS, user)
    except DuplicateKeyError:
        # Lost a race with a concurrent registration; drop the files stored for this one
        for url in (avatar_asset.url, cover_url):
            storage.remove(url)
        logger.warning("Registration conflict", username=username, email=email)
        raise ConflictError("User with email or username already exists")
    logger.info("User registered", user_id=str(created["_id"]), username=username)
    return ApiResponse.ok(public_user(created), "User registered successfully", 201)


@router.post("/login")
def login(payload: LoginRequest, db: Database = Depends(get_db)):
    user = db[USERS].find_one({"email": payload.email.lower()})
    if not user or not verify_password(payload.password, user.get("passwordHash", "")):
        raise UnauthenticatedError("Invalid credentials")
    # Clients send the returned id back as X-User-Id
    return ApiResponse.ok(public_user(user), "User logged in successfully")


@router.get("/me")
def get_current_user(user_id: ObjectId = Depends(get_current_user_id), db: Database = Depends(get_db)):
    return ApiResponse.ok(public_user(db[USERS].find_one({"_id": user_id})), "Current user fetched successfully")


@router.get("/c/{username}")
def get_channel_profile(
    username: str,
    viewer_id: Optional[ObjectId] = Depends(get_optional_user_id),
    engine: AggregationEngine = Depends(get_engine),
):
    profile = engine.channel_profile(username, viewer_id)
    return ApiResponse.ok(profile, "Channel fetched successfully")
