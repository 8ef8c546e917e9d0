"""
Asset storage for uploaded videos and images

Files are written below ``UPLOAD_DIR`` and served by the ``/static`` mount.
"""

import os
from dataclasses import dataclass
from typing import Optional

import structlog
from bson import ObjectId
from fastapi import UploadFile

import config

logger = structlog.get_logger()

VIDEO_FOLDER = "videos"
IMAGE_FOLDER = "images"


@dataclass
class UploadedAsset:
    url: str
    size: int
    # Seconds; only known when the storage backend can read media metadata
    duration: Optional[float] = None


class LocalAssetStorage:
    def __init__(self, root_dir: str, url_prefix: str = "/static"):
        self.root_dir = root_dir
        self.url_prefix = url_prefix.rstrip("/")
        for folder in (VIDEO_FOLDER, IMAGE_FOLDER):
            os.makedirs(os.path.join(self.root_dir, folder), exist_ok=True)

    def upload(self, file: UploadFile, folder: str, default_ext: str = "") -> UploadedAsset:
        # Called from sync route handlers, which FastAPI runs in its threadpool
        ext = os.path.splitext(file.filename or "")[1] or default_ext
        filename = f"{ObjectId()}{ext}"
        path = os.path.join(self.root_dir, folder, filename)
        content = file.file.read()
        with open(path, "wb") as f:
            f.write(content)
        logger.info("Asset stored", folder=folder, filename=filename, size=len(content))
        return UploadedAsset(url=f"{self.url_prefix}/{folder}/{filename}", size=len(content))

    def remove(self, url: str) -> bool:
        """Delete a stored asset by the URL ``upload`` returned for it."""
        prefix = f"{self.url_prefix}/"
        if not url or not url.startswith(prefix):
            return False
        folder, _, filename = url[len(prefix):].partition("/")
        if folder not in (VIDEO_FOLDER, IMAGE_FOLDER) or not filename or "/" in filename:
            return False
        path = os.path.join(self.root_dir, folder, filename)
        try:
            os.remove(path)
        except FileNotFoundError:
            return False
        logger.info("Asset removed", folder=folder, filename=filename)
        return True


_storage: Optional[LocalAssetStorage] = None


def get_storage() -> LocalAssetStorage:
    global _storage
    if _storage is None:
        _storage = LocalAssetStorage(config.UPLOAD_DIR, config.STATIC_URL_PREFIX)
    return _storage
