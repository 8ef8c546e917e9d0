"""
Application configuration

Every setting is read from the environment once, at import time.
"""

import os

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "videotube")

API_PREFIX = os.getenv("API_PREFIX", "/api/v1")

# Uploaded assets are written here and served under STATIC_URL_PREFIX
UPLOAD_DIR = os.getenv("UPLOAD_DIR", os.path.join(os.getcwd(), "uploads"))
STATIC_URL_PREFIX = os.getenv("STATIC_URL_PREFIX", "/static")

# Pagination
DEFAULT_PAGE = int(os.getenv("DEFAULT_PAGE", 1))
DEFAULT_PAGE_LIMIT = int(os.getenv("DEFAULT_PAGE_LIMIT", 10))
MAX_PAGE_LIMIT = int(os.getenv("MAX_PAGE_LIMIT", 100))

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = int(os.getenv("PORT", 8000))
