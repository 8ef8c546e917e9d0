import logging
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo.errors import PyMongoError

import config
from database import connect, ensure_indexes
from errors import register_exception_handlers
from routers import comments, dashboard, likes, playlists, subscriptions, tweets, users, videos
from storage import get_storage

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(config.LOG_LEVEL)),
)

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    client, db = connect()
    app.state.db = db
    ensure_indexes(db)
    logger.info("Video sharing backend started", database=db.name)
    yield
    client.close()
    logger.info("Video sharing backend stopped")


app = FastAPI(title="Video Sharing Backend", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

# Uploaded videos and images are served from here
app.mount(config.STATIC_URL_PREFIX, StaticFiles(directory=get_storage().root_dir), name="static")

for module in (users, videos, likes, playlists, tweets, comments, subscriptions, dashboard):
    app.include_router(module.router, prefix=config.API_PREFIX)


# -------------------- Basic Routes --------------------
@app.get("/")
def read_root():
    return {"message": "Video Sharing Backend is running"}


@app.get("/test")
def test_database(request: Request):
    info = {
        "backend": "running",
        "database_connected": False,
        "collections": [],
    }
    db = getattr(request.app.state, "db", None)
    if db is not None:
        info["database_connected"] = True
        info["database_name"] = db.name
        try:
            info["collections"] = db.list_collection_names()
        except PyMongoError as e:
            info["error"] = str(e)
    return info


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=config.PORT)
