"""
API errors and the handlers that render them

Every failure leaves the service as ``{statusCode, message, success, errors}``.
"""

from typing import Any, List, Optional

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = structlog.get_logger()


class ApiError(HTTPException):
    status_code = 500
    default_message = "Something went wrong"

    def __init__(self, message: Optional[str] = None, errors: Optional[List[Any]] = None):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)
        self.errors = errors or []

    @property
    def message(self) -> str:
        return self.detail


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class UnauthenticatedError(ApiError):
    status_code = 401
    default_message = "Unauthorized request"


class AuthorizationError(ApiError):
    status_code = 403
    default_message = "You are not the owner"


class NotFoundError(ApiError):
    status_code = 404
    default_message = "Not found"


class ConflictError(ApiError):
    status_code = 409
    default_message = "Already exists"


class InternalError(ApiError):
    status_code = 500
    default_message = "Internal server error"


def error_body(status_code: int, message: str, errors: Optional[List[Any]] = None) -> dict:
    return {
        "statusCode": status_code,
        "message": message,
        "success": False,
        "errors": errors or [],
    }


async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.status_code, exc.message, exc.errors))


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(exc.status_code, str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in err.get("loc", ())), "message": err.get("msg")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=400, content=error_body(400, "Invalid request parameters", errors))


async def store_error_handler(request: Request, exc: PyMongoError):
    logger.error("Database operation failed", path=request.url.path, error=str(exc))
    return JSONResponse(status_code=500, content=error_body(500, InternalError.default_message))


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(PyMongoError, store_error_handler)
