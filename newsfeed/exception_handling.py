# newsfeed/exception_handling.py
from __future__ import annotations

from fastapi import FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .exceptions import ProfileNotFound
from .logging_setup import get_logger

logger = get_logger("newsfeed.exceptions")


async def http_exception_handler(request: Request, exc: HTTPException):
    logger.warning(
        "HTTP_EXCEPTION",
        extra={"handled": True, "path": request.url.path, "status_code": exc.status_code, "detail": exc.detail},
    )
    return JSONResponse({"detail": exc.detail}, status_code=exc.status_code)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.info(
        "REQUEST_INVALID",
        extra={"handled": True, "path": request.url.path, "errors": len(exc.errors())},
    )
    return JSONResponse({"detail": jsonable_encoder(exc.errors())}, status_code=422)


async def profile_not_found_handler(request: Request, exc: ProfileNotFound):
    logger.info("PROFILE_NOT_FOUND", extra={"handled": True, "path": request.url.path, "user_id": exc.user_id})
    return JSONResponse({"detail": str(exc)}, status_code=404)


async def unhandled_exception_handler(request: Request, exc: Exception):
    # full traceback, flagged unhandled
    logger.exception(
        "UNHANDLED_EXCEPTION",
        extra={"handled": False, "path": request.url.path, "error": type(exc).__name__},
    )
    return JSONResponse({"detail": "Internal Server Error"}, status_code=500)


def register_exception_handlers(app: FastAPI) -> None:
    """Call once from main.py, right after the app is created."""
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(ProfileNotFound, profile_not_found_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
