"""
Exception handlers mapping the error taxonomy onto HTTP responses.

Every error body has the shape {"error": message}. Upstream and unexpected
failures are reported generically in production and in detail otherwise.
"""
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger
from starlette.exceptions import HTTPException as StarletteHTTPException
from core.errors import BookChatError, UpstreamError

GENERIC_UPSTREAM_MESSAGE = "Error processing request"
GENERIC_INTERNAL_MESSAGE = "Internal server error"


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


def _is_production(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return bool(settings and settings.is_production)


async def bookchat_error_handler(request: Request, exc: BookChatError) -> JSONResponse:
    if isinstance(exc, UpstreamError):
        logger.error(f"{exc.service} failure during {request.method} {request.url.path}: {exc.message}")
        message = GENERIC_UPSTREAM_MESSAGE if _is_production(request) else exc.message
    else:
        logger.warning(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
        message = exc.message
    return _error(exc.status_code, message)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning(f"Invalid request on {request.url.path}: {exc.errors()}")
    return _error(400, "Invalid request body")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = "Not found" if exc.status_code == 404 else str(exc.detail)
    return _error(exc.status_code, message)


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Last-resort handler: log the full traceback, never leak it in production."""
    logger.opt(exception=exc).error(f"Unhandled error during {request.method} {request.url.path}")
    message = GENERIC_INTERNAL_MESSAGE if _is_production(request) else (str(exc) or GENERIC_INTERNAL_MESSAGE)
    return _error(500, message)


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(BookChatError, bookchat_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
