"""Error handling middleware."""

import structlog
from fastapi import Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.config import settings
from app.core.exceptions import AppException

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"

logger = structlog.get_logger()


def _error_body(request: Request, error: str, code: str, message: str) -> dict:
    return {
        "error": error,
        "code": code,
        "message": message,
        "path": str(request.url),
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Handle custom application exceptions.

    Server-side failures keep a generic message in production.

    Args:
        request: Request object
        exc: Application exception

    Returns:
        JSON error response
    """
    message = exc.message
    if exc.status_code >= 500:
        logger.error(
            "application_error",
            error=exc.__class__.__name__,
            message=exc.message,
            path=request.url.path,
        )
        if settings.is_production:
            message = GENERIC_ERROR_MESSAGE

    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, exc.__class__.__name__, exc.code, message),
    )


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """
    Handle HTTP exceptions.

    Args:
        request: Request object
        exc: HTTP exception

    Returns:
        JSON error response
    """
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "HTTPException", "http_error", str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle validation errors.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        JSON error response with validation details
    """
    content = _error_body(request, "ValidationError", "validation_error", "Request validation failed")
    content["details"] = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Args:
        request: Request object
        exc: Exception

    Returns:
        JSON error response
    """
    logger.error(
        "unhandled_exception",
        error=exc.__class__.__name__,
        path=request.url.path,
        exc_info=exc,
    )
    message = GENERIC_ERROR_MESSAGE if settings.is_production else f"{exc.__class__.__name__}: {exc}"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(request, "InternalServerError", "internal", message),
    )
