"""Exception handlers that render every failure as ``{error, code, message, path}``."""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from petcare.core.exceptions import AppException, InvalidStateException

logger = structlog.get_logger()


def _error_body(request: Request, error: str, code: str, message: Any) -> dict[str, Any]:
    return {
        "error": error,
        "code": code,
        "message": message,
        "path": str(request.url),
    }


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """
    Render a domain exception with its own status code.

    Lifecycle rejections also report the status that blocked them, and
    authentication failures carry a bearer challenge.
    """
    logger.info(
        "request_rejected",
        code=exc.code,
        status_code=exc.status_code,
        message=exc.message,
    )

    content = _error_body(request, exc.__class__.__name__, exc.code, exc.message)
    if isinstance(exc, InvalidStateException) and exc.current_status is not None:
        content["current_status"] = exc.current_status

    headers = {"WWW-Authenticate": "Bearer"} if exc.code == "UNAUTHENTICATED" else None
    return JSONResponse(status_code=exc.status_code, content=content, headers=headers)


async def http_exception_handler(
    request: Request,
    exc: StarletteHTTPException,
) -> JSONResponse:
    """Render routing errors such as 404 and 405 in the common shape."""
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(request, "HTTPException", "HTTP_ERROR", exc.detail),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """
    Handle request body and query validation errors.

    Args:
        request: Request object
        exc: Validation exception

    Returns:
        422 response listing each failing field under ``details``
    """
    content = _error_body(
        request, "ValidationError", "VALIDATION_ERROR", "Request validation failed"
    )
    content["details"] = jsonable_encoder(exc.errors())
    return JSONResponse(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, content=content)


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure and answer 500 without exposing internals."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error_type=exc.__class__.__name__,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=_error_body(
            request, "InternalServerError", "INTERNAL_ERROR", "An unexpected error occurred"
        ),
    )
