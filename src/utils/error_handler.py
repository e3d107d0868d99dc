"""
Error Handler Utility - consistent, sanitised error responses

Every error leaves the API as:
    {"success": false, "statusCode": <code>, "message": "<text>"}

Handlers raise fastapi.HTTPException with a user-facing message; the
exception handlers registered by register_exception_handlers() render it.
Unexpected exceptions are logged with their traceback and rendered as a
generic 500 so internals never reach the client.

Usage:
    from src.utils.error_handler import log_and_raise

    try:
        db.create_listing(...)
    except StoreError as e:
        log_and_raise(500, "creating listing", e, logger)
"""

import logging
from typing import NoReturn
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.utils.response_models import error_response

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal Server Error"


def safe_error_response(
    status_code: int,
    operation: str,
    exception: Exception,
    logger: logging.Logger
) -> HTTPException:
    """
    Create a safe HTTPException that doesn't expose internal details.

    Args:
        status_code: HTTP status code (e.g., 500, 400)
        operation: What failed (e.g., "creating listing")
        exception: The caught exception
        logger: Logger instance for recording the error

    Returns:
        HTTPException with sanitized error message
    """
    logger.error(f"{operation} failed: {exception}", exc_info=True)

    if status_code >= 500:
        detail = f"An internal error occurred while {operation}. Please try again later."
    else:
        detail = f"Error while {operation}. Please check your request and try again."

    return HTTPException(status_code=status_code, detail=detail)


def log_and_raise(
    status_code: int,
    operation: str,
    exception: Exception,
    logger: logging.Logger
) -> NoReturn:
    """Log an exception and raise a safe HTTPException."""
    raise safe_error_response(status_code, operation, exception, logger) from exception


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    message = exc.detail if isinstance(exc.detail, str) else INTERNAL_ERROR_MESSAGE
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(exc.status_code, message),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    if field:
        message = f"{field}: {message}"
    return JSONResponse(status_code=422, content=error_response(422, message))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(f"Unhandled exception on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content=error_response(500, INTERNAL_ERROR_MESSAGE))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error renderers on an app."""
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
