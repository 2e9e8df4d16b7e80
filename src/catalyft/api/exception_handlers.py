"""
Exception handlers for the FastAPI application.

Every failure is rendered as ``{"error": message}`` with optional ``code``
and ``details`` keys, carrying the same CORS headers as successful
responses so browser clients can read the body.
"""

import logging
import traceback
from typing import Any, Dict

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..exceptions import CatalyftError, ErrorCode, MethodNotAllowedError


logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}


def create_error_response(
    status_code: int,
    message: str,
    code: str | None = None,
    details: Dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a function error response."""
    content: Dict[str, Any] = {"error": message}
    if code:
        content["code"] = code
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=CORS_HEADERS)


async def catalyft_error_handler(request: Request, exc: CatalyftError) -> JSONResponse:
    """Handle all CatalyftError exceptions."""
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc!r}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=CORS_HEADERS)


async def request_validation_error_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Malformed request bodies are reported as 400, like missing fields."""
    errors = []
    for error in exc.errors():
        loc = ".".join(str(x) for x in error["loc"])
        errors.append({"field": loc, "message": error["msg"], "type": error["type"]})

    return create_error_response(
        status_code=400,
        message="Invalid request body",
        code=ErrorCode.VALIDATION_ERROR.value,
        details={"errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Render routing errors; ``OPTIONS`` always answers ``ok``."""
    if request.method == "OPTIONS":
        return PlainTextResponse("ok", headers=CORS_HEADERS)
    if exc.status_code == 405:
        error = MethodNotAllowedError(request.method)
        return JSONResponse(status_code=405, content=error.to_dict(), headers=CORS_HEADERS)
    return create_error_response(status_code=exc.status_code, message=str(exc.detail))


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.error(f"Unhandled exception: {exc}\n{traceback.format_exc()}")
    return create_error_response(status_code=500, message="Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    """
    Register all exception handlers with the FastAPI application.

    Args:
        app: The FastAPI application instance
    """
    app.add_exception_handler(CatalyftError, catalyft_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)

    # Catches everything else, so register last
    app.add_exception_handler(Exception, generic_exception_handler)
