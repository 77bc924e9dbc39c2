"""
TLV Engine - FastAPI Exception Handlers

Converts TlvEngineException and request errors into the JSON error body
used by every endpoint: {"success": false, "error": "..."}.
"""

import logging
from http import HTTPStatus
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, HTTPException
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.exceptions import (
    TlvEngineException,
    TlvDecodeException,
    UnknownRequestTypeException,
    UnknownTagSpaceException,
    ConfigurationException,
)

logger = logging.getLogger(__name__)


# Exception to HTTP status mapping
EXCEPTION_TO_STATUS: Dict[type, HTTPStatus] = {
    TlvDecodeException: HTTPStatus.BAD_REQUEST,
    UnknownRequestTypeException: HTTPStatus.BAD_REQUEST,
    UnknownTagSpaceException: HTTPStatus.BAD_REQUEST,
    ConfigurationException: HTTPStatus.INTERNAL_SERVER_ERROR,
}


def get_status_for_exception(exc: Exception) -> HTTPStatus:
    """Get the HTTP status for an exception."""
    exc_type = type(exc)

    if exc_type in EXCEPTION_TO_STATUS:
        return EXCEPTION_TO_STATUS[exc_type]

    for base_type, status in EXCEPTION_TO_STATUS.items():
        if isinstance(exc, base_type):
            return status

    return HTTPStatus.INTERNAL_SERVER_ERROR


def create_error_response(
    message: str,
    error_code: Optional[str] = None,
    details: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Create a standardized error response body."""
    response: Dict[str, Any] = {"success": False, "error": message}
    if error_code:
        response["errorCode"] = error_code
    if details:
        response["details"] = details
    return response


def _headers(request: Request) -> Dict[str, str]:
    correlation_id = getattr(request.state, "correlation_id", None)
    return {"X-Correlation-ID": correlation_id} if correlation_id else {}


async def tlv_engine_exception_handler(
    request: Request, exc: TlvEngineException
) -> JSONResponse:
    """Handle TlvEngineException and its subclasses."""
    status = get_status_for_exception(exc)

    log = logger.error if status >= HTTPStatus.INTERNAL_SERVER_ERROR else logger.warning
    log(
        f"{type(exc).__name__}: {exc.error_code} - {exc.message}",
        extra={"path": request.url.path, "context": exc.context},
    )

    return JSONResponse(
        status_code=status.value,
        content=create_error_response(exc.message, exc.error_code, exc.context or None),
        headers=_headers(request),
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    """Handle FastAPI/Starlette HTTPException."""
    logger.warning(
        f"HTTPException: {exc.status_code} - {exc.detail}",
        extra={"path": request.url.path},
    )

    message = str(exc.detail) if exc.detail else HTTPStatus(exc.status_code).phrase
    if exc.status_code == HTTPStatus.NOT_FOUND and message == HTTPStatus.NOT_FOUND.phrase:
        message = "Endpoint not found"

    return JSONResponse(
        status_code=exc.status_code,
        content=create_error_response(message),
        headers=_headers(request),
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Handle request body/query validation errors as bad requests."""
    errors = []
    for error in exc.errors():
        errors.append({
            "field": ".".join(str(loc) for loc in error.get("loc", []) if loc != "body"),
            "message": error.get("msg", "Validation error"),
            "type": error.get("type", "unknown"),
        })

    logger.warning(
        f"Validation error: {len(errors)} field(s) invalid",
        extra={"path": request.url.path, "errors": errors},
    )

    summary = "; ".join(f"{e['field']}: {e['message']}" for e in errors)
    return JSONResponse(
        status_code=HTTPStatus.BAD_REQUEST.value,
        content=create_error_response(
            f"Invalid request: {summary}" if summary else "Invalid request",
            "REQUEST_VALIDATION_ERROR",
            {"validation_errors": errors},
        ),
        headers=_headers(request),
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handle unexpected exceptions."""
    logger.exception(
        f"Unhandled exception: {type(exc).__name__} - {str(exc)}",
        extra={"path": request.url.path},
    )

    return JSONResponse(
        status_code=HTTPStatus.INTERNAL_SERVER_ERROR.value,
        content=create_error_response("Internal server error"),
        headers=_headers(request),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers with the FastAPI application."""
    app.add_exception_handler(TlvEngineException, tlv_engine_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    logger.info("Exception handlers registered successfully")
