"""Exception handlers producing the API error envelope.

Every error response has the shape
``{"error_code", "message", "details", "request_id"}``.
"""

import uuid
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from rankinsight.core.app_exceptions import AppError
from rankinsight.core.config import settings
from rankinsight.core.exceptions import GatewayUnavailableError
from rankinsight.core.logging import get_logger

logger = get_logger(__name__)


class ErrorResponse(BaseModel):
    error_code: str
    message: str
    details: Any | None = None
    request_id: str | None = None


def get_request_id(request: Request) -> str:
    """Id assigned by the request middleware, or a fresh one outside it."""
    return getattr(request.state, "request_id", None) or uuid.uuid4().hex


def _error_response(request: Request, status_code: int, code: str, message: str, details: Any = None) -> JSONResponse:
    body = ErrorResponse(error_code=code, message=message, details=details, request_id=get_request_id(request))
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())),
            "issue": error.get("msg", "Validation error"),
        }
        for error in exc.errors()
    ]
    return _error_response(
        request, status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", "Invalid request data", details
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    if isinstance(exc, AppError):
        return _error_response(request, exc.status_code, exc.code, exc.message, exc.details)
    # Framework-raised errors (404 route, 405 method, ...)
    return _error_response(request, exc.status_code, "HTTP_ERROR", str(exc.detail))


async def gateway_unavailable_handler(request: Request, exc: GatewayUnavailableError) -> JSONResponse:
    """Population store outages surface as 503."""
    logger.error(
        "population_gateway_unavailable",
        extra={"event": "population_gateway_unavailable", "request_id": get_request_id(request), "error": str(exc)},
    )
    return _error_response(
        request,
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "POPULATION_UNAVAILABLE",
        "Population data is temporarily unavailable",
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unhandled_exception",
        extra={"event": "unhandled_exception", "request_id": get_request_id(request)},
    )
    if settings.ENV == "prod":
        return _error_response(
            request, status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "An internal server error occurred"
        )
    return _error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "INTERNAL_ERROR",
        str(exc),
        {"type": type(exc).__name__},
    )
