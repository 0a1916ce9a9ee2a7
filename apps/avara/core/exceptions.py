from __future__ import annotations

import logging
from typing import Any

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.status import HTTP_422_UNPROCESSABLE_ENTITY, HTTP_500_INTERNAL_SERVER_ERROR

logger = logging.getLogger(__name__)


def _error_payload(
    *,
    error: str,
    type_: str,
    code: str | None = None,
    details: Any | None = None,
) -> dict[str, Any]:
    payload: dict[str, Any] = {"error": error, "code": code, "type": type_}
    if details is not None:
        payload["details"] = details
    return payload


class AvaraException(Exception):
    """Base exception for Avara services.

    Raised from service functions invoked by request handlers (or by Celery
    tasks) so FastAPI can translate them via the registered exception handlers.
    """

    status_code: int = 400
    default_code: str | None = None

    def __init__(
        self,
        message: str,
        *,
        code: str | None = None,
        status_code: int | None = None,
        details: Any | None = None,
    ) -> None:
        self.message = message
        self.code = code if code is not None else self.default_code
        self.status_code = status_code if status_code is not None else self.status_code
        self.details = details
        super().__init__(message)


class ValidationError(AvaraException):
    """Raised when a request violates a schema rule or a lifecycle precondition."""

    status_code = 400
    default_code = "validation_error"


class AuthenticationError(AvaraException):
    """Raised when the bearer token is missing or cannot be verified."""

    status_code = 401
    default_code = "unauthorized"


class NotFoundError(AvaraException):
    """Raised when a referenced project, document or context does not exist."""

    status_code = 404
    default_code = "not_found"


class ConflictError(AvaraException):
    """Raised when a write targets a stale document version."""

    status_code = 409
    default_code = "conflict"


class ConfigurationError(AvaraException):
    """Raised when configuration is invalid (server-side)."""

    status_code = 500
    default_code = "configuration_error"


class SynthesisError(AvaraException):
    """Raised when a synthesis call fails or returns unusable content.

    Callers at the synthesis boundary catch this and degrade to defaults.
    """

    status_code = 502
    default_code = "synthesis_failed"


class ServiceUnavailableError(AvaraException):
    """Raised when an upstream dependency is unavailable."""

    status_code = 503
    default_code = "service_unavailable"


def register_exception_handlers(app: FastAPI) -> None:
    """Register Avara's exception handlers on a FastAPI app."""

    @app.exception_handler(AvaraException)
    async def _avara_exception_handler(_request: Request, exc: AvaraException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(
                error=exc.message,
                code=exc.code,
                type_=exc.__class__.__name__,
                details=exc.details,
            ),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_exception_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=HTTP_422_UNPROCESSABLE_ENTITY,
            content=_error_payload(
                error="Validation error",
                code="validation_error",
                type_=exc.__class__.__name__,
                details=jsonable_errors(exc.errors()),
            ),
        )

    @app.exception_handler(StarletteHTTPException)
    async def _http_exception_handler(
        _request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        detail = getattr(exc, "detail", None)
        if isinstance(detail, str):
            error = detail
            details = None
        else:
            error = "Request failed"
            details = detail
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_payload(
                error=error,
                code="http_exception",
                type_=exc.__class__.__name__,
                details=details,
            ),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unhandled_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled exception: %s", exc)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_payload(
                error="Internal server error",
                code="internal_error",
                type_="InternalServerError",
            ),
        )


def jsonable_errors(errors: Any) -> Any:
    """Pydantic error lists may carry exception objects in `ctx`; stringify them."""
    out = []
    for err in errors or []:
        item = dict(err)
        ctx = item.get("ctx")
        if isinstance(ctx, dict):
            item["ctx"] = {k: (v if isinstance(v, (str, int, float, bool)) else str(v)) for k, v in ctx.items()}
        out.append(item)
    return out
