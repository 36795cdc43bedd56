"""
Exception handlers producing the JSON error envelope.
"""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import core.config as config
from core.errors import (
    AuthenticationError,
    EmbeddingProviderError,
    StorageError,
    ValidationIssue,
)

logger = config.logger


def error_response(status_code: int, error: str, **extra) -> JSONResponse:
    body = {"error": error}
    body.update({key: value for key, value in extra.items() if value is not None})
    return JSONResponse(status_code=status_code, content=body)


async def _validation_issue_handler(request: Request, exc: ValidationIssue):
    logger.info(
        "request_validation_error",
        extra={"path": request.url.path, "field": exc.field, "error_type": exc.error_type},
    )
    return error_response(400, str(exc), field=exc.field)


async def _request_validation_handler(request: Request, exc: RequestValidationError):
    errors = jsonable_encoder(exc.errors())
    field = None
    message = "Invalid request"
    if errors:
        loc = [str(part) for part in errors[0].get("loc", ()) if part not in ("body", "query", "path")]
        field = ".".join(loc) or None
        message = f"{field}: {errors[0].get('msg')}" if field else errors[0].get("msg", message)
    return error_response(400, message, field=field, details=errors)


async def _authentication_handler(request: Request, exc: AuthenticationError):
    return error_response(401, str(exc) or "Authentication failed")


async def _http_exception_handler(request: Request, exc: StarletteHTTPException):
    detail = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return error_response(exc.status_code, detail)


async def _server_error_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_error",
        extra={
            "path": request.url.path,
            "error_class": exc.__class__.__name__,
            "detail": str(exc),
        },
    )
    return error_response(500, "Internal server error")


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ValidationIssue, _validation_issue_handler)
    app.add_exception_handler(RequestValidationError, _request_validation_handler)
    app.add_exception_handler(AuthenticationError, _authentication_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(StorageError, _server_error_handler)
    app.add_exception_handler(EmbeddingProviderError, _server_error_handler)
    app.add_exception_handler(Exception, _server_error_handler)
