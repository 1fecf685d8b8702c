"""Logging and error responses for the relay.

Anything that fails before a dialog starts streaming (routing, validation,
dependency wiring) is turned into the JSON ``ErrorResponse`` envelope here.
Failures inside a running dialog are reported in-band as error frames and
never reach these handlers.

Log lines carry the request correlation id. Fields whose names look like
credentials are redacted before they reach a handler.
"""

import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from deepclaude.core.config import get_settings
from deepclaude.core.exceptions import (
    DialogError,
    UpstreamConnectionError,
    UpstreamParseError,
)
from deepclaude.core.security_config import get_allowed_error_fields, is_sensitive_key
from deepclaude.schemas.api import ErrorResponse


REDACTED = "[REDACTED]"

# anyio copies the context into the worker thread that runs a dialog, so
# phase logs keep the id of the request that started them.
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

DOMAIN_ERROR_MESSAGES: dict[type[DialogError], str] = {
    UpstreamConnectionError: "The model service is currently unavailable",
    UpstreamParseError: "The model service returned an invalid response",
}


def get_correlation_id() -> str:
    """Return the current correlation id, creating one on first use."""
    correlation_id = _correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        _correlation_id_var.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id_var.set(correlation_id)


def redact(value: Any) -> Any:
    """Return a copy of ``value`` with credential-like entries masked.

    Dict keys are checked by name. A ``{"name": ..., "value": ...}`` pair
    (a header as some clients log it) has its value masked when the name is
    sensitive. Lists are walked; other values are returned unchanged.
    """
    if isinstance(value, list):
        return [redact(item) for item in value]
    if not isinstance(value, dict):
        return value

    label = value.get("name", value.get("key"))
    header_like = "value" in value and isinstance(label, str)
    if header_like and is_sensitive_key(label):
        return {k: (REDACTED if k == "value" else v) for k, v in value.items()}

    return {
        k: REDACTED if is_sensitive_key(str(k)) else redact(v)
        for k, v in value.items()
    }


class StructuredLogger:
    """Logger wrapper taking structured fields as keyword arguments.

    Outside production the fields are appended to the message as ``k=v``
    pairs; in production they travel in the record's ``context`` attribute
    for the JSON formatter.
    """

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _emit(
        self, level: int, message: str, fields: dict[str, Any], exc_info: bool = False
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        correlation_id = get_correlation_id()
        context = redact(fields)
        extra = {"correlation_id": correlation_id, "context": context}

        if get_settings().ENVIRONMENT != "production":
            details = "".join(f" {k}={v}" for k, v in context.items())
            message = f"[{correlation_id}] {message}{details}"
        self.logger.log(level, message, extra=extra, exc_info=exc_info)

    def debug(self, message: str, **fields: Any) -> None:
        self._emit(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._emit(logging.INFO, message, fields)

    def warning(self, message: str, **fields: Any) -> None:
        self._emit(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._emit(logging.ERROR, message, fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Log at ERROR with the active exception's traceback."""
        self._emit(logging.ERROR, message, fields, exc_info=True)


structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware:
    """Route exceptions escaping the app through global_exception_handler.

    Once a response has started (a dialog stream) the status line is gone,
    so the exception is re-raised for the server to log.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        response_started = False

        async def track_start(message: Message) -> None:
            nonlocal response_started
            if message["type"] == "http.response.start":
                response_started = True
            await send(message)

        try:
            await self.app(scope, receive, track_start)
        except Exception as exc:  # noqa: BLE001
            if response_started:
                raise
            response = await global_exception_handler(Request(scope), exc)
            await response(scope, receive, send)


def error_response(
    status_code: int,
    error_type: str,
    message: str,
    *,
    environment: str,
    **diagnostics: Any,
) -> JSONResponse:
    """Build the error envelope, keeping only fields allowed in ``environment``."""
    allowed = get_allowed_error_fields(environment)
    error: dict[str, Any] = {
        "correlation_id": get_correlation_id(),
        "type": error_type,
    }
    error.update(
        (name, value)
        for name, value in diagnostics.items()
        if name in allowed and value is not None
    )
    body = ErrorResponse(message=message, error=error)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    environment = get_settings().ENVIRONMENT

    if isinstance(exc, StarletteHTTPException):
        return error_response(
            exc.status_code,
            "http_error",
            "An HTTP error occurred",
            environment=environment,
            details={"detail": exc.detail},
            exception_type=exc.__class__.__name__,
        )

    if isinstance(exc, RequestValidationError | ValidationError):
        structured_logger.warning(
            "Request rejected", path=request.url.path, errors=len(exc.errors())
        )
        return error_response(
            422,
            "validation_error",
            "Invalid request data provided",
            environment=environment,
            validation_errors=exc.errors(),
        )

    if isinstance(exc, DialogError):
        structured_logger.warning(
            "Domain error before streaming", error_code=exc.error_code, error=exc.message
        )
        return error_response(
            502,
            "domain_error",
            DOMAIN_ERROR_MESSAGES.get(type(exc), "The model service failed"),
            environment=environment,
            details={"error_code": exc.error_code},
        )

    structured_logger.exception(
        "Unhandled exception", exception_type=exc.__class__.__name__
    )
    return error_response(
        500,
        "internal_server_error",
        "An internal error occurred",
        environment=environment,
        traceback="".join(traceback.format_exception(exc)).strip(),
        exception_type=exc.__class__.__name__,
    )


def setup_logging() -> None:
    """Install the root handler once; JSON lines in production."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    environment = get_settings().ENVIRONMENT
    level = logging.DEBUG if environment == "development" else logging.INFO

    formatter: logging.Formatter
    if environment == "production":
        from pythonjsonlogger.json import JsonFormatter

        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s %(correlation_id)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    handler.setLevel(level)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    if environment == "production":
        # httpx logs every upstream request at INFO
        for noisy in ("uvicorn.access", "httpx", "httpcore"):
            logging.getLogger(noisy).setLevel(logging.WARNING)
