"""Error responses and structured logging for the IconStream relay.

Every failure, whether raised by the relay itself, by FastAPI validation or
by a bug, leaves the API as ``{"error": ..., "details": ...}``; the browser
client and ``client.relay_client`` only understand that one shape.

Log lines carry the request's correlation id. Credentials are masked before
a record is emitted, and production logs are JSON.
"""

import logging
import sys
import traceback
import uuid
from contextvars import ContextVar
from typing import Any

from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from pythonjsonlogger.json import JsonFormatter
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from core.config import get_settings
from core.exceptions import RelayError
from core.security_config import get_allowed_diagnostic_fields, redact
from schemas.api import ErrorResponse


INTERNAL_ERROR_MESSAGE = "An internal error occurred"
VALIDATION_ERROR_MESSAGE = "Invalid request data provided"

_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)


def get_correlation_id() -> str:
    """Correlation id of the current request, minted on first use outside one."""
    correlation_id = _correlation_id_var.get()
    if not correlation_id:
        correlation_id = str(uuid.uuid4())
        _correlation_id_var.set(correlation_id)
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    _correlation_id_var.set(correlation_id)


class StructuredLogger:
    """Logger wrapper adding the correlation id and masking credentials.

    Keyword arguments become structured fields. In production they are
    merged into the JSON record; elsewhere they ride along as
    ``structured_data`` next to a ``[<correlation id>] message`` line.
    """

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def log(
        self, level: int, message: str, *, exc_info: bool = False, **fields: Any
    ) -> None:
        if not self.logger.isEnabledFor(level):
            return
        correlation_id = get_correlation_id()
        data = {"correlation_id": correlation_id, **redact(fields)}

        if get_settings().ENVIRONMENT == "production":
            # LogRecord reserves `message`; callers use other field names
            self.logger.log(level, message, extra=data, exc_info=exc_info)
        else:
            self.logger.log(
                level,
                f"[{correlation_id}] {message}",
                extra={"structured_data": data},
                exc_info=exc_info,
            )

    def info(self, message: str, **fields: Any) -> None:
        self.log(logging.INFO, message, **fields)

    def warning(self, message: str, **fields: Any) -> None:
        self.log(logging.WARNING, message, **fields)

    def error(self, message: str, **fields: Any) -> None:
        self.log(logging.ERROR, message, **fields)

    def exception(self, message: str, **fields: Any) -> None:
        """Error level, with the active exception's traceback attached."""
        self.log(logging.ERROR, message, exc_info=True, **fields)


structured_logger = StructuredLogger(__name__)


class ExceptionNormalizationMiddleware(BaseHTTPMiddleware):
    """Last line of defense: route any escaped exception to the handler."""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:  # noqa: BLE001
            return await global_exception_handler(request, exc)


def _build_error_response(
    *,
    message: str,
    environment: str,
    status_code: int = 500,
    details: Any = None,
    diagnostics: dict[str, Any] | None = None,
) -> JSONResponse:
    """Render ``{error, details?}``, attaching diagnostics the environment allows.

    Diagnostics merge into dict details or become the details; text details
    (an upstream error body, for instance) are never altered.
    """
    allowed = get_allowed_diagnostic_fields(environment)
    extra = {
        name: value
        for name, value in (diagnostics or {}).items()
        if name in allowed and value is not None
    }
    if extra and details is None:
        details = extra
    elif extra and isinstance(details, dict):
        details = details | extra

    body = ErrorResponse(error=message, details=details)
    return JSONResponse(status_code=status_code, content=body.to_content())


def _relay_error_response(exc: RelayError, environment: str) -> JSONResponse:
    level = logging.WARNING if exc.status_code < 500 else logging.ERROR
    structured_logger.log(
        level,
        "Relay request failed",
        error_type=type(exc).__name__,
        status_code=exc.status_code,
        relay_message=exc.message,
    )
    # Relay errors already carry client-facing text; upstream bodies pass as-is
    return _build_error_response(
        message=exc.message,
        environment=environment,
        status_code=exc.status_code,
        details=exc.details,
    )


def _validation_error_response(
    exc: ValidationError | RequestValidationError, environment: str
) -> JSONResponse:
    errors = jsonable_encoder(exc.errors())
    structured_logger.warning("Request validation failed", error_count=len(errors))
    return _build_error_response(
        message=VALIDATION_ERROR_MESSAGE,
        environment=environment,
        status_code=422,
        diagnostics={"validation_errors": errors},
    )


async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Map any exception to the relay's error shape."""
    environment = get_settings().ENVIRONMENT

    if isinstance(exc, RelayError):
        return _relay_error_response(exc, environment)

    if isinstance(exc, ValidationError | RequestValidationError):
        return _validation_error_response(exc, environment)

    if isinstance(exc, StarletteHTTPException):
        return _build_error_response(
            message=str(exc.detail),
            environment=environment,
            status_code=exc.status_code,
            diagnostics={"exception_type": type(exc).__name__},
        )

    structured_logger.exception(
        "Unhandled exception",
        exception_type=type(exc).__name__,
        path=request.url.path,
    )
    return _build_error_response(
        message=INTERNAL_ERROR_MESSAGE,
        environment=environment,
        diagnostics={
            "exception_type": type(exc).__name__,
            "traceback": "".join(traceback.format_exception(exc)).strip(),
        },
    )


def _formatter(environment: str) -> logging.Formatter:
    if environment == "production":
        return JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    return logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")


def setup_logging() -> None:
    """Attach a stdout handler to the root logger once per process."""
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return

    environment = get_settings().ENVIRONMENT
    level = logging.DEBUG if environment == "development" else logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(_formatter(environment))
    handler.setLevel(level)
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    if environment == "production":
        # Third-party request logging stays at warning in production
        logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
        logging.getLogger("httpx").setLevel(logging.WARNING)
