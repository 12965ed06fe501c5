"""
Access logging and log configuration.

Every request gets an id (taken from ``X-Request-ID`` or generated) that is
echoed back in the response and stamped on every log record emitted while
the request is handled.  With ``LOG_JSON`` enabled records are written as
one JSON object per line.
"""

import json
import logging
import time
import uuid
from collections.abc import Callable
from contextvars import ContextVar
from datetime import datetime, timezone

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

ACCESS_LOGGER = "portal_authz.access"
REQUEST_ID_HEADER = "X-Request-ID"
UNLOGGED_PATHS = frozenset({"/health"})

PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s [%(request_id)s] %(message)s"

# Loggers that are too chatty at INFO
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "sqlalchemy.engine")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get()
        return True


class StructuredFormatter(logging.Formatter):
    """One JSON object per record, carrying the permission context when present."""

    CONTEXT_FIELDS = (
        "caller_uid",
        "job_id",
        "target_user_id",
        "method",
        "path",
        "status_code",
        "duration_ms",
        "error_code",
    )

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        entry.update({key: getattr(record, key) for key in self.CONTEXT_FIELDS if hasattr(record, key)})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


def level_for_status(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    def __init__(self, app: ASGIApp, logger_name: str = ACCESS_LOGGER):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        request_id_var.set(request_id)
        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception as e:
            self._access(request, 500, started, error=e)
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        self._access(request, response.status_code, started)
        return response

    def _access(
        self,
        request: Request,
        status_code: int,
        started: float,
        error: Exception | None = None,
    ) -> None:
        if request.url.path in UNLOGGED_PATHS:
            return

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        context = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            # Set by get_caller_uid once the bearer token has been verified
            "caller_uid": getattr(request.state, "caller_uid", None) or "-",
        }

        message = f"{request.method} {request.url.path} {status_code} {duration_ms}ms caller={context['caller_uid']}"
        if error is not None:
            message = f"{message} error={error!r}"
        self.logger.log(level_for_status(status_code), message, extra=context)


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True) -> None:
    """
    Configure the root logger.

    Args:
        log_level: Level name for the application loggers
        json_format: Emit JSON lines instead of the plain text format
    """
    level = logging.getLevelName(log_level.upper())

    handler = logging.StreamHandler()
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(StructuredFormatter() if json_format else logging.Formatter(PLAIN_FORMAT))

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("portal_authz").setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
