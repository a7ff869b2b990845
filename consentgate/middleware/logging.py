"""
Structured Logging Middleware

One access log line per request, JSON by default, carrying a request id,
timing, the anonymized client IP and, where a route resolved it, the
visitor's consent state. Client IPs go through the same anonymization as
the consent audit log; the full address is never written.
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

from consentgate.consent.logger import anonymize_ip, resolve_client_ip

REQUEST_ID_HEADER = "X-Request-ID"

# Request paths probed by load balancers; logging them is noise
QUIET_PATHS = frozenset({"/health", "/ready"})

# LogRecord attributes copied into the JSON line when present
EXTRA_FIELDS = ("method", "path", "status_code", "duration_ms", "client_ip", "consent_state")

request_id_var: ContextVar[str] = ContextVar("request_id", default="")


def get_request_id() -> str:
    return request_id_var.get("")


class RequestIdFilter(logging.Filter):
    """Stamp every record with the id of the request being served."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


class StructuredFormatter(logging.Formatter):
    """Render records as single-line JSON for log aggregation."""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", ""),
        }
        entry.update({key: getattr(record, key) for key in EXTRA_FIELDS if hasattr(record, key)})

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class StructuredLoggingMiddleware(BaseHTTPMiddleware):
    """
    Args:
        app: ASGI app
        logger_name: Logger the access lines go to
    """

    def __init__(self, app: ASGIApp, logger_name: str = "consentgate.access"):
        super().__init__(app)
        self.logger = logging.getLogger(logger_name)

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request_id_var.set(request_id)

        peer = request.client.host if request.client else None
        client_ip = anonymize_ip(resolve_client_ip(request.headers, peer))
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as e:
            self._log(request, 500, started, client_ip, error=str(e))
            raise

        response.headers[REQUEST_ID_HEADER] = request_id
        self._log(request, response.status_code, started, client_ip)
        return response

    def _log(
        self,
        request: Request,
        status_code: int,
        started: float,
        client_ip: str,
        error: str | None = None,
    ) -> None:
        if request.url.path in QUIET_PATHS:
            return

        duration_ms = round((time.perf_counter() - started) * 1000, 2)
        extra = {
            "method": request.method,
            "path": request.url.path,
            "status_code": status_code,
            "duration_ms": duration_ms,
            "client_ip": client_ip,
        }
        consent_state = getattr(request.state, "consent_state", None)
        if consent_state:
            extra["consent_state"] = consent_state

        message = f"{request.method} {request.url.path} - {status_code} ({duration_ms:.2f}ms)"
        if error:
            message = f"{message} - Error: {error}"

        self.logger.log(_level_for(status_code), message, extra=extra)


# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = ("uvicorn", "uvicorn.access", "sqlalchemy.engine", "apscheduler", "httpx")


def setup_structured_logging(log_level: str = "INFO", json_format: bool = True, log_file: str | None = None) -> None:
    """
    Configure the root logger: one handler, JSON or plain text, request ids on every line.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR
        json_format: JSON lines (production) or human readable text
        log_file: Write to this file instead of stderr
    """
    level = getattr(logging, log_level.upper())

    handler = logging.FileHandler(log_file) if log_file else logging.StreamHandler()
    if json_format:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] %(message)s"))
    handler.addFilter(RequestIdFilter())

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)

    logging.getLogger("consentgate").setLevel(level)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
