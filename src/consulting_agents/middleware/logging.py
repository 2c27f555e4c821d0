"""Request logging middleware and root logger configuration."""

import json
import logging
import os
import re
import sys
import time
import uuid
from typing import Any

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Record attributes promoted to top-level keys in JSON output
_JSON_EXTRA_FIELDS = ("request_id", "session_id", "method", "path", "status_code", "duration_ms")

_SESSION_PATH = re.compile(r"/sessions/([0-9a-fA-F-]{36})")

_QUIET_LOGGERS = (
    "uvicorn.access",
    "httpx",
    "httpcore",
    "asyncio",
    "openai",
    "sqlalchemy.engine",
    "aiosqlite",
    "alembic",
    "mlflow",
)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log collectors."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        payload.update(
            (name, getattr(record, name)) for name in _JSON_EXTRA_FIELDS if hasattr(record, name)
        )
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class ColoredFormatter(logging.Formatter):
    """Console formatter that colors the level name."""

    COLORS = {
        "DEBUG": "\033[36m",
        "INFO": "\033[32m",
        "WARNING": "\033[33m",
        "ERROR": "\033[31m",
        "CRITICAL": "\033[35m",
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        # Other handlers share the record, so color a copy
        colored = logging.makeLogRecord(record.__dict__)
        color = self.COLORS.get(record.levelname, self.RESET)
        colored.levelname = f"{color}{record.levelname:8}{self.RESET}"
        return super().format(colored)


class RequestLoggingMiddleware:
    """Pure ASGI middleware logging one line per request.

    SSE streams flow through untouched: nothing here wraps the request in a
    task scope, so a client disconnect does not cancel the stream's database
    work. The request id is taken from ``X-Request-ID`` when the caller sends
    one, exposed as ``request.state.request_id`` and echoed on the response.
    Requests under ``/sessions/{id}`` also carry the session id in the record.
    """

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = Headers(scope=scope).get(REQUEST_ID_HEADER) or uuid.uuid4().hex[:8]
        scope.setdefault("state", {})["request_id"] = request_id

        method = scope.get("method", "")
        path = scope.get("path", "")
        extra: dict[str, Any] = {"request_id": request_id, "method": method, "path": path}
        match = _SESSION_PATH.search(path)
        if match:
            extra["session_id"] = match.group(1)

        started = time.perf_counter()

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                extra["status_code"] = message["status"]
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = request_id
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        except Exception:
            extra["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
            logger.exception("HTTP %s %s failed", method, path, extra=extra)
            raise

        extra["duration_ms"] = round((time.perf_counter() - started) * 1000, 2)
        logger.info(
            "HTTP %s %s -> %s",
            method,
            path,
            extra.get("status_code", "-"),
            extra=extra,
        )


def _build_formatter(log_format: str) -> logging.Formatter:
    if log_format.lower() == "json":
        return JsonFormatter(datefmt="%Y-%m-%dT%H:%M:%S")
    if sys.stdout.isatty() and os.environ.get("TERM"):
        return ColoredFormatter(
            fmt="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    return logging.Formatter(
        fmt="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def setup_logging(log_level: str = "INFO", log_format: str = "text") -> None:
    """Install a single stdout handler on the root logger.

    Args:
        log_level: DEBUG, INFO, WARNING or ERROR.
        log_format: "text" for consoles, "json" for deployed environments.
    """
    level = logging.getLevelName(log_level.upper())
    root = logging.getLogger()
    root.setLevel(level)
    for handler in list(root.handlers):
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(_build_formatter(log_format))
    root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
    logging.getLogger("consulting_agents").setLevel(level)

    logger.info("Logging configured: level=%s format=%s", log_level, log_format)
