"""Application and access logging for the assistant API.

- ``app.log`` receives everything logged under the ``redphone`` package
  logger; ``access.log`` receives one JSON line per HTTP request through the
  ``uvicorn.access`` logger. Both rotate at midnight.
- Formatting is human readable by default and JSON with ``LOG_JSON=true``.
- Request headers and (optionally) JSON bodies are scrubbed before logging:
  credentials plus customer contact details never reach the log files.

Environment variables: LOG_DIR, LOG_LEVEL, LOG_JSON, LOG_REQUEST_BODIES,
LOG_RETENTION_DAYS, LOG_ROTATE_UTC.
"""

from __future__ import annotations

import json
import logging
import os
import time
from logging.handlers import TimedRotatingFileHandler
from typing import Any, cast
from uuid import uuid4

from fastapi import FastAPI, Request

APP_LOGGER_NAME = "redphone"
ACCESS_LOGGER_NAME = "uvicorn.access"

SENSITIVE_FIELDS = {
    "authorization",
    "cookie",
    "set-cookie",
    "password",
    "token",
    "access_token",
    "refresh_token",
    "x-api-key",
    "email",
    "phone",
    "customeremail",
    "customerphone",
}

SKIP_PATHS = frozenset({"/api/health", "/api/metrics"})


class JsonFormatter(logging.Formatter):
    """One JSON object per record: level, time, logger name and message."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "level": record.levelname,
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() == "true"


def _formatter(log_json: bool) -> logging.Formatter:
    if log_json:
        return JsonFormatter()
    return logging.Formatter("[%(asctime)s] %(levelname)s in %(name)s: %(message)s")


def _rotating_handler(
    path: str, retention_days: int, utc: bool, formatter: logging.Formatter
) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        path, when="midnight", backupCount=retention_days, utc=utc
    )
    handler.setFormatter(formatter)
    return handler


def scrub(data: object) -> object:
    """Mask sensitive keys at any depth of a dict/list structure."""

    if isinstance(data, dict):
        return {
            key: "***" if str(key).lower() in SENSITIVE_FIELDS else scrub(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [scrub(item) for item in data]
    return data


def _install_access_logging(app: FastAPI) -> None:
    """Log each request as JSON and echo an ``X-Request-Id`` header.

    An incoming ``X-Request-Id`` is propagated; otherwise one is generated.
    Health and metrics requests are not logged.
    """

    log_bodies = _env_flag("LOG_REQUEST_BODIES")
    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        request_id = request.headers.get("X-Request-Id") or uuid4().hex
        request.state.request_id = request_id
        started = time.perf_counter()

        body: object = None
        if log_bodies:
            raw = await request.body()

            async def receive() -> dict:
                return {"type": "http.request", "body": raw, "more_body": False}

            request._receive = receive  # type: ignore[attr-defined]
            if raw:
                try:
                    body = scrub(json.loads(raw))
                except ValueError:
                    body = raw.decode("utf-8", errors="replace")

        response = await call_next(request)

        client_ip = request.headers.get("X-Forwarded-For")
        if not client_ip and request.client is not None:
            client_ip = request.client.host
        entry: dict[str, Any] = {
            "request_id": request_id,
            "method": request.method,
            "path": request.url.path,
            "status": response.status_code,
            "latency_ms": round((time.perf_counter() - started) * 1000, 2),
            "client_ip": client_ip,
            "headers": scrub(dict(request.headers)),
        }
        if body is not None:
            entry["body"] = body

        response.headers["X-Request-Id"] = request_id
        access_logger.info(json.dumps(entry, default=str))
        return response


def init_logging(app: FastAPI | None = None) -> None:
    """Attach rotating file handlers and, given an app, the access middleware."""

    log_dir = os.getenv("LOG_DIR", "logs")
    level = getattr(logging, os.getenv("LOG_LEVEL", "INFO").upper(), logging.INFO)
    retention_days = int(os.getenv("LOG_RETENTION_DAYS", "7"))
    rotate_utc = _env_flag("LOG_ROTATE_UTC")
    formatter = _formatter(_env_flag("LOG_JSON"))

    os.makedirs(log_dir, exist_ok=True)

    app_logger = logging.getLogger(APP_LOGGER_NAME)
    if not app_logger.handlers:
        app_logger.addHandler(
            _rotating_handler(
                os.path.join(log_dir, "app.log"), retention_days, rotate_utc, formatter
            )
        )
    app_logger.setLevel(level)

    access_logger = logging.getLogger(ACCESS_LOGGER_NAME)
    access_logger.handlers.clear()
    access_logger.addHandler(
        _rotating_handler(
            os.path.join(log_dir, "access.log"), retention_days, rotate_utc, formatter
        )
    )
    access_logger.setLevel(level)

    if app is not None:
        cast(Any, app).logger = app_logger
        _install_access_logging(app)
