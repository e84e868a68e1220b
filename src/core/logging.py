"""
Structured logging for the Session Recorder API.

JSON lines in deployed environments, a readable console renderer locally.
Storage events carry a redacted snapshot of the storage configuration so one
log line is enough to tell "not set up" from "set up but failing".
"""

import logging
import sys
from collections.abc import Callable
from typing import Any

import structlog
from structlog.types import Processor

from src.core.config import Settings, get_settings

# Libraries whose INFO output drowns out request and storage events
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


def _shared_processors() -> list[Processor]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]


def _renderers(settings: Settings) -> list[Processor]:
    if settings.log_format == "json":
        return [
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ]
    return [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]


def configure_logging(settings: Settings | None = None) -> None:
    """
    Configure structlog and the stdlib root logger.

    Args:
        settings: Application settings. If None, uses the cached settings.
    """
    settings = settings or get_settings()
    level = logging.getLevelName(settings.log_level)

    structlog.configure(
        processors=[*_shared_processors(), *_renderers(settings)],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


def get_logger(name: str | None = None) -> structlog.stdlib.BoundLogger:
    """Get a structured logger bound to ``name``."""
    return structlog.get_logger(name)


def serialize_error(error: BaseException) -> dict[str, Any]:
    """Flatten an exception (and its cause chain) into a loggable dict."""
    payload: dict[str, Any] = {
        "name": type(error).__name__,
        "message": str(error),
    }
    details = getattr(error, "details", None)
    if details:
        payload["details"] = details
    cause = error.__cause__
    if cause is not None:
        payload["cause"] = serialize_error(cause)
    return payload


class RequestLogger:
    """Logs each HTTP request once on arrival and once on completion."""

    def __init__(self) -> None:
        self.logger = get_logger("http")

    def log_request(self, method: str, path: str, client_ip: str | None = None) -> None:
        self.logger.debug("request_received", method=method, path=path, client_ip=client_ip)

    def log_response(
        self,
        method: str,
        path: str,
        status_code: int,
        duration_ms: float,
    ) -> None:
        """Log the outcome; 5xx as error, 4xx as warning."""
        if status_code >= 500:
            log = self.logger.error
        elif status_code >= 400:
            log = self.logger.warning
        else:
            log = self.logger.info
        log(
            "request_completed",
            method=method,
            path=path,
            status_code=status_code,
            duration_ms=round(duration_ms, 2),
        )


def describe_storage_env(settings: Settings) -> dict[str, Any]:
    """Summarize storage configuration without exposing credentials."""
    service_key = settings.storage_service_key
    return {
        "mode": settings.storage_mode,
        "endpoint_url": "[set]" if settings.storage_endpoint_url else None,
        "bucket": settings.storage_bucket,
        "service_key": f"{len(service_key)} chars" if service_key else None,
        "public_base_url": settings.public_storage_base_url,
        "app_env": settings.app_env,
    }


class StorageLogger:
    """Logger for blob storage operations."""

    def __init__(self, settings_provider: Callable[[], Settings]) -> None:
        self.logger = get_logger("storage")
        self._settings_provider = settings_provider

    def snapshot(self) -> dict[str, Any]:
        """Current redacted storage configuration."""
        return describe_storage_env(self._settings_provider())

    def info(self, event: str, **payload: Any) -> None:
        self.logger.info(event, env=self.snapshot(), **payload)

    def error(self, event: str, **payload: Any) -> None:
        self.logger.error(event, env=self.snapshot(), **payload)
