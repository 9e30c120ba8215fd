"""
Centralized logging configuration for the Turnstile validation service.

This module sets up structured logging with:
- Settings-driven configuration (dev vs production)
- JSON formatting for production, pretty console for development
- IP hashing for GDPR compliance in production
- Redaction of secrets and tokens so siteverify credentials never hit the logs
"""

from __future__ import annotations

import hashlib
import logging
import os
import sys
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Optional

import structlog
from structlog.types import EventDict, Processor

if TYPE_CHECKING:
    from config import LoggingSettings


# Environment configuration
ENV = os.getenv("ENV", "development")
IS_PRODUCTION = ENV == "production"

# Sensitive fields to redact from logs
REDACTED_FIELDS = {
    "password",
    "token",
    "response",
    "api_key",
    "authorization",
    "cookie",
    "secret",
    "key",
}

# Keys that structlog itself owns; never redacted
_RESERVED_KEYS = {"level", "event", "timestamp", "logger"}


def hash_ip(ip_address: str) -> str:
    """
    Hash IP address for privacy in production.

    In production, returns SHA-256 hash (first 16 chars) for GDPR compliance.
    In development, returns the original IP for easier debugging.
    """
    if IS_PRODUCTION and ip_address:
        return hashlib.sha256(ip_address.encode()).hexdigest()[:16]
    return ip_address


def add_timestamp(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Add ISO format timestamp to event dict."""
    event_dict["timestamp"] = datetime.now(timezone.utc).isoformat()
    return event_dict


def redact_sensitive_fields(
    logger: logging.Logger, method_name: str, event_dict: EventDict
) -> EventDict:
    """Redact sensitive fields from logs."""
    for key in list(event_dict.keys()):
        if key in _RESERVED_KEYS:
            continue
        if key.lower() in REDACTED_FIELDS or any(
            sensitive in key.lower()
            for sensitive in ["password", "token", "key", "secret"]
        ):
            event_dict[key] = "***REDACTED***"
    return event_dict


def configure_structlog(log_format: str = "console") -> None:
    """
    Configure structlog with appropriate processors for the environment.

    Production: JSON formatting for easy parsing
    Development: Pretty console formatting with colors
    """
    shared_processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        add_timestamp,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_sensitive_fields,
        structlog.processors.format_exc_info,
    ]

    if log_format == "json":
        renderer: Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=True,
            pad_event=15,
            sort_keys=False,
        )

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_stdlib_logging(log_level: str = "INFO") -> None:
    """
    Configure standard library logging to work with structlog.

    Sets up the root level, a stdout handler and quiets chatty HTTP libraries.
    """
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, log_level.upper(), logging.INFO),
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


def setup_logging(
    settings: Optional["LoggingSettings"] = None,
    is_production: Optional[bool] = None,
) -> None:
    """
    Initialize logging system for the application.

    This is the main entry point for logging configuration and is called by
    create_app() before anything else logs. Values left unset in *settings*
    (or in LOG_LEVEL / LOG_FORMAT when no settings are given) default to
    INFO/json in production and DEBUG/console otherwise.
    """
    if is_production is None:
        is_production = IS_PRODUCTION

    if settings is not None:
        log_level, log_format = settings.log_level, settings.log_format
    else:
        log_level, log_format = os.getenv("LOG_LEVEL"), os.getenv("LOG_FORMAT")

    log_level = log_level or ("INFO" if is_production else "DEBUG")
    log_format = log_format or ("json" if is_production else "console")

    configure_stdlib_logging(log_level)
    configure_structlog(log_format)

    logger = structlog.get_logger(__name__)
    logger.info(
        "logging_initialized",
        env=ENV,
        log_level=log_level,
        log_format=log_format,
    )
