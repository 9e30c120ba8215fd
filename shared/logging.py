"""
Logger factory and logging helpers.

Provides:
- get_logger(): Get a configured logger instance
- hash_ip(): Hash IP addresses for privacy
- log_with_context(): Bind common context to a logger
"""

from __future__ import annotations

from typing import Optional

import structlog
from structlog.stdlib import BoundLogger

from shared.logging_config import configure_structlog, hash_ip as _hash_ip, setup_logging

__all__ = [
    "get_logger",
    "hash_ip",
    "log_with_context",
    "configure_structlog",
    "setup_logging",
]


def get_logger(name: str) -> BoundLogger:
    """
    Get a configured logger instance.

    Example:
        >>> from shared.logging import get_logger
        >>> log = get_logger(__name__)
        >>> log.info("turnstile_validation_succeeded", cached=False)
    """
    return structlog.get_logger(name)


def hash_ip(ip_address: Optional[str]) -> Optional[str]:
    """
    Hash IP address for privacy in production.

    Wrapper around logging_config.hash_ip() that handles None gracefully.
    """
    if ip_address is None:
        return None
    return _hash_ip(ip_address)


def log_with_context(logger: BoundLogger, **context) -> BoundLogger:
    """
    Bind context to a logger for all subsequent log calls.

    Example:
        >>> log = log_with_context(get_logger(__name__), path="/login")
        >>> log.warning("turnstile_captcha_rejected")
    """
    return logger.bind(**context)
