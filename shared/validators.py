"""
Input validators for Turnstile tokens - framework-agnostic, pure functions.

These run before any cache or network access so malformed tokens never
consume cache slots or trigger a siteverify call.
"""

from __future__ import annotations

from typing import Optional

from schemas.models.validation import ValidationResult
from shared.logging import get_logger

log = get_logger(__name__)

# Cloudflare tokens are long structured strings (typically 100+ chars). This
# is a cheap pre-filter, not a format check.
MIN_TOKEN_LENGTH = 20

_UNKNOWN_IP = "unknown"


def check_token(token: Optional[str]) -> Optional[ValidationResult]:
    """Return an INPUT_ERROR result for a malformed token, or None to proceed.

    Rules, first match wins:
    - ``None`` → "Token cannot be null"
    - empty or whitespace only → "Token cannot be empty or blank"
    - shorter than ``MIN_TOKEN_LENGTH`` → "Token is too short to be valid (length: N)"
    """
    if token is None:
        log.warning("turnstile_input_rejected", reason="null")
        return ValidationResult.input_error("Token cannot be null")

    if not token.strip():
        log.warning("turnstile_input_rejected", reason="blank")
        return ValidationResult.input_error("Token cannot be empty or blank")

    if len(token) < MIN_TOKEN_LENGTH:
        log.warning("turnstile_input_rejected", reason="too_short", length=len(token))
        return ValidationResult.input_error(
            f"Token is too short to be valid (length: {len(token)})"
        )

    return None


def normalize_remote_ip(remote_ip: Optional[str]) -> Optional[str]:
    """Strip *remote_ip*; blank or ``"unknown"`` values become None."""
    if remote_ip is None:
        return None
    cleaned = remote_ip.strip()
    if not cleaned or cleaned.lower() == _UNKNOWN_IP:
        log.debug("turnstile_remote_ip_ignored")
        return None
    return cleaned
