"""
Client IP resolution for FastAPI requests.

Takes an explicit ``Request`` parameter so the function is testable without
a running app.
"""

from __future__ import annotations

from fastapi import Request

_UNKNOWN = "unknown"

# Proxy headers, checked in priority order before the connection address
IP_HEADERS: tuple[str, ...] = (
    "X-Forwarded-For",
    "Proxy-Client-IP",
    "WL-Proxy-Client-IP",
    "HTTP_CLIENT_IP",
    "HTTP_X_FORWARDED_FOR",
)


def get_client_ip(request: Request) -> str:
    """Extract the real client IP from a FastAPI ``Request``.

    For each header in ``IP_HEADERS`` the first comma-separated element is
    taken; blank and ``"unknown"`` values are skipped. Falls back to the
    direct connection address.

    Returns:
        The resolved client IP string, or ``""`` if none can be found.
    """
    for header in IP_HEADERS:
        ip_value: str | None = request.headers.get(header)
        if not ip_value or not ip_value.strip():
            continue
        candidate: str = ip_value.split(",", 1)[0].strip()
        if candidate and candidate.lower() != _UNKNOWN:
            return candidate

    return request.client.host if request.client else ""
