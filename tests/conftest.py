"""
Shared test configuration.

Tests never read the developer's real .env or TURNSTILE_* environment: each
test runs from an empty temp directory with those variables removed, and
configures settings exclusively through constructor kwargs or
monkeypatch.setenv().

The siteverify endpoint is faked with httpx.MockTransport, so no test opens
a real connection.
"""

from __future__ import annotations

import json
import os
from typing import Any, Optional

import httpx
import pytest

from infrastructure.http_client import HttpClient

SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
VALID_TOKEN = "0123456789012345678901234567890123456789"
TEST_SECRET = "1x0000000000000000000000000000000AA"


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Prevent pydantic-settings from picking up a real .env or TURNSTILE_* vars."""
    monkeypatch.chdir(tmp_path)
    for var in list(os.environ):
        if var.startswith("TURNSTILE_") or var in ("LOG_LEVEL", "LOG_FORMAT", "SENTRY_DSN"):
            monkeypatch.delenv(var, raising=False)


class FakeSiteverify:
    """httpx.MockTransport handler standing in for Cloudflare's siteverify.

    Records every decoded request body in ``calls`` and answers with the
    configured reply, or raises ``exc`` to simulate a transport failure.
    """

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.requests: list[httpx.Request] = []
        self.status_code = 200
        self.body: Optional[bytes] = json.dumps({"success": True}).encode()
        self.exc: Optional[Exception] = None

    def reply(self, payload: Any = None, *, status_code: int = 200, raw: Optional[bytes] = None) -> None:
        self.status_code = status_code
        if raw is not None:
            self.body = raw
        else:
            self.body = json.dumps(payload).encode() if payload is not None else b""

    def fail_with(self, exc: Exception) -> None:
        self.exc = exc

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        self.calls.append(json.loads(request.content))
        if self.exc is not None:
            raise self.exc
        return httpx.Response(self.status_code, content=self.body)


@pytest.fixture
def siteverify() -> FakeSiteverify:
    return FakeSiteverify()


@pytest.fixture
def http_client(siteverify: FakeSiteverify) -> HttpClient:
    return HttpClient(transport=httpx.MockTransport(siteverify))
