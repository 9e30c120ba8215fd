"""Integration tests for the Turnstile-guarded login submission."""

import httpx
import pytest
from fastapi import Depends, FastAPI
from fastapi.testclient import TestClient

from app import create_app
from config import AppSettings, LoginGuardSettings, TurnstileSettings
from dependencies import get_validation_service
from infrastructure.http_client import HttpClient
from infrastructure.metrics.sink import NoopMetricsSink
from routes.login_routes import require_turnstile
from services.validation_service import TurnstileValidationService

SITEVERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
VALID_TOKEN = "0123456789012345678901234567890123456789"


def _build_test_app(siteverify, secret="s3cr3t", login=None) -> FastAPI:
    settings = AppSettings(
        turnstile=TurnstileSettings(secret=secret, url=SITEVERIFY_URL),
        login=login or LoginGuardSettings(),
    )
    return create_app(
        settings,
        http_client=HttpClient(transport=httpx.MockTransport(siteverify)),
        metrics_sink=NoopMetricsSink(),
    )


@pytest.fixture
def client(siteverify):
    with TestClient(_build_test_app(siteverify)) as c:
        yield c


class TestLoginGuard:
    def test_valid_token_passes_through(self, client, siteverify):
        resp = client.post("/login", data={"cf-turnstile-response": VALID_TOKEN, "username": "alice"})
        assert resp.status_code == 200
        assert resp.json() == {"success": True, "message": "Captcha verified"}
        assert siteverify.calls[0]["response"] == VALID_TOKEN

    def test_rejected_token_redirects(self, client, siteverify):
        siteverify.reply({"success": False, "error-codes": ["timeout-or-duplicate"]})
        resp = client.post("/login", data={"cf-turnstile-response": VALID_TOKEN}, follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/login?error=captcha"

    def test_missing_token_redirects_without_remote_call(self, client, siteverify):
        resp = client.post("/login", data={"username": "alice"}, follow_redirects=False)
        assert resp.status_code == 303
        assert siteverify.calls == []

    def test_short_token_redirects_without_remote_call(self, client, siteverify):
        resp = client.post("/login", data={"cf-turnstile-response": "abc"}, follow_redirects=False)
        assert resp.status_code == 303
        assert siteverify.calls == []

    def test_network_failure_redirects(self, client, siteverify):
        siteverify.fail_with(httpx.ConnectError("refused"))
        resp = client.post("/login", data={"cf-turnstile-response": VALID_TOKEN}, follow_redirects=False)
        assert resp.status_code == 303

    def test_forwarded_ip_sent_to_siteverify(self, client, siteverify):
        client.post(
            "/login",
            data={"cf-turnstile-response": VALID_TOKEN},
            headers={"X-Forwarded-For": "203.0.113.7, 10.0.0.1"},
        )
        assert siteverify.calls[0]["remoteip"] == "203.0.113.7"

    def test_token_accepted_from_query_string(self, client, siteverify):
        resp = client.post("/login", params={"cf-turnstile-response": VALID_TOKEN})
        assert resp.status_code == 200
        assert siteverify.calls[0]["response"] == VALID_TOKEN

    def test_form_field_wins_over_query_string(self, client, siteverify):
        other = "abcdefghijabcdefghijabcdefghij"
        client.post(
            "/login",
            params={"cf-turnstile-response": other},
            data={"cf-turnstile-response": VALID_TOKEN},
        )
        assert siteverify.calls[0]["response"] == VALID_TOKEN

    def test_get_is_not_guarded(self, client):
        assert client.get("/login").status_code == 405


def test_misconfigured_secret_redirects(siteverify):
    with TestClient(_build_test_app(siteverify, secret="")) as client:
        resp = client.post("/login", data={"cf-turnstile-response": VALID_TOKEN}, follow_redirects=False)
    assert resp.status_code == 303
    assert siteverify.calls == []


def test_custom_login_settings(siteverify):
    login = LoginGuardSettings(
        submission_path="/signin",
        redirect_url="/signin?captcha=failed",
        token_parameter_name="captcha",
    )
    siteverify.reply({"success": False})
    with TestClient(_build_test_app(siteverify, login=login)) as client:
        resp = client.post("/signin", data={"captcha": VALID_TOKEN}, follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/signin?captcha=failed"
        assert client.post("/login", data={"captcha": VALID_TOKEN}).status_code == 404


def test_guard_reusable_on_other_routes(siteverify):
    app = _build_test_app(siteverify)

    @app.post("/contact", dependencies=[Depends(require_turnstile)])
    async def contact():
        return {"sent": True}

    with TestClient(app) as client:
        ok = client.post("/contact", data={"cf-turnstile-response": VALID_TOKEN})
        siteverify.reply({"success": False})
        rejected = client.post(
            "/contact",
            data={"cf-turnstile-response": "abcdefghijabcdefghijabcdefghij"},
            follow_redirects=False,
        )
    assert ok.json() == {"sent": True}
    assert rejected.status_code == 303


def test_raising_api_renders_json_error(siteverify):
    app = _build_test_app(siteverify)

    @app.post("/api/verify")
    async def verify(
        token: str,
        service: TurnstileValidationService = Depends(get_validation_service),
    ):
        await service.validate_or_raise(token)
        return {"ok": True}

    siteverify.reply({"success": False, "error-codes": ["invalid-input-response"]})
    with TestClient(app) as client:
        resp = client.post("/api/verify", params={"token": VALID_TOKEN})
    assert resp.status_code == 403
    assert resp.json() == {
        "error": "Token validation failed",
        "code": "turnstile_invalid_token",
        "details": {"error_codes": ["invalid-input-response"]},
    }
