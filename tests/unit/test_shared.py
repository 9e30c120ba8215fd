"""
Unit tests for the shared/ utility modules.

Covers:
- shared.validators      (check_token, normalize_remote_ip)
- shared.ip_utils        (get_client_ip)
- shared.logging_config  (redact_sensitive_fields, hash_ip, setup_logging)
"""

from __future__ import annotations

from unittest.mock import MagicMock

import pytest

from app import create_app
from config import AppSettings, LoggingSettings
from infrastructure.metrics.sink import NoopMetricsSink
from schemas.models.validation import ValidationResultType
from shared import logging_config
from shared.ip_utils import get_client_ip
from shared.logging import hash_ip
from shared.validators import MIN_TOKEN_LENGTH, check_token, normalize_remote_ip


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_request(headers: dict, client_host: str = "10.0.0.1") -> MagicMock:
    """Minimal mock of a FastAPI Request."""
    req = MagicMock()
    req.headers = headers
    req.client = MagicMock()
    req.client.host = client_host
    return req


# ---------------------------------------------------------------------------
# shared.validators - check_token
# ---------------------------------------------------------------------------


def test_check_token_null():
    result = check_token(None)
    assert result.result_type is ValidationResultType.INPUT_ERROR
    assert "null" in result.message


@pytest.mark.parametrize("token", ["", " ", "\t\n", " " * 40], ids=["empty", "space", "whitespace", "long_blank"])
def test_check_token_blank(token):
    result = check_token(token)
    assert result.result_type is ValidationResultType.INPUT_ERROR
    assert result.message == "Input validation error: Token cannot be empty or blank"


def test_check_token_too_short_reports_length():
    result = check_token("12345")
    assert result.result_type is ValidationResultType.INPUT_ERROR
    assert result.message.endswith("Token is too short to be valid (length: 5)")


def test_check_token_boundary():
    assert check_token("x" * (MIN_TOKEN_LENGTH - 1)) is not None
    assert check_token("x" * MIN_TOKEN_LENGTH) is None


def test_check_token_accepts_well_formed():
    assert check_token("0123456789012345678901234567890123456789") is None


def test_min_token_length_is_twenty():
    assert MIN_TOKEN_LENGTH == 20


# ---------------------------------------------------------------------------
# shared.validators - normalize_remote_ip
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "raw, expected",
    [
        (None, None),
        ("", None),
        ("   ", None),
        ("unknown", None),
        ("UNKNOWN", None),
        (" 127.0.0.1 ", "127.0.0.1"),
        ("2001:db8::1", "2001:db8::1"),
    ],
    ids=["none", "empty", "blank", "unknown", "unknown_upper", "padded", "ipv6"],
)
def test_normalize_remote_ip(raw, expected):
    assert normalize_remote_ip(raw) == expected


# ---------------------------------------------------------------------------
# shared.ip_utils - get_client_ip
# ---------------------------------------------------------------------------


def test_client_ip_prefers_forwarded_for_first_entry():
    req = _make_request({"X-Forwarded-For": "1.2.3.4, 10.0.0.2", "Proxy-Client-IP": "5.6.7.8"})
    assert get_client_ip(req) == "1.2.3.4"


def test_client_ip_skips_unknown_and_blank_headers():
    req = _make_request(
        {
            "X-Forwarded-For": "unknown",
            "Proxy-Client-IP": "  ",
            "WL-Proxy-Client-IP": "9.9.9.9",
        }
    )
    assert get_client_ip(req) == "9.9.9.9"


def test_client_ip_header_precedence_order():
    req = _make_request({"HTTP_X_FORWARDED_FOR": "8.8.8.8", "HTTP_CLIENT_IP": "7.7.7.7"})
    assert get_client_ip(req) == "7.7.7.7"


def test_client_ip_falls_back_to_connection_address():
    assert get_client_ip(_make_request({}, client_host="192.168.0.9")) == "192.168.0.9"


def test_client_ip_empty_without_client():
    req = _make_request({})
    req.client = None
    assert get_client_ip(req) == ""


# ---------------------------------------------------------------------------
# shared.logging_config - redaction and IP hashing
# ---------------------------------------------------------------------------


def test_redacts_secret_and_token_fields():
    event = {
        "event": "turnstile_siteverify_request",
        "secret": "s3cr3t",
        "token": "abc",
        "sitekey": "site",
        "response": "raw-token",
        "url": "https://example.com",
    }
    out = logging_config.redact_sensitive_fields(None, "info", dict(event))
    assert out["secret"] == "***REDACTED***"
    assert out["token"] == "***REDACTED***"
    assert out["sitekey"] == "***REDACTED***"
    assert out["response"] == "***REDACTED***"
    assert out["url"] == "https://example.com"
    assert out["event"] == "turnstile_siteverify_request"


def test_hash_ip_none_passthrough():
    assert hash_ip(None) is None


def test_hash_ip_in_production(monkeypatch):
    monkeypatch.setattr(logging_config, "IS_PRODUCTION", True)
    hashed = logging_config.hash_ip("127.0.0.1")
    assert hashed != "127.0.0.1"
    assert len(hashed) == 16


def test_hash_ip_in_development(monkeypatch):
    monkeypatch.setattr(logging_config, "IS_PRODUCTION", False)
    assert logging_config.hash_ip("127.0.0.1") == "127.0.0.1"


# ---------------------------------------------------------------------------
# shared.logging_config - setup_logging defaults
# ---------------------------------------------------------------------------


@pytest.fixture
def logging_calls(mocker):
    stdlib = mocker.patch.object(logging_config, "configure_stdlib_logging")
    structlog_ = mocker.patch.object(logging_config, "configure_structlog")
    return stdlib, structlog_


def test_setup_logging_production_defaults_to_json(logging_calls):
    stdlib, structlog_ = logging_calls
    logging_config.setup_logging(LoggingSettings(), is_production=True)
    stdlib.assert_called_once_with("INFO")
    structlog_.assert_called_once_with("json")


def test_setup_logging_development_defaults_to_console(logging_calls):
    stdlib, structlog_ = logging_calls
    logging_config.setup_logging(LoggingSettings(), is_production=False)
    stdlib.assert_called_once_with("DEBUG")
    structlog_.assert_called_once_with("console")


def test_setup_logging_explicit_values_win(logging_calls):
    stdlib, structlog_ = logging_calls
    settings = LoggingSettings(log_level="WARNING", log_format="console")
    logging_config.setup_logging(settings, is_production=True)
    stdlib.assert_called_once_with("WARNING")
    structlog_.assert_called_once_with("console")


def test_create_app_logs_json_in_production(logging_calls):
    _, structlog_ = logging_calls
    create_app(AppSettings(env="production"), metrics_sink=NoopMetricsSink())
    structlog_.assert_called_once_with("json")
