"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

TurnstileError and its subclasses mirror the non-success ValidationResult
kinds for callers that prefer exceptions over inspecting a result. Each
carries the ValidationResult it was raised for.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Iterable, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, RedirectResponse

if TYPE_CHECKING:
    from schemas.models.validation import ValidationResult


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class TurnstileError(AppError):
    """Base for all Turnstile validation failures."""

    error_code = "turnstile_error"

    def __init__(
        self,
        message: str,
        *,
        result: Optional["ValidationResult"] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message, details=details)
        self.result = result


class TurnstileInputError(TurnstileError):
    status_code = 400
    error_code = "turnstile_input_error"


class TurnstileConfigurationError(TurnstileError):
    """The service is missing its secret or URL; unusable until fixed."""

    status_code = 500
    error_code = "turnstile_configuration_error"


class TurnstileNetworkError(TurnstileError):
    """Transport failure or non-2xx status talking to the siteverify endpoint."""

    status_code = 502
    error_code = "turnstile_network_error"


class TurnstileValidationError(TurnstileError):
    """Cloudflare processed the request and rejected the token."""

    status_code = 403
    error_code = "turnstile_invalid_token"

    def __init__(
        self,
        message: str,
        error_codes: Optional[Iterable[str]] = None,
        *,
        result: Optional["ValidationResult"] = None,
    ) -> None:
        self.error_codes: tuple[str, ...] = tuple(error_codes or ())
        super().__init__(
            message,
            result=result,
            details={"error_codes": list(self.error_codes)} if self.error_codes else None,
        )


class CaptchaRedirect(Exception):
    """Raised by the login guard; rendered as a 303 redirect."""

    def __init__(self, location: str) -> None:
        super().__init__(location)
        self.location = location


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(CaptchaRedirect)
    async def captcha_redirect_handler(
        request: Request, exc: CaptchaRedirect
    ) -> RedirectResponse:
        return RedirectResponse(url=exc.location, status_code=303)

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
