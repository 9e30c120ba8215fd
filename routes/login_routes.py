"""
Turnstile login guard.

require_turnstile is a dependency for any POST that must carry a Turnstile
token, either as a form field or as a query parameter. A failed check
redirects to the configured error URL; the log entry names only the path,
never the token.

create_login_router() mounts a guarded POST at the configured submission
path. Host applications replace the handler body with their real login.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from config import AppSettings
from dependencies import get_settings, get_validation_service
from errors import CaptchaRedirect
from schemas.dto.responses.common import ErrorResponse, MessageResponse
from services.validation_service import TurnstileValidationService
from shared.ip_utils import get_client_ip
from shared.logging import get_logger, log_with_context

log = get_logger(__name__)


async def require_turnstile(
    request: Request,
    settings: AppSettings = Depends(get_settings),
    service: TurnstileValidationService = Depends(get_validation_service),
) -> None:
    name = settings.login.token_parameter_name
    form = await request.form()
    token = form.get(name)
    if not isinstance(token, str):
        # Form field first, then the query string
        token = request.query_params.get(name)

    if await service.validate(token, get_client_ip(request)):
        return

    log_with_context(log, path=request.url.path).warning("turnstile_captcha_rejected")
    raise CaptchaRedirect(settings.login.redirect_url)


def create_login_router(submission_path: str = "/login") -> APIRouter:
    router = APIRouter(tags=["auth"])

    @router.post(
        submission_path,
        response_model=MessageResponse,
        responses={500: {"model": ErrorResponse}},
        dependencies=[Depends(require_turnstile)],
    )
    async def login_submit() -> MessageResponse:
        return MessageResponse(success=True, message="Captcha verified")

    return router
