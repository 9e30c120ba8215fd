"""Cloudflare Turnstile implementation of CaptchaProvider.

One siteverify round trip per call; no retries. Transport failures and
non-2xx statuses raise TurnstileNetworkError. A reply that decodes to a
verdict comes back as a ValidationResult, as does an empty or undecodable
body (NETWORK_ERROR).
"""

from typing import Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from errors import TurnstileNetworkError
from infrastructure.http_client import HttpClient
from schemas.models.validation import (
    ValidationResult,
    VerificationRequest,
    VerificationResponse,
)
from shared.logging import get_logger

log = get_logger(__name__)

EMPTY_RESPONSE_MESSAGE = "Cloudflare returned an empty response"


class TurnstileProvider:
    def __init__(self, secret: str, url: str, http_client: HttpClient) -> None:
        self._secret = secret
        self._url = url
        self._http = http_client

    @property
    def url(self) -> str:
        return self._url

    async def verify(
        self, token: str, remote_ip: Optional[str] = None
    ) -> ValidationResult:
        request = VerificationRequest(
            secret=self._secret, response=token, remoteip=remote_ip
        )
        log.debug("turnstile_siteverify_request", url=self._url, has_remote_ip=bool(remote_ip))

        try:
            response = await self._http.post(self._url, json=request.to_payload())
        except httpx.TimeoutException as e:
            log.error("turnstile_siteverify_timeout", error=str(e), error_type=type(e).__name__)
            raise TurnstileNetworkError(f"Network error: {e}") from e
        except httpx.HTTPError as e:
            log.error(
                "turnstile_siteverify_transport_error",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise TurnstileNetworkError(f"Network error: {e}") from e

        if response.is_client_error or response.is_server_error:
            kind = "Client error" if response.is_client_error else "Server error"
            log.error(
                "turnstile_siteverify_http_error",
                status_code=response.status_code,
                response_text=response.text[:200],
            )
            raise TurnstileNetworkError(f"{kind}: HTTP {response.status_code}")

        reply = self._decode(response)
        if reply is None:
            log.warning("turnstile_siteverify_empty_response", status_code=response.status_code)
            return ValidationResult.network_error(EMPTY_RESPONSE_MESSAGE)

        if reply.success:
            log.debug("turnstile_siteverify_success", hostname=reply.hostname)
            return ValidationResult.success_result()

        log.warning("turnstile_verification_failed", error_codes=reply.error_codes)
        return ValidationResult.invalid_token(reply.error_codes)

    @staticmethod
    def _decode(response: httpx.Response) -> Optional[VerificationResponse]:
        if not response.content:
            return None
        try:
            return VerificationResponse.from_body(response.json())
        except (ValueError, PydanticValidationError) as e:
            log.warning(
                "turnstile_siteverify_undecodable", error=str(e), error_type=type(e).__name__
            )
            return None
