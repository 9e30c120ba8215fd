"""CaptchaProvider protocol - services depend on this, not the concrete implementation."""

from typing import Optional, Protocol

from schemas.models.validation import ValidationResult


class CaptchaProvider(Protocol):
    async def verify(
        self, token: str, remote_ip: Optional[str] = None
    ) -> ValidationResult: ...
