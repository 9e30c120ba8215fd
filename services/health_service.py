"""
Turnstile health indicator.

Read-only over the validation counters. Reports "degraded" when the service
is missing its secret or URL, or when the error rate exceeds the configured
threshold; otherwise "healthy" with diagnostic details.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel

from config import MetricsSettings, TurnstileSettings
from infrastructure.metrics.recorder import ValidationMetrics
from shared.logging import get_logger

log = get_logger(__name__)

HealthStatus = Literal["healthy", "degraded"]


class TurnstileHealth(BaseModel):
    status: HealthStatus
    details: dict[str, Any] = {}

    @property
    def is_healthy(self) -> bool:
        return self.status == "healthy"


class TurnstileHealthIndicator:
    def __init__(
        self,
        settings: TurnstileSettings,
        metrics: ValidationMetrics,
        metrics_settings: MetricsSettings,
    ) -> None:
        self._settings = settings
        self._metrics = metrics
        self._error_threshold = metrics_settings.error_threshold

    def health(self) -> TurnstileHealth:
        try:
            return self._check()
        except Exception as e:
            log.error(
                "turnstile_health_check_failed",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return TurnstileHealth(
                status="degraded",
                details={"reason": f"Error checking service health: {e}"},
            )

    def _check(self) -> TurnstileHealth:
        if not self._settings.secret.strip():
            return TurnstileHealth(
                status="degraded",
                details={"reason": "Turnstile secret key is not configured"},
            )
        if not self._settings.url.strip():
            return TurnstileHealth(
                status="degraded",
                details={"reason": "Turnstile URL is not configured"},
            )

        error_rate = self._metrics.error_rate
        details: dict[str, Any] = {
            "url": self._settings.url,
            "validation_count": self._metrics.validation_count,
            "success_count": self._metrics.success_count,
            "error_count": self._metrics.error_count,
            "error_rate": f"{error_rate:.2f}%",
            "response_time_avg": f"{self._metrics.average_response_time:.2f}ms",
        }

        if error_rate > self._error_threshold:
            details["reason"] = (
                f"Error rate exceeded threshold: {error_rate:.2f}% > "
                f"{self._error_threshold:g}%"
            )
            return TurnstileHealth(status="degraded", details=details)

        return TurnstileHealth(status="healthy", details=details)
