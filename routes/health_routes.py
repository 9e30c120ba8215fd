"""
Health and metrics endpoints.

GET /health              - Turnstile health: 200 when healthy, 503 when degraded
                           (secret/URL missing or error rate above threshold).
GET /turnstile/metrics   - current validation counters as JSON.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from dependencies import get_health_indicator, get_validation_service
from schemas.dto.responses.common import HealthResponse
from schemas.models.validation import MetricsSnapshot
from services.health_service import TurnstileHealthIndicator
from services.validation_service import TurnstileValidationService

router = APIRouter(tags=["health"])
metrics_router = APIRouter(tags=["metrics"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    indicator: TurnstileHealthIndicator = Depends(get_health_indicator),
) -> JSONResponse:
    report = indicator.health()
    status_code = 200 if report.is_healthy else 503
    return JSONResponse(
        status_code=status_code,
        content={"status": report.status, "checks": {"turnstile": report.details}},
    )


@metrics_router.get("/turnstile/metrics", response_model=MetricsSnapshot)
async def turnstile_metrics(
    service: TurnstileValidationService = Depends(get_validation_service),
) -> MetricsSnapshot:
    return service.metrics.snapshot()
