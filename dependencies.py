"""
FastAPI dependency providers.

All injectable dependencies are defined here as plain functions used with
FastAPI's Depends() system. The objects themselves are built once in the
app lifespan and stored on app.state.
"""

from __future__ import annotations

from fastapi import Request

from config import AppSettings
from services.health_service import TurnstileHealthIndicator
from services.validation_service import TurnstileValidationService


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_validation_service(request: Request) -> TurnstileValidationService:
    """Return the process-wide TurnstileValidationService."""
    return request.app.state.validation_service


def get_health_indicator(request: Request) -> TurnstileHealthIndicator:
    return request.app.state.health_indicator
