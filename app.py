"""
FastAPI application factory.
create_app() is the single entry point for building the app.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import sentry_sdk
from fastapi import FastAPI
from prometheus_client import CollectorRegistry, make_asgi_app

from config import AppSettings
from errors import register_error_handlers
from infrastructure.cache.result_cache import ResultCache
from infrastructure.captcha.turnstile import TurnstileProvider
from infrastructure.http_client import HttpClient
from infrastructure.metrics.recorder import ValidationMetrics
from infrastructure.metrics.sink import MetricsSink, NoopMetricsSink, PrometheusMetricsSink
from routes.health_routes import metrics_router
from routes.health_routes import router as health_router
from routes.login_routes import create_login_router
from services.health_service import TurnstileHealthIndicator
from services.validation_service import TurnstileValidationService
from shared.logging import setup_logging


def build_validation_service(
    settings: AppSettings,
    http_client: HttpClient,
    metrics_sink: MetricsSink,
) -> TurnstileValidationService:
    """Wire provider, cache and metrics into one TurnstileValidationService."""
    turnstile = settings.turnstile
    provider = TurnstileProvider(
        secret=turnstile.secret, url=turnstile.url, http_client=http_client
    )

    cache = None
    if settings.cache.enabled:
        cache = ResultCache(
            ttl_seconds=settings.cache.ttl_seconds,
            max_entries=settings.cache.max_size,
            eviction_policy=settings.cache.eviction_policy,
        )

    return TurnstileValidationService(
        settings=turnstile,
        provider=provider,
        cache=cache,
        metrics=ValidationMetrics(metrics_sink),
        cache_settings=settings.cache,
    )


def create_app(
    settings: Optional[AppSettings] = None,
    http_client: Optional[HttpClient] = None,
    metrics_sink: Optional[MetricsSink] = None,
) -> FastAPI:
    """Create and return a fully configured FastAPI application.

    ``http_client`` and ``metrics_sink`` default to ones built from settings;
    tests pass their own.
    """
    if settings is None:
        settings = AppSettings()

    setup_logging(settings.logging, is_production=settings.is_production)

    # Initialise Sentry before anything else so it captures startup errors
    if settings.sentry.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry.sentry_dsn,
            send_default_pii=settings.sentry.sentry_send_pii,
            traces_sample_rate=settings.sentry.sentry_traces_sample_rate,
            profiles_sample_rate=settings.sentry.sentry_profile_sample_rate,
        )

    # One registry per app so repeated create_app() calls never collide
    registry: Optional[CollectorRegistry] = None
    if metrics_sink is None:
        if settings.metrics.enabled:
            registry = CollectorRegistry()
            metrics_sink = PrometheusMetricsSink(registry)
        else:
            metrics_sink = NoopMetricsSink()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # ── Startup ──────────────────────────────────────────────────────────
        client = http_client or HttpClient(
            connect_timeout=settings.turnstile.connect_timeout,
            read_timeout=settings.turnstile.read_timeout,
        )
        service = build_validation_service(settings, client, metrics_sink)
        service.log_startup(settings.metrics)

        app.state.settings = settings
        app.state.http_client = client
        app.state.validation_service = service
        app.state.health_indicator = TurnstileHealthIndicator(
            settings.turnstile, service.metrics, settings.metrics
        )

        yield

        # ── Shutdown ─────────────────────────────────────────────────────────
        await client.aclose()

    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        docs_url=settings.docs_url,
        redoc_url=None,
        lifespan=lifespan,
    )

    register_error_handlers(app)
    if settings.metrics.health_check_enabled:
        app.include_router(health_router)
    if settings.metrics.enabled:
        app.include_router(metrics_router)
        if registry is not None:
            app.mount("/metrics", make_asgi_app(registry=registry))
    app.include_router(create_login_router(settings.login.submission_path))

    return app
