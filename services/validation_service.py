"""
Turnstile validation service - the composition root for token checks.

Every public method is a thin adapter over ``_validate``, which runs one call
through:

    input check → config check → cache lookup → siteverify → cache store

and records the attempt and its outcome exactly once. Malformed tokens never
reach the cache or the network; a misconfigured service never serves cached
results.

Public surface:
    validate()            → bool, never raises
    validate_detailed()   → ValidationResult, never raises (preferred)
    validate_or_raise()   → ValidationResult on success, TurnstileError otherwise
    validate_no_cache()   → ValidationResult, bypasses cache lookup and store
"""

from __future__ import annotations

import asyncio
import time
from typing import Optional

from config import CacheSettings, MetricsSettings, TurnstileSettings
from errors import (
    TurnstileConfigurationError,
    TurnstileError,
    TurnstileInputError,
    TurnstileNetworkError,
    TurnstileValidationError,
)
from infrastructure.cache.result_cache import ResultCache
from infrastructure.captcha.protocol import CaptchaProvider
from infrastructure.metrics.recorder import ValidationMetrics
from schemas.models.validation import ValidationResult, ValidationResultType
from shared.logging import get_logger, hash_ip
from shared.validators import check_token, normalize_remote_ip

log = get_logger(__name__)

_EXCEPTION_FOR = {
    ValidationResultType.INPUT_ERROR: TurnstileInputError,
    ValidationResultType.CONFIGURATION_ERROR: TurnstileConfigurationError,
    ValidationResultType.NETWORK_ERROR: TurnstileNetworkError,
}


class TurnstileValidationService:
    def __init__(
        self,
        settings: TurnstileSettings,
        provider: CaptchaProvider,
        cache: Optional[ResultCache] = None,
        metrics: Optional[ValidationMetrics] = None,
        cache_settings: Optional[CacheSettings] = None,
    ) -> None:
        cache_settings = cache_settings or CacheSettings()
        self._settings = settings
        self._provider = provider
        self._cache = cache
        self._metrics = metrics if metrics is not None else ValidationMetrics()
        self._cache_success_only = cache_settings.cache_success_only
        self._single_flight = cache_settings.single_flight
        self._in_flight: dict[str, asyncio.Future[ValidationResult]] = {}

    @property
    def metrics(self) -> ValidationMetrics:
        return self._metrics

    @property
    def cache(self) -> Optional[ResultCache]:
        return self._cache

    @property
    def sitekey(self) -> str:
        """Public widget key for rendering the Turnstile challenge."""
        return self._settings.sitekey

    def log_startup(self, metrics_settings: Optional[MetricsSettings] = None) -> None:
        metrics_settings = metrics_settings or MetricsSettings()
        log.info(
            "turnstile_service_started",
            url=self._settings.url,
            site_configured=bool(self._settings.sitekey),
            verifier_configured=bool(self._settings.secret.strip()),
            cache_enabled=self._cache is not None,
            metrics_enabled=metrics_settings.enabled,
            health_check_enabled=metrics_settings.health_check_enabled,
        )
        if not self._settings.secret.strip():
            log.error("turnstile_secret_not_configured")
        if not self._settings.url.strip():
            log.error("turnstile_url_not_configured")

    # ── Public adapters ──────────────────────────────────────────────────────

    async def validate(self, token: Optional[str], remote_ip: Optional[str] = None) -> bool:
        try:
            result = await self._validate(token, remote_ip, use_cache=True)
        except Exception as e:
            log.error(
                "turnstile_validation_unexpected_error",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return False
        return result.success

    async def validate_detailed(
        self, token: Optional[str], remote_ip: Optional[str] = None
    ) -> ValidationResult:
        return await self._validate(token, remote_ip, use_cache=True)

    async def validate_no_cache(
        self, token: Optional[str], remote_ip: Optional[str] = None
    ) -> ValidationResult:
        return await self._validate(token, remote_ip, use_cache=False)

    async def validate_or_raise(
        self,
        token: Optional[str],
        remote_ip: Optional[str] = None,
        *,
        use_cache: bool = True,
    ) -> ValidationResult:
        """Like validate_detailed() but raises a TurnstileError on any non-success.

        Raises:
            TurnstileInputError: the token failed the pre-network checks
            TurnstileConfigurationError: secret or URL is not configured
            TurnstileNetworkError: siteverify could not be reached or replied badly
            TurnstileValidationError: Cloudflare rejected the token
        """
        result = await self._validate(token, remote_ip, use_cache=use_cache)
        if result.success:
            return result
        raise self._to_exception(result)

    # ── Orchestration ────────────────────────────────────────────────────────

    async def _validate(
        self, token: Optional[str], remote_ip: Optional[str], use_cache: bool
    ) -> ValidationResult:
        self._metrics.record_attempt()
        try:
            result = await self._resolve(token, remote_ip, use_cache)
        except asyncio.CancelledError:
            # validation_count == success_count + error_count holds for cancelled calls too
            self._metrics.record_outcome(ValidationResultType.NETWORK_ERROR)
            log.warning("turnstile_validation_cancelled")
            raise
        except Exception as e:
            log.error(
                "turnstile_validation_unexpected_error",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            result = ValidationResult.network_error(f"Unexpected error: {e}")
        self._metrics.record_outcome(result.result_type)
        return result

    async def _resolve(
        self, token: Optional[str], remote_ip: Optional[str], use_cache: bool
    ) -> ValidationResult:
        rejected = check_token(token)
        if rejected is not None:
            return rejected

        remote_ip = normalize_remote_ip(remote_ip)

        misconfigured = self._check_configuration()
        if misconfigured is not None:
            return misconfigured

        if not use_cache or self._cache is None:
            return await self._call_remote(token, remote_ip)

        cached = self._cache.lookup(token)
        if cached is not None:
            log.debug("turnstile_cache_hit", result_type=cached.result_type.value)
            return cached

        if self._single_flight:
            return await self._fetch_coalesced(token, remote_ip)
        return await self._fetch_and_store(token, remote_ip)

    def _check_configuration(self) -> Optional[ValidationResult]:
        if not self._settings.secret.strip():
            msg = "Turnstile secret key is not configured"
        elif not self._settings.url.strip():
            msg = "Turnstile URL is not configured"
        else:
            return None
        log.error("turnstile_configuration_error", reason=msg)
        return ValidationResult.configuration_error(msg)

    async def _call_remote(
        self, token: str, remote_ip: Optional[str]
    ) -> ValidationResult:
        started = time.perf_counter()
        try:
            result = await self._provider.verify(token, remote_ip)
        except TurnstileNetworkError as e:
            log.error(
                "turnstile_network_error",
                error=e.message,
                remote_ip=hash_ip(remote_ip),
            )
            return ValidationResult.network_error(e.message)
        except Exception as e:
            log.error(
                "turnstile_siteverify_unexpected_error",
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            return ValidationResult.network_error(f"Unexpected error: {e}")

        elapsed_ms = (time.perf_counter() - started) * 1000
        self._metrics.record_response_time(elapsed_ms)

        if result.success:
            log.debug("turnstile_validation_succeeded", elapsed_ms=round(elapsed_ms, 2))
        else:
            log.warning(
                "turnstile_validation_failed",
                result_type=result.result_type.value,
                error_codes=list(result.error_codes),
                remote_ip=hash_ip(remote_ip),
                elapsed_ms=round(elapsed_ms, 2),
            )
        return result

    def _is_cacheable(self, result: ValidationResult) -> bool:
        if result.result_type is ValidationResultType.SUCCESS:
            return True
        if self._cache_success_only:
            return False
        return result.result_type is ValidationResultType.INVALID_TOKEN

    async def _fetch_and_store(
        self, token: str, remote_ip: Optional[str]
    ) -> ValidationResult:
        result = await self._call_remote(token, remote_ip)
        if self._cache is not None and self._is_cacheable(result):
            self._cache.store(token, result)
        return result

    async def _fetch_coalesced(
        self, token: str, remote_ip: Optional[str]
    ) -> ValidationResult:
        # Followers share the leader's siteverify call (and its remote_ip).
        pending = self._in_flight.get(token)
        if pending is not None:
            log.debug("turnstile_single_flight_joined")
            try:
                return await asyncio.shield(pending)
            except TurnstileNetworkError as e:
                return ValidationResult.network_error(e.message)

        future: asyncio.Future[ValidationResult] = (
            asyncio.get_running_loop().create_future()
        )
        self._in_flight[token] = future
        try:
            result = await self._fetch_and_store(token, remote_ip)
        except BaseException as e:
            # Followers see a network failure, never the leader's cancellation
            future.set_exception(
                TurnstileNetworkError(f"Shared verification aborted: {type(e).__name__}")
            )
            future.exception()
            raise
        else:
            future.set_result(result)
            return result
        finally:
            self._in_flight.pop(token, None)

    @staticmethod
    def _to_exception(result: ValidationResult) -> TurnstileError:
        if result.result_type is ValidationResultType.INVALID_TOKEN:
            return TurnstileValidationError(
                result.message, result.error_codes, result=result
            )
        return _EXCEPTION_FOR[result.result_type](result.message, result=result)
