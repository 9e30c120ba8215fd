"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

Turnstile-specific groups use an env prefix so they read naturally next to
the host application's own variables, e.g. TURNSTILE_SECRET,
TURNSTILE_CACHE_TTL_SECONDS, TURNSTILE_METRICS_ERROR_THRESHOLD.
"""

from __future__ import annotations

from typing import Literal, Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_TURNSTILE_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"


class TurnstileSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="TURNSTILE_", extra="ignore"
    )

    # Empty secret/url are allowed at load time; the validation service
    # reports them as configuration errors per call instead of failing boot.
    secret: str = ""
    sitekey: str = ""
    url: str = DEFAULT_TURNSTILE_URL

    # Seconds
    connect_timeout: float = 5.0
    read_timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.secret.strip() and self.url.strip())


class CacheSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="TURNSTILE_CACHE_", extra="ignore"
    )

    enabled: bool = True
    ttl_seconds: int = 300
    max_size: int = 1000

    # Only SUCCESS results are cached unless explicitly disabled; caching
    # rejections lets a crafted failing token mask a later legitimate one.
    cache_success_only: bool = True

    # "lru" - least recently used, "lrw" - least recently written
    eviction_policy: Literal["lru", "lrw"] = "lru"

    # Coalesce concurrent remote calls for the same uncached token
    single_flight: bool = False


class MetricsSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="TURNSTILE_METRICS_", extra="ignore"
    )

    enabled: bool = True
    health_check_enabled: bool = True

    # Percentage of failed validations above which health is degraded
    error_threshold: float = 10.0


class LoginGuardSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="TURNSTILE_LOGIN_", extra="ignore"
    )

    submission_path: str = "/login"
    redirect_url: str = "/login?error=captcha"
    token_parameter_name: str = "cf-turnstile-response"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Unset means pick by environment: DEBUG/console in development,
    # INFO/json in production
    log_level: Optional[str] = None
    log_format: Optional[str] = None  # "console" | "json"


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "turnstile-guard"

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    turnstile: Optional[TurnstileSettings] = None
    cache: Optional[CacheSettings] = None
    metrics: Optional[MetricsSettings] = None
    login: Optional[LoginGuardSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.turnstile is None:
            self.turnstile = TurnstileSettings()
        if self.cache is None:
            self.cache = CacheSettings()
        if self.metrics is None:
            self.metrics = MetricsSettings()
        if self.login is None:
            self.login = LoginGuardSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
