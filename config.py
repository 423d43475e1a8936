"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

The auth service and the gateway share one settings tree; each reads only the
sub-configs it needs. Sub-configs are composed in AppSettings via
model_validator so they are always populated from the same env/dotenv source.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "marketplace"


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # OTP and lock state lives here, so unlike a cache it is not optional
    redis_uri: str = "redis://localhost:6379/0"


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Access and refresh tokens are signed with distinct secrets
    jwt_secret_access_token: str = ""
    jwt_secret_refresh_token: str = ""
    jwt_algorithm: str = "HS256"

    access_token_ttl_seconds: int = 900
    refresh_token_ttl_seconds: int = 604800

    # Cookie lifetime is independent of the token lifetime inside it
    cookie_max_age_seconds: int = 604800
    cookie_secure: bool = True
    cookie_samesite: str = "none"


class OtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_ttl_seconds: int = 300
    otp_cooldown_seconds: int = 60

    otp_request_window_seconds: int = 3600
    otp_max_requests: int = 2
    otp_spam_lock_seconds: int = 3600

    otp_attempts_ttl_seconds: int = 300
    otp_max_failed_attempts: int = 2
    otp_lock_seconds: int = 1800

    # window to submit the new password after the reset code was verified
    otp_reset_grant_seconds: int = 600


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@marketplace.local"
    zepto_from_name: str = "Marketplace"


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1
    sentry_profile_sample_rate: float = 0.05


class GatewaySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    auth_service_url: str = "http://localhost:6001"
    gateway_cors_origins: list[str] = ["http://localhost:3000"]
    proxy_timeout_seconds: float = 10.0

    # limits-style rate strings, one window for every route
    rate_limit_anonymous: str = "100/15 minutes"
    rate_limit_authenticated: str = "1000/15 minutes"
    # None keeps counters in process memory; point at Redis for multi-instance
    rate_limit_storage_uri: Optional[str] = None
    # Peers whose CF-Connecting-IP / X-Forwarded-For headers are believed;
    # empty means clients are keyed on the connection address only
    trusted_proxies: list[str] = []


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "marketplace-auth"
    frontend_url: str = "http://localhost:3000"

    # Browser frontends send cookies cross-origin, so origins must be explicit
    cors_origins: list[str] = ["http://localhost:3000"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/api-docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    otp: Optional[OtpSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None
    gateway: Optional[GatewaySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.otp is None:
            self.otp = OtpSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        if self.gateway is None:
            self.gateway = GatewaySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
