"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

The token signing secret is mandatory: JWTSettings refuses to build when
neither JWT_SECRET nor an RS256 key pair is configured, which makes a
missing secret fail the whole process at startup rather than per request.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    mongodb_uri: str
    db_name: str = "elite"
    # Upper bound for every store call; a timeout surfaces as 503
    mongodb_timeout_ms: int = 5000


class RedisSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Optional — without Redis the OTP resend cooldown is not enforced
    redis_uri: Optional[str] = None


class JWTSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    jwt_issuer: str = "elite"
    jwt_audience: str = "elite.api"
    access_token_ttl_seconds: int = 900
    refresh_token_ttl_days: int = 30

    # RS256 keys (preferred)
    jwt_private_key: str = ""
    jwt_public_key: str = ""

    # HS256 fallback (used when RS256 keys are absent)
    jwt_secret: str = ""

    @model_validator(mode="after")
    def _require_signing_key(self) -> "JWTSettings":
        if not self.use_rs256 and not self.jwt_secret:
            raise ValueError(
                "JWT_SECRET must be set when RS256 keys are not provided"
            )
        return self

    @property
    def use_rs256(self) -> bool:
        return bool(self.jwt_private_key and self.jwt_public_key)

    @property
    def refresh_ttl_days(self) -> int:
        """Refresh lifetime in days; non-positive values fall back to 30."""
        return self.refresh_token_ttl_days if self.refresh_token_ttl_days > 0 else 30


class PasswordHashSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # argon2id work factor; defaults match argon2-cffi's RFC 9106 low-memory profile
    argon2_time_cost: int = 3
    argon2_memory_cost: int = 65536
    argon2_parallelism: int = 4


class OtpSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    otp_length: int = 6
    otp_ttl_seconds: int = 600
    otp_max_attempts: int = 5
    # 0 disables the cooldown
    otp_resend_cooldown_seconds: int = 60


class EmailSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_pass: str = ""
    smtp_from: str = ""
    smtp_timeout_seconds: float = 10.0

    # HTTP transport; takes precedence over SMTP when a token is present
    zepto_api_token: str = ""
    zepto_from_email: str = "noreply@elite.app"
    zepto_from_name: str = "Elite"

    @property
    def smtp_configured(self) -> bool:
        return bool(self.smtp_user and self.smtp_pass and self.sender)

    @property
    def sender(self) -> str:
        return self.smtp_from or self.smtp_user


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Core
    env: str = "development"
    app_name: str = "Elite"

    cors_origins: list[str] = ["*"]

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    db: Optional[DatabaseSettings] = None
    redis: Optional[RedisSettings] = None
    jwt: Optional[JWTSettings] = None
    password_hash: Optional[PasswordHashSettings] = None
    otp: Optional[OtpSettings] = None
    email: Optional[EmailSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        # Populate sub-configs from the same env/dotenv source
        if self.db is None:
            self.db = DatabaseSettings()
        if self.redis is None:
            self.redis = RedisSettings()
        if self.jwt is None:
            self.jwt = JWTSettings()
        if self.password_hash is None:
            self.password_hash = PasswordHashSettings()
        if self.otp is None:
            self.otp = OtpSettings()
        if self.email is None:
            self.email = EmailSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()

        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
