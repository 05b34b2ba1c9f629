# shrnq/core/config.py

import logging
from functools import lru_cache
from typing import Literal

from pydantic import AliasChoices, Field, RedisDsn, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False
    )

    # --- Environment & Debug ---
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development", validation_alias="APP_ENV"
    )
    DEBUG: bool = Field(default=False, validation_alias=AliasChoices("DEBUG_MODE", "DEBUG"))
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        validation_alias="LOG_LEVEL",
    )

    # --- Server Configuration ---
    SERVER_HOST: str = Field(default="0.0.0.0", validation_alias="SERVER_HOST")
    SERVER_PORT: int = Field(default=8000, validation_alias="SERVER_PORT")
    BASE_URL: str | None = Field(
        default=None,
        description="Public URL for short links and SEO files; derived from the request if unset.",
        validation_alias="BASE_URL",
    )

    # --- Core Application Settings ---
    APP_NAME: str = Field(default="shrnq", validation_alias="APP_NAME")
    APP_VERSION: str = Field(default="0.1.0", validation_alias="APP_VERSION")
    APP_DESCRIPTION: str = Field(
        default="URL shortener with passkey sign-in.",
        validation_alias="APP_DESCRIPTION",
    )

    # --- Session & Anti-abuse Secrets ---
    SESSION_SECRET: str = Field(validation_alias=AliasChoices("SESSION_SECRET", "SECRET_KEY"))
    HONEYPOT_SECRET: str = Field(validation_alias="HONEYPOT_SECRET")
    SESSION_COOKIE_NAME: str = Field(default="_session", validation_alias="SESSION_COOKIE_NAME")
    SESSION_MAX_AGE_SECONDS: int = Field(
        default=30 * 24 * 60 * 60, validation_alias="SESSION_MAX_AGE_SECONDS"
    )
    COOKIE_SECURE: bool = Field(default=False, validation_alias="COOKIE_SECURE")
    HONEYPOT_MIN_SUBMIT_SECONDS: int = Field(
        default=0,
        description="Minimum delay between rendering the form and submitting it.",
        validation_alias="HONEYPOT_MIN_SUBMIT_SECONDS",
    )

    # --- Database ---
    DATABASE_URL: str = Field(
        default="sqlite+aiosqlite:///./shrnq.db", validation_alias="DATABASE_URL"
    )
    DB_ECHO: bool = Field(default=False, validation_alias="DB_ECHO")
    DB_CREATE_ALL: bool = Field(
        default=True,
        description="Create missing tables on startup.",
        validation_alias="DB_CREATE_ALL",
    )

    # --- Key-Value Store (Redis) ---
    REDIS_URL: RedisDsn = Field(
        default="redis://localhost:6379/0", validate_default=True, validation_alias="REDIS_URL"
    )
    KV_NAMESPACE: str = Field(default="shrnq", validation_alias="KV_NAMESPACE")
    SLUG_MAX_ATTEMPTS: int = Field(default=10, ge=1, validation_alias="SLUG_MAX_ATTEMPTS")

    # --- WebAuthn ---
    WEBAUTHN_RP_NAME: str = Field(default="shrnq", validation_alias="WEBAUTHN_RP_NAME")
    WEBAUTHN_RP_ID: str | None = Field(default=None, validation_alias="WEBAUTHN_RP_ID")
    WEBAUTHN_ORIGIN: str | None = Field(default=None, validation_alias="WEBAUTHN_ORIGIN")
    WEBAUTHN_CHALLENGE_TTL_SECONDS: int = Field(
        default=300,
        ge=1,
        description="How long an issued ceremony challenge stays usable.",
        validation_alias="WEBAUTHN_CHALLENGE_TTL_SECONDS",
    )

    # --- Rate Limiting ---
    RATE_LIMIT_ENABLED: bool = Field(default=True, validation_alias="RATE_LIMIT_ENABLED")
    RATE_LIMIT_SHORTEN: str = Field(default="10/minute", validation_alias="RATE_LIMIT_SHORTEN")
    RATE_LIMIT_LOGIN: str = Field(default="5/minute", validation_alias="RATE_LIMIT_LOGIN")

    # --- SEO ---
    SEO_CACHE_MAX_AGE: int = Field(default=60 * 5, validation_alias="SEO_CACHE_MAX_AGE")

    @field_validator("SESSION_SECRET", "HONEYPOT_SECRET")
    @classmethod
    def secret_must_not_be_blank(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @field_validator("BASE_URL")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        if v is None or not v.strip():
            return None
        return v.strip().rstrip("/")


@lru_cache
def get_settings() -> Settings:
    """Load settings from the environment once per process."""
    return Settings()  # type: ignore[call-arg]
