from __future__ import annotations

import json
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class AppSettings(BaseSettings):
    """
    Application-level settings for the FastAPI service.

    This is separate from fxdesk_api.db.config.Settings, which focuses on the database layer.
    """

    # FastAPI metadata
    APP_NAME: str = Field(default="FX Desk API")
    APP_DESCRIPTION: str = Field(
        default=(
            "Backend API for a multi-tenant currency-exchange back-office. "
            "Manages repositories, currencies, customer KYC, float sessions and orders."
        )
    )
    APP_VERSION: str = Field(default="0.1.0")
    LOG_LEVEL: str = Field(default="INFO", description="Root log level name")

    # CORS
    CORS_ORIGINS: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="Comma-separated list or JSON array of allowed origins. Default: *",
    )
    CORS_ALLOW_CREDENTIALS: bool = Field(default=True)
    CORS_ALLOW_METHODS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])
    CORS_ALLOW_HEADERS: Annotated[List[str], NoDecode] = Field(default_factory=lambda: ["*"])

    # Startup behavior
    RUN_MIGRATIONS_ON_STARTUP: bool = Field(
        default=True,
        description="If true, run Alembic migrations (upgrade head) at app startup.",
    )
    AUTO_SEED: bool = Field(
        default=False,
        description="If true, seed a demo organization after migrations.",
    )
    DEFAULT_TENANT_SLUG: str = Field(default="demo")
    SEED_OWNER_EMAIL: str = Field(default="owner@demo.local")
    SEED_OWNER_PASSWORD: str = Field(default="ChangeMe123!")

    # JWT
    JWT_SECRET_KEY: str = Field(default="change-me", description="HMAC secret for signing tokens")
    JWT_ALGORITHM: str = Field(default="HS256")
    ACCESS_TOKEN_EXPIRE_MINUTES: int = Field(default=30)
    REFRESH_TOKEN_EXPIRE_MINUTES: int = Field(default=60 * 24 * 7)

    # Identity / organization provider
    IDENTITY_PROVIDER_API_URL: str = Field(default="https://api.clerk.com/v1")
    IDENTITY_PROVIDER_SECRET_KEY: Optional[str] = Field(
        default=None, description="Backend API secret key for the identity provider"
    )
    IDENTITY_PROVIDER_WEBHOOK_SECRET: Optional[str] = Field(
        default=None, description="Signing secret (whsec_...) for identity provider webhooks"
    )
    WEBHOOK_TOLERANCE_SECONDS: int = Field(default=300)

    # FX rates
    FX_RATES_API_URL: str = Field(default="https://openexchangerates.org/api/latest.json")
    FX_RATES_APP_ID: Optional[str] = Field(default=None)
    FX_BASE_CURRENCY: str = Field(default="CAD")

    HTTP_TIMEOUT_SECONDS: float = Field(default=15.0)

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @field_validator("CORS_ORIGINS", "CORS_ALLOW_METHODS", "CORS_ALLOW_HEADERS", mode="before")
    @classmethod
    def _parse_csv_list(cls, v):
        """
        Accept both JSON array format and comma-separated formats for CORS lists.
        """
        if v is None:
            return ["*"]
        if isinstance(v, str) and v.strip().startswith("["):
            v = json.loads(v)
        if isinstance(v, str):
            parts = [p.strip() for p in v.split(",") if p.strip()]
            return parts or ["*"]
        if isinstance(v, list):
            return v or ["*"]
        return ["*"]

    @field_validator("FX_BASE_CURRENCY")
    @classmethod
    def _upper_base_currency(cls, v: str) -> str:
        return v.strip().upper()


# PUBLIC_INTERFACE
def get_app_settings() -> AppSettings:
    """Return a new AppSettings instance populated from environment variables."""
    return AppSettings()
