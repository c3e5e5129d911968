# lively_icons/core/config.py
import logging
import os
from typing import Any, Dict, Literal, Optional

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, SecretStr, ValidationInfo, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import BRAND_NAME

logger = logging.getLogger(__name__)

load_dotenv(override=False)


def is_running_tests() -> bool:
    """
    Detect if code is running under pytest.

    PYTEST_CURRENT_TEST is set automatically by pytest during test runs, and is
    not expected to be present in production environments.
    """
    return os.getenv("PYTEST_CURRENT_TEST") is not None


def _secret_value(secret: Optional[SecretStr]) -> str:
    if secret is None:
        return ""
    return secret.get_secret_value()


class Settings(BaseSettings):
    """Runtime configuration loaded from the environment and ``.env``."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Deployment environment"
    )
    api_title: str = f"{BRAND_NAME} API"
    app_url: str = Field(
        default="http://localhost:3000",
        validation_alias=AliasChoices("app_url", "next_public_app_url"),
        description="Public URL of the web app, used in emails and redirects",
    )

    # Database
    database_url: str = Field(
        default="sqlite:///./lively_icons.db", description="SQLAlchemy database URL"
    )
    db_pool_size: int = 5
    db_max_overflow: int = 10
    db_pool_timeout: int = 10

    # Redis (rate limiting, email cooldowns, Celery broker fallback)
    redis_url: str = "redis://localhost:6379/0"

    # Authentication provider (Clerk)
    clerk_secret_key: Optional[SecretStr] = Field(default=None)
    clerk_webhook_secret: Optional[SecretStr] = Field(
        default=None, description="Svix signing secret for Clerk webhooks"
    )
    clerk_jwks_url: str = Field(
        default="", description="JWKS endpoint used to verify Clerk session tokens"
    )
    clerk_issuer: Optional[str] = Field(default=None, description="Expected session token issuer")
    clerk_api_url: str = "https://api.clerk.com/v1"

    # Stripe
    stripe_secret_key: Optional[SecretStr] = Field(default=None)
    stripe_webhook_secret: Optional[SecretStr] = Field(default=None)
    stripe_pro_monthly_price_id: str = Field(
        default="",
        validation_alias=AliasChoices("stripe_pro_monthly_price_id", "next_public_stripe_pro_monthly_price_id"),
    )
    stripe_pro_annual_price_id: str = Field(
        default="",
        validation_alias=AliasChoices("stripe_pro_annual_price_id", "next_public_stripe_pro_annual_price_id"),
    )
    stripe_team_monthly_price_id: str = Field(
        default="",
        validation_alias=AliasChoices("stripe_team_monthly_price_id", "next_public_stripe_team_monthly_price_id"),
    )
    stripe_team_annual_price_id: str = Field(
        default="",
        validation_alias=AliasChoices("stripe_team_annual_price_id", "next_public_stripe_team_annual_price_id"),
    )
    stripe_currency: str = Field(default="usd", description="Currency for token top-ups")

    # AI generation (Recraft)
    recraft_api_key: Optional[SecretStr] = Field(default=None)
    recraft_api_url: str = "https://external.api.recraft.ai/v1"
    recraft_timeout_seconds: float = 60.0

    # Blob storage (S3-compatible)
    blob_account_id: str = ""
    blob_bucket_name: str = ""
    blob_access_key_id: str = ""
    blob_secret_access_key: Optional[SecretStr] = Field(default=None)
    blob_public_base_url: str = Field(
        default="", description="Public base URL under which stored objects are served"
    )

    # Email
    email_provider: Literal["console", "resend"] = Field(
        default="console", description="Email transport: 'resend' sends, 'console' only logs"
    )
    resend_api_key: Optional[str] = Field(default=None)
    resend_from_email: str = "notifications@livelyicons.com"
    email_from_name: str = BRAND_NAME

    # Celery
    celery_broker_url: Optional[str] = None
    celery_always_eager: bool = False

    model_config = SettingsConfigDict(
        env_file=".env" if not os.getenv("CI") else None,
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("app_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")

    @field_validator("stripe_secret_key", "stripe_webhook_secret")
    @classmethod
    def _validate_stripe_prefix(
        cls, value: Optional[SecretStr], info: ValidationInfo
    ) -> Optional[SecretStr]:
        if value is None or not value.get_secret_value():
            return None
        prefix = "sk_" if info.field_name == "stripe_secret_key" else "whsec_"
        if not value.get_secret_value().startswith(prefix):
            raise ValueError(f"{info.field_name} must start with '{prefix}'")
        return value

    @field_validator("resend_api_key")
    @classmethod
    def _validate_resend_key(cls, value: Optional[str]) -> Optional[str]:
        if not value:
            return None
        if not value.startswith("re_"):
            raise ValueError("resend_api_key must start with 're_'")
        return value

    @model_validator(mode="after")
    def _default_email_provider(self) -> "Settings":
        if self.email_provider == "resend" and not self.resend_api_key:
            logger.warning("EMAIL_PROVIDER=resend but RESEND_API_KEY is missing; using console")
            self.email_provider = "console"
        return self

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def stripe_api_key(self) -> str:
        return _secret_value(self.stripe_secret_key)

    @property
    def stripe_webhook_signing_secret(self) -> str:
        return _secret_value(self.stripe_webhook_secret)

    @property
    def clerk_api_key(self) -> str:
        return _secret_value(self.clerk_secret_key)

    @property
    def clerk_webhook_signing_secret(self) -> str:
        return _secret_value(self.clerk_webhook_secret)

    @property
    def from_email(self) -> str:
        return f"{self.email_from_name} <{self.resend_from_email}>"

    @property
    def price_to_plan(self) -> Dict[str, str]:
        """Map configured Stripe price IDs to plan types."""
        mapping: Dict[str, str] = {}
        for price_id, plan in (
            (self.stripe_pro_monthly_price_id, "pro"),
            (self.stripe_pro_annual_price_id, "pro"),
            (self.stripe_team_monthly_price_id, "team"),
            (self.stripe_team_annual_price_id, "team"),
        ):
            if price_id:
                mapping[price_id] = plan
        return mapping

    @property
    def broker_url(self) -> str:
        return self.celery_broker_url or self.redis_url

    def public_settings(self) -> Dict[str, Any]:
        """Non-secret settings safe to log at startup."""
        return {
            "environment": self.environment,
            "app_url": self.app_url,
            "email_provider": self.email_provider,
            "stripe_configured": bool(self.stripe_api_key),
            "recraft_configured": self.recraft_api_key is not None,
        }


settings = Settings()
logger.info("[CONFIG] Loaded settings: %s", settings.public_settings())
