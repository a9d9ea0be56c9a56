"""Application configuration schema and validation."""

from dataclasses import dataclass, field
from typing import Literal

from pydantic import Field, PostgresDsn, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


@dataclass(frozen=True)
class StripeOptions:
    """Settings handed to the card-processor client, verifier and checkout helpers."""

    secret_key: str
    webhook_secret: str
    price_id_monthly: str = ""
    price_id_yearly: str = ""
    price_id_credits: str = ""
    app_url: str = "http://localhost:3000"


@dataclass(frozen=True)
class LemonSqueezyOptions:
    """Settings handed to the commerce-processor client, verifier and adapter."""

    api_key: str
    store_id: str
    webhook_secret: str
    api_base_url: str = "https://api.lemonsqueezy.com/v1"
    credit_variants: dict[str, int] = field(default_factory=dict)
    timeout_seconds: float = 10.0


class AppConfig(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    env: Literal["dev", "staging", "prod"] = Field(
        ...,
        description="Application environment",
    )
    db_dsn: PostgresDsn = Field(
        ...,
        description="PostgreSQL database connection string",
    )
    db_pool_min: int = Field(
        default=2,
        ge=1,
        description="Minimum database connection pool size",
    )
    db_pool_max: int = Field(
        default=10,
        ge=1,
        description="Maximum database connection pool size",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    webhook_server_port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the webhook HTTP server listens on",
    )
    app_url: str = Field(
        default="http://localhost:3000",
        description="Public base URL used for checkout redirects and portal return",
    )
    provider_timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        le=60,
        description="Timeout for single-shot outbound provider API calls",
    )
    stripe_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe secret API key",
    )
    stripe_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Stripe webhook endpoint signing secret",
    )
    stripe_price_id_monthly: str = Field(
        default="",
        description="Stripe price id for the monthly pro plan",
    )
    stripe_price_id_yearly: str = Field(
        default="",
        description="Stripe price id for the yearly pro plan",
    )
    stripe_price_id_credits: str = Field(
        default="",
        description="Stripe price id for the one-time credits pack",
    )
    lemonsqueezy_api_key: SecretStr = Field(
        default=SecretStr(""),
        description="Lemon Squeezy API key",
    )
    lemonsqueezy_store_id: str = Field(
        default="",
        description="Lemon Squeezy store id",
    )
    lemonsqueezy_webhook_secret: SecretStr = Field(
        default=SecretStr(""),
        description="Lemon Squeezy webhook signing secret",
    )
    lemonsqueezy_api_base_url: str = Field(
        default="https://api.lemonsqueezy.com/v1",
        description="Lemon Squeezy REST API base URL",
    )
    lemonsqueezy_variant_id_credits_10: str = Field(
        default="",
        description="Variant id of the 10-credit pack (fallback when the name has no amount)",
    )
    lemonsqueezy_credit_variants: dict[str, int] = Field(
        default_factory=dict,
        description="Variant id -> credit amount for packs whose name has no amount",
    )

    @field_validator("db_pool_max")
    @classmethod
    def validate_pool_max(cls, v: int, info) -> int:
        """Ensure pool_max >= pool_min."""
        if "db_pool_min" in info.data and v < info.data["db_pool_min"]:
            raise ValueError("db_pool_max must be >= db_pool_min")
        return v

    @field_validator("lemonsqueezy_credit_variants")
    @classmethod
    def validate_credit_variants(cls, v: dict[str, int]) -> dict[str, int]:
        """Credit packs must grant a positive amount."""
        for variant_id, amount in v.items():
            if amount <= 0:
                raise ValueError(
                    f"credit amount for variant {variant_id} must be > 0, got {amount}"
                )
        return v

    def stripe_options(self) -> StripeOptions:
        """Build the explicit Stripe settings struct."""
        return StripeOptions(
            secret_key=self.stripe_secret.get_secret_value(),
            webhook_secret=self.stripe_webhook_secret.get_secret_value(),
            price_id_monthly=self.stripe_price_id_monthly,
            price_id_yearly=self.stripe_price_id_yearly,
            price_id_credits=self.stripe_price_id_credits,
            app_url=self.app_url,
        )

    def lemonsqueezy_options(self) -> LemonSqueezyOptions:
        """Build the explicit Lemon Squeezy settings struct."""
        credit_variants = dict(self.lemonsqueezy_credit_variants)
        if self.lemonsqueezy_variant_id_credits_10:
            credit_variants.setdefault(self.lemonsqueezy_variant_id_credits_10, 10)

        return LemonSqueezyOptions(
            api_key=self.lemonsqueezy_api_key.get_secret_value(),
            store_id=self.lemonsqueezy_store_id,
            webhook_secret=self.lemonsqueezy_webhook_secret.get_secret_value(),
            api_base_url=self.lemonsqueezy_api_base_url.rstrip("/"),
            credit_variants=credit_variants,
            timeout_seconds=self.provider_timeout_seconds,
        )


_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create the singleton AppConfig instance."""
    global _config
    if _config is None:
        _config = AppConfig()
    return _config
