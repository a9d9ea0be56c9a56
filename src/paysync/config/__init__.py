"""Configuration loading."""

from paysync.config.settings import (
    AppConfig,
    LemonSqueezyOptions,
    StripeOptions,
    get_config,
)

__all__ = ["AppConfig", "LemonSqueezyOptions", "StripeOptions", "get_config"]
