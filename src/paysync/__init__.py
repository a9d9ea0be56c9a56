"""Webhook-driven membership and credit reconciliation for Stripe and Lemon Squeezy."""

__version__ = "0.1.0"
