"""Webhook signature verification, one scheme per provider."""

import hashlib
import hmac
import json
from abc import ABC, abstractmethod
from typing import Any, Optional

import stripe

from paysync.errors import (
    MalformedPayloadError,
    MissingSignatureError,
    SignatureMismatchError,
)


class SignatureVerifier(ABC):
    """Validates an inbound payload against a shared secret."""

    #: HTTP header that carries the signature
    header_name: str

    def verify(
        self,
        raw_body: bytes,
        signature_header: Optional[str],
        shared_secret: Optional[str],
    ) -> dict[str, Any]:
        """
        Verify the payload and return it parsed.

        Args:
            raw_body: Exact request body bytes
            signature_header: Signature header value
            shared_secret: Webhook signing secret

        Returns:
            Parsed JSON object

        Raises:
            MissingSignatureError: If header or secret is absent
            SignatureMismatchError: If the signature does not match
            MalformedPayloadError: If the verified body is not a JSON object
        """
        if not signature_header or not shared_secret:
            raise MissingSignatureError("Webhook secret or signature missing")

        payload = self._verify(raw_body, signature_header, shared_secret)
        if not isinstance(payload, dict):
            raise MalformedPayloadError("Webhook payload is not a JSON object")
        return payload

    @abstractmethod
    def _verify(self, raw_body: bytes, signature_header: str, shared_secret: str) -> Any:
        pass


class StripeSignatureVerifier(SignatureVerifier):
    """Stripe-Signature check via the SDK (timestamped HMAC with tolerance window).

    Non-object JSON bodies that pass the header check are rejected by
    SignatureVerifier.verify as malformed.
    """

    header_name = "Stripe-Signature"

    def _verify(self, raw_body: bytes, signature_header: str, shared_secret: str) -> Any:
        try:
            body = raw_body.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedPayloadError("Invalid payload") from e

        # Header check only; the SDK's Event construction assumes an object body
        try:
            stripe.WebhookSignature.verify_header(body, signature_header, shared_secret)
        except stripe.SignatureVerificationError as e:
            raise SignatureMismatchError("Invalid signature") from e

        try:
            return json.loads(body)
        except ValueError as e:
            raise MalformedPayloadError("Invalid payload") from e


class LemonSqueezySignatureVerifier(SignatureVerifier):
    """X-Signature check: hex HMAC-SHA256 over the raw body."""

    header_name = "X-Signature"

    def _verify(self, raw_body: bytes, signature_header: str, shared_secret: str) -> Any:
        digest = compute_signature(raw_body, shared_secret)
        if not hmac.compare_digest(digest.encode("utf-8"), signature_header.strip().encode("utf-8")):
            raise SignatureMismatchError("Invalid signature")

        try:
            return json.loads(raw_body)
        except (ValueError, UnicodeDecodeError) as e:
            raise MalformedPayloadError("Invalid payload") from e


def compute_signature(raw_body: bytes, shared_secret: str) -> str:
    """Hex-encoded HMAC-SHA256 of the body, as sent in X-Signature."""
    return hmac.new(shared_secret.encode("utf-8"), raw_body, hashlib.sha256).hexdigest()
