"""Error taxonomy for webhook verification and reconciliation.

How the webhook pipeline treats each family:

- SignatureError: request rejected with 400, nothing downstream runs.
- ClassificationError: 400 (e.g. a product carries an unknown tier).
- ReconcileError: 400, the provider's own retry is the recovery path.
- LinkError: logged and dropped with 200.
- LedgerError: DuplicateOrderError is a success no-op, others are 400.
- ProviderAPIError: 400, no internal retry.
"""


class PaymentsError(Exception):
    """Base class for all reconciliation errors."""


# Signature verification
class SignatureError(PaymentsError):
    """Inbound webhook failed authenticity checks."""


class MissingSignatureError(SignatureError):
    """Signature header or shared secret is absent."""


class SignatureMismatchError(SignatureError):
    """Computed digest differs from the signature header."""


class MalformedPayloadError(SignatureError):
    """Verified body is not a JSON object."""


# Classification
class ClassificationError(PaymentsError):
    """Payload is on the allow-list but cannot be mapped to a canonical event."""


# Reconciliation
class ReconcileError(PaymentsError):
    """Subscription event could not be applied to a profile."""


class UnknownCustomerError(ReconcileError):
    """No profile is linked to the provider customer id."""

    def __init__(self, provider: str, customer_id: str):
        self.provider = provider
        self.customer_id = customer_id
        super().__init__(f"No profile linked to {provider} customer {customer_id}")


# Customer linking
class LinkError(PaymentsError):
    """Checkout completion could not be linked to a user."""


class MissingUserIdError(LinkError):
    """Order carries no user identifier in its custom data."""


# Credit ledger
class LedgerError(PaymentsError):
    """Credit purchase could not be applied."""


class DuplicateOrderError(LedgerError):
    """Order id was already credited."""

    def __init__(self, provider: str, order_id: str):
        self.provider = provider
        self.order_id = order_id
        super().__init__(f"{provider} order {order_id} already processed")


class InvalidCreditAmountError(LedgerError):
    """Credit amount is not a positive integer."""


class UnknownUserError(LedgerError):
    """No profile exists for the user id."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"No profile for user {user_id}")


# Outbound provider calls
class ProviderAPIError(PaymentsError):
    """Provider REST call failed or returned a non-success status."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)
