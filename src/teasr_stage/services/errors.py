"""Exception taxonomy for the monetization core."""

from __future__ import annotations


class MonetizationError(RuntimeError):
    """Base exception for payment, access and settlement failures."""


class IntegrityError(MonetizationError):
    """Raised when an authenticated ciphertext fails tag verification.

    Covers tampered ciphertext, tampered tags and decryption under the wrong key.
    """


class PostNotFoundError(MonetizationError):
    """Raised when an operation references an unknown post."""

    def __init__(self, post_id: str) -> None:
        super().__init__(f"Post {post_id} not found")
        self.post_id = post_id


class PaymentValidationError(MonetizationError):
    """Caller-facing rejection of a payment request; nothing was written."""


class CurrencyNotAcceptedError(PaymentValidationError):
    """Raised when the post does not accept the requested currency."""

    def __init__(self, currency: str) -> None:
        super().__init__(f"{currency} is not accepted for this content")
        self.currency = currency


class InvalidNetworkError(PaymentValidationError):
    """Raised when a network is not valid for a currency in this environment."""

    def __init__(self, network: str, currency: str) -> None:
        super().__init__(f"Invalid network {network} for {currency}")
        self.network = network
        self.currency = currency


class SlotsFullError(PaymentValidationError):
    """Raised when a buyout is requested after every investor slot is taken."""

    def __init__(self, max_slots: int) -> None:
        super().__init__(
            f"All {max_slots} investor spots are filled. You can unlock at regular price."
        )
        self.max_slots = max_slots


class DuplicatePaymentConflict(MonetizationError):
    """Storage-level race on a ledger unique constraint.

    Never surfaced to callers: the ledger re-reads and answers idempotently.
    """


class SettlementError(MonetizationError):
    """Raised when a payment unit of work could not complete and was rolled back."""


class BlobStoreError(MonetizationError):
    """Base exception for blob storage failures."""


class BlobNotFoundError(BlobStoreError):
    """Raised when a blob key does not exist."""


class BlobIOError(BlobStoreError):
    """Raised when a blob cannot be read or written."""
