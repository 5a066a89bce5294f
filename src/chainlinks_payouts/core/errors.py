"""Error taxonomy shared by the settlement components.

Only the payment router's callers ever see a failure, and they see it as a
failed ``PaymentResult``. Everything below the router downgrades these
exceptions into optional or boolean results.
"""

from __future__ import annotations


class SettlementError(RuntimeError):
    """Base exception for settlement and messaging failures."""


class ValidationError(SettlementError):
    """Raised for malformed addresses, keys or out-of-bounds amounts."""


class NetworkError(SettlementError):
    """Raised when an HTTP request fails or returns a non-2xx status."""


class CryptographicError(SettlementError):
    """Raised when encryption, decryption or signature checks fail."""


class DecryptionError(CryptographicError):
    """Raised when a gift wrap cannot be unwrapped into a rumor."""


class DeliveryError(SettlementError):
    """Raised when no relay accepted a published event."""


class ExhaustionError(SettlementError):
    """Raised when every payment rail failed for a recipient."""
