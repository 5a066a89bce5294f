"""Domain models for payout routing."""

from .payment import (
    AddressSource,
    DirectResult,
    DmResult,
    LightningAddressRecord,
    LnurlResult,
    PaymentMethod,
    PaymentResult,
    PayoutRecipient,
    PayoutSummary,
    ResolvedLnurlEndpoint,
    format_payment_method,
)

__all__ = [
    "AddressSource",
    "DirectResult",
    "DmResult",
    "LightningAddressRecord",
    "LnurlResult",
    "PaymentMethod",
    "PaymentResult",
    "PayoutRecipient",
    "PayoutSummary",
    "ResolvedLnurlEndpoint",
    "format_payment_method",
]
