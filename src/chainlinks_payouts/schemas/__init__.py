"""Wire schemas for events, LNURL-pay responses and DM payloads."""

from .cashu import CashuPaymentMessage
from .event import GIFT_WRAP_KIND, SEAL_KIND, GiftWrap, Rumor, Seal, SignedEvent
from .lnurl import LnurlInvoiceResponse, LnurlPayParams

__all__ = [
    "CashuPaymentMessage",
    "GIFT_WRAP_KIND",
    "GiftWrap",
    "LnurlInvoiceResponse",
    "LnurlPayParams",
    "Rumor",
    "SEAL_KIND",
    "Seal",
    "SignedEvent",
]
