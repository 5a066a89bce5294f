"""Settlement and messaging services."""

from .address import AddressResolver
from .crypto import CryptoService, LocalIdentity
from .executors import DirectWalletExecutor, DmExecutor, LnurlExecutor
from .gift_wrap import GiftWrapCodec, GiftWrapSession
from .lnurl import LnurlInvoiceResolver
from .pacing import PayoutPacer
from .relay import RelayPublisher, RelaySubscriber
from .router import PaymentRouter, RouteState

__all__ = [
    "AddressResolver",
    "CryptoService",
    "DirectWalletExecutor",
    "DmExecutor",
    "GiftWrapCodec",
    "GiftWrapSession",
    "LocalIdentity",
    "LnurlExecutor",
    "LnurlInvoiceResolver",
    "PaymentRouter",
    "PayoutPacer",
    "RelayPublisher",
    "RelaySubscriber",
    "RouteState",
]
