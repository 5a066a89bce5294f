"""Domain types for payout routing."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum

PUBKEY_HEX_LENGTH = 64
MSATS_PER_SAT = 1000


class AddressSource(str, Enum):
    """Where a recipient's Lightning address came from."""

    KIND0 = "kind0"
    NPUBCASH_FALLBACK = "npubcash-fallback"


class PaymentMethod(str, Enum):
    """Rail that settled (or failed to settle) a payout."""

    BREEZ = "breez"
    LNURL = "lnurl"
    NPUBCASH = "npubcash"
    CASHU_DM = "cashu_dm"
    FAILED = "failed"


_METHOD_LABELS = {
    PaymentMethod.BREEZ: "Lightning (Breez)",
    PaymentMethod.LNURL: "Lightning (Direct)",
    PaymentMethod.NPUBCASH: "Lightning (npub.cash)",
    PaymentMethod.CASHU_DM: "eCash (DM)",
    PaymentMethod.FAILED: "Failed",
}


def format_payment_method(method: PaymentMethod | str) -> str:
    """Return a human-readable label for a payment method."""
    try:
        return _METHOD_LABELS[PaymentMethod(method)]
    except ValueError:
        return "Unknown"


def _is_hex_pubkey(value: str) -> bool:
    if len(value) != PUBKEY_HEX_LENGTH:
        return False
    try:
        bytes.fromhex(value)
    except ValueError:
        return False
    return True


@dataclass(frozen=True)
class PayoutRecipient:
    """A single payout request: who gets paid and how much."""

    pubkey: str
    amount_sats: int
    name: str | None = None

    def __post_init__(self) -> None:
        if not _is_hex_pubkey(self.pubkey):
            raise ValueError("Recipient pubkey must be 32 bytes of hex")
        if isinstance(self.amount_sats, bool) or not isinstance(self.amount_sats, int):
            raise ValueError("Payout amount must be an integer number of sats")
        if self.amount_sats <= 0:
            raise ValueError("Payout amount must be positive")

    @property
    def label(self) -> str:
        """Short display name used in logs and payout comments."""
        return self.name or f"{self.pubkey[:8]}..."


@dataclass(frozen=True)
class LightningAddressRecord:
    """A payable ``name@domain`` address and its provenance."""

    address: str
    source: AddressSource


@dataclass(frozen=True)
class ResolvedLnurlEndpoint:
    """LNURL-pay parameters for one invoice request, in sats."""

    callback: str
    min_sendable: int
    max_sendable: int
    metadata: str
    comment_allowed: int | None = None

    @classmethod
    def from_millisats(
        cls,
        callback: str,
        min_sendable_msat: int,
        max_sendable_msat: int,
        metadata: str,
        comment_allowed: int | None = None,
    ) -> ResolvedLnurlEndpoint:
        """Convert millisat bounds to sats, rounding inward."""
        return cls(
            callback=callback,
            min_sendable=math.ceil(min_sendable_msat / MSATS_PER_SAT),
            max_sendable=math.floor(max_sendable_msat / MSATS_PER_SAT),
            metadata=metadata,
            comment_allowed=comment_allowed,
        )

    def accepts(self, amount_sats: int) -> bool:
        """Return True if ``amount_sats`` lies within the declared bounds."""
        return self.min_sendable <= amount_sats <= self.max_sendable


@dataclass(frozen=True)
class PaymentResult:
    """Outcome of one rail attempt, or the aggregate outcome of a route."""

    success: bool
    method: PaymentMethod
    tx_id: str | None = None
    fee_sats: int | None = None
    error: str | None = None

    @classmethod
    def exhausted(cls, error: str = "All payment methods failed") -> PaymentResult:
        return cls(success=False, method=PaymentMethod.FAILED, error=error)

    def to_dict(self) -> dict[str, object]:
        d: dict[str, object] = {"success": self.success, "method": self.method.value}
        if self.tx_id is not None:
            d["tx_id"] = self.tx_id
        if self.fee_sats is not None:
            d["fee_sats"] = self.fee_sats
        if self.error:
            d["error"] = self.error
        return d


@dataclass(frozen=True)
class DirectResult:
    """Result reported by the direct-wallet rail."""

    success: bool
    tx_id: str | None = None
    fee_sats: int | None = None
    error: str | None = None

    def to_payment_result(self) -> PaymentResult:
        return PaymentResult(
            success=self.success,
            method=PaymentMethod.BREEZ,
            tx_id=self.tx_id,
            fee_sats=self.fee_sats,
            error=None if self.success else self.error or "Direct wallet payment failed",
        )


@dataclass(frozen=True)
class LnurlResult:
    """Result of paying an LNURL invoice through the settlement rail."""

    success: bool
    source: AddressSource | None = None
    invoice: str | None = None
    error: str | None = None

    def to_payment_result(self) -> PaymentResult:
        method = (
            PaymentMethod.NPUBCASH
            if self.source is AddressSource.NPUBCASH_FALLBACK
            else PaymentMethod.LNURL
        )
        return PaymentResult(
            success=self.success,
            method=method,
            error=None if self.success else self.error or "LNURL payment failed",
        )


@dataclass(frozen=True)
class DmResult:
    """Result of delivering an eCash token inside a gift wrap."""

    success: bool
    event_id: str | None = None
    relays: tuple[str, ...] = ()
    error: str | None = None

    def to_payment_result(self) -> PaymentResult:
        return PaymentResult(
            success=self.success,
            method=PaymentMethod.CASHU_DM,
            tx_id=self.event_id,
            error=None if self.success else self.error or "Failed to send Cashu via DM",
        )


@dataclass
class PayoutSummary:
    """Aggregate outcome of a batch settlement."""

    results: dict[str, PaymentResult] = field(default_factory=dict)
    success_count: int = 0
    fail_count: int = 0
    total_paid_sats: int = 0

    def record(self, recipient: PayoutRecipient, result: PaymentResult) -> None:
        self.results[recipient.pubkey] = result
        if result.success:
            self.success_count += 1
            self.total_paid_sats += recipient.amount_sats
        else:
            self.fail_count += 1
