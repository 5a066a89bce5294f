"""Payment router for round settlements.

Priority order for each payout:

1. Direct wallet, when it is initialized and holds enough balance
2. Lightning via LNURL-pay, using the recipient's ``lud16`` or the
   ``npub@gateway`` fallback, settled through the injected rail
3. An eCash token delivered in a gift-wrapped DM

No rail is retried within a call. A failed rail only advances the route;
the caller sees a failure solely as a ``PaymentResult`` with method
``failed``.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum

from chainlinks_payouts.core.errors import ExhaustionError
from chainlinks_payouts.core.settings import settings
from chainlinks_payouts.models.payment import (
    DirectResult,
    DmResult,
    LightningAddressRecord,
    LnurlResult,
    PaymentResult,
    PayoutRecipient,
    PayoutSummary,
)
from chainlinks_payouts.services.address import AddressResolver
from chainlinks_payouts.services.executors import DirectWalletExecutor, DmExecutor, LnurlExecutor
from chainlinks_payouts.services.gift_wrap import GiftWrapCodec
from chainlinks_payouts.services.interfaces import (
    DirectWallet,
    IdentityProvider,
    ProfileStore,
    RelayPool,
    SettlementRail,
    TokenMintingRail,
)
from chainlinks_payouts.services.lnurl import LnurlInvoiceResolver
from chainlinks_payouts.services.pacing import PayoutPacer
from chainlinks_payouts.services.relay import RelayPublisher, maybe_await

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int, PayoutRecipient], Awaitable[None] | None]


class RouteState(str, Enum):
    """States of a single payout route."""

    NOT_STARTED = "not_started"
    TRYING_DIRECT_WALLET = "trying_direct_wallet"
    TRYING_LNURL = "trying_lnurl"
    TRYING_DM_FALLBACK = "trying_dm_fallback"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


TERMINAL_STATES = frozenset({RouteState.SUCCEEDED, RouteState.FAILED})


@dataclass
class RouteAttempt:
    """Trace of one route: visited states, per-rail results and the outcome."""

    recipient: PayoutRecipient
    states: list[RouteState] = field(default_factory=lambda: [RouteState.NOT_STARTED])
    address: LightningAddressRecord | None = None
    direct: DirectResult | None = None
    lnurl: LnurlResult | None = None
    dm: DmResult | None = None
    result: PaymentResult | None = None

    @property
    def state(self) -> RouteState:
        return self.states[-1]

    def advance(self, state: RouteState) -> None:
        if self.state in TERMINAL_STATES:
            raise RuntimeError(f"Route already finished in state {self.state.value}")
        logger.debug("Route %s: %s -> %s", self.recipient.label, self.state.value, state.value)
        self.states.append(state)

    def succeed(self, result: PaymentResult) -> PaymentResult:
        self.advance(RouteState.SUCCEEDED)
        self.result = result
        return result

    def fail(self, error: ExhaustionError) -> PaymentResult:
        self.advance(RouteState.FAILED)
        self.result = PaymentResult.exhausted(str(error))
        return self.result


class PaymentRouter:
    """Routes payouts across the direct wallet, LNURL and DM rails."""

    def __init__(
        self,
        addresses: AddressResolver,
        direct: DirectWalletExecutor,
        lnurl: LnurlExecutor,
        dm: DmExecutor,
        *,
        pacer: PayoutPacer | None = None,
        comment: str | None = None,
        direct_comment_template: str | None = None,
    ) -> None:
        self.addresses = addresses
        self.direct = direct
        self.lnurl = lnurl
        self.dm = dm
        self.pacer = pacer or PayoutPacer()
        self.comment = comment or settings.payout_comment
        self.direct_comment_template = direct_comment_template or settings.direct_comment_template

    @classmethod
    def from_collaborators(
        cls,
        *,
        profiles: ProfileStore,
        relay_pool: RelayPool,
        identity: IdentityProvider,
        rail: SettlementRail,
        wallet: DirectWallet | None = None,
        minter: TokenMintingRail | None = None,
        relays: Sequence[str] | None = None,
        resolver: LnurlInvoiceResolver | None = None,
        pacer: PayoutPacer | None = None,
    ) -> PaymentRouter:
        """Wire a router from the external collaborators.

        When ``minter`` is omitted and ``rail`` can also mint tokens, the rail
        doubles as the DM fallback's minting capability.
        """
        if minter is None and isinstance(rail, TokenMintingRail):
            minter = rail
        codec = GiftWrapCodec(RelayPublisher(relay_pool))
        return cls(
            AddressResolver(profiles),
            DirectWalletExecutor(wallet),
            LnurlExecutor(resolver or LnurlInvoiceResolver(), rail),
            DmExecutor(codec, identity, minter, relays),
            pacer=pacer,
        )

    async def _resolve_address(self, attempt: RouteAttempt) -> LightningAddressRecord | None:
        if attempt.address is None:
            try:
                attempt.address = await self.addresses.resolve(attempt.recipient.pubkey)
            except Exception as exc:
                logger.warning(
                    "Address resolution failed for %s: %s", attempt.recipient.label, exc
                )
                return None
            logger.info(
                "Lightning address for %s: %s (source: %s)",
                attempt.recipient.label,
                attempt.address.address,
                attempt.address.source.value,
            )
        return attempt.address

    async def route(self, recipient: PayoutRecipient) -> RouteAttempt:
        """Run the full route for ``recipient`` and return its trace."""
        attempt = RouteAttempt(recipient=recipient)
        logger.info("Routing payment of %s sats to %s", recipient.amount_sats, recipient.label)

        if await self.direct.can_pay(recipient.amount_sats):
            attempt.advance(RouteState.TRYING_DIRECT_WALLET)
            address = await self._resolve_address(attempt)
            if address is not None:
                comment = self.direct_comment_template.format(name=recipient.name or "player")
                attempt.direct = await self.direct.execute(
                    address.address, recipient.amount_sats, comment
                )
                if attempt.direct.success:
                    logger.info("Direct wallet payment to %s succeeded", recipient.label)
                    attempt.succeed(attempt.direct.to_payment_result())
                    return attempt
                logger.info("Direct wallet payment failed: %s", attempt.direct.error)

        attempt.advance(RouteState.TRYING_LNURL)
        address = await self._resolve_address(attempt)
        if address is not None:
            attempt.lnurl = await self.lnurl.execute(address, recipient.amount_sats, self.comment)
            if attempt.lnurl.success:
                logger.info("LNURL payment to %s succeeded", recipient.label)
                attempt.succeed(attempt.lnurl.to_payment_result())
                return attempt
            logger.info("LNURL payment failed: %s", attempt.lnurl.error)

        attempt.advance(RouteState.TRYING_DM_FALLBACK)
        if not self.dm.available:
            logger.error("All payment methods failed for %s", recipient.label)
            attempt.fail(ExhaustionError("All payment methods failed"))
            return attempt

        logger.info("Falling back to Cashu DM for %s", recipient.label)
        attempt.dm = await self.dm.execute(recipient)
        if attempt.dm.success:
            logger.info("Cashu DM sent to %s", recipient.label)
            attempt.succeed(attempt.dm.to_payment_result())
            return attempt

        logger.error("All payment methods failed for %s", recipient.label)
        attempt.fail(ExhaustionError("All payment methods failed"))
        return attempt

    async def route_payment(self, recipient: PayoutRecipient) -> PaymentResult:
        """Route one payout and return its aggregate result."""
        attempt = await self.route(recipient)
        if attempt.result is None:
            raise RuntimeError(f"Route for {recipient.label} ended without a result")
        return attempt.result

    async def process_payouts(
        self,
        recipients: Sequence[PayoutRecipient],
        on_progress: ProgressCallback | None = None,
    ) -> PayoutSummary:
        """Settle ``recipients`` one after another, paced by the router's pacer.

        Every recipient gets exactly one entry in the summary, whatever
        happened to the recipients before it.
        """
        summary = PayoutSummary()
        total = len(recipients)

        for index, recipient in enumerate(recipients):
            await self.pacer.acquire()

            if on_progress is not None:
                try:
                    await maybe_await(on_progress(index, total, recipient))
                except Exception:
                    logger.exception("Payout progress callback failed")

            try:
                result = await self.route_payment(recipient)
            except Exception as exc:
                logger.exception("Unexpected error routing payout to %s", recipient.label)
                result = PaymentResult.exhausted(f"Unexpected routing error: {exc}")

            summary.record(recipient, result)

        logger.info(
            "Payout summary: %d/%d successful, %d sats paid",
            summary.success_count,
            total,
            summary.total_paid_sats,
        )
        return summary
