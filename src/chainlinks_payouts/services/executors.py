"""Payment executors, one per settlement rail.

Each executor turns every failure of its rail into a tagged result so the
router can always move on to the next rail.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from chainlinks_payouts.core.errors import SettlementError
from chainlinks_payouts.core.settings import settings
from chainlinks_payouts.models.payment import (
    DirectResult,
    DmResult,
    LightningAddressRecord,
    LnurlResult,
    PayoutRecipient,
)
from chainlinks_payouts.schemas.cashu import CashuPaymentMessage
from chainlinks_payouts.services.gift_wrap import GiftWrapCodec
from chainlinks_payouts.services.interfaces import (
    DirectWallet,
    IdentityProvider,
    SettlementRail,
    TokenMintingRail,
)
from chainlinks_payouts.services.lnurl import LnurlInvoiceResolver

logger = logging.getLogger(__name__)


class DirectWalletExecutor:
    """Pays a Lightning address straight from the self-custodial wallet."""

    def __init__(self, wallet: DirectWallet | None) -> None:
        self.wallet = wallet

    async def can_pay(self, amount_sats: int) -> bool:
        """Return True if the wallet is initialized and holds ``amount_sats``."""
        if self.wallet is None:
            return False
        try:
            if not self.wallet.is_initialized():
                return False
            balance = await self.wallet.get_balance()
        except Exception as exc:
            logger.warning("Direct wallet unavailable: %s", exc)
            return False
        if balance < amount_sats:
            logger.info("Insufficient direct wallet balance: %s < %s", balance, amount_sats)
            return False
        return True

    async def execute(
        self, address: str, amount_sats: int, comment: str | None = None
    ) -> DirectResult:
        if self.wallet is None:
            return DirectResult(success=False, error="Direct wallet not configured")
        try:
            result = await self.wallet.pay_address(address, amount_sats, comment)
        except Exception as exc:
            logger.warning("Direct wallet payment to %s raised: %s", address, exc)
            return DirectResult(success=False, error=str(exc) or type(exc).__name__)
        if not isinstance(result, DirectResult):
            return DirectResult(success=False, error="Direct wallet returned an unexpected result")
        return result


class LnurlExecutor:
    """Fetches an LNURL invoice and settles it through the injected rail."""

    def __init__(self, resolver: LnurlInvoiceResolver, rail: SettlementRail) -> None:
        self.resolver = resolver
        self.rail = rail

    async def execute(
        self,
        record: LightningAddressRecord,
        amount_sats: int,
        comment: str | None = None,
    ) -> LnurlResult:
        try:
            invoice = await self.resolver.resolve_and_get_invoice(
                record.address, amount_sats, comment
            )
        except Exception as exc:
            logger.exception("Unexpected error fetching invoice for %s", record.address)
            return LnurlResult(
                success=False, source=record.source, error=str(exc) or type(exc).__name__
            )
        if invoice is None:
            return LnurlResult(
                success=False,
                source=record.source,
                error=f"Could not get an invoice from {record.address}",
            )
        try:
            paid = await self.rail.melt_invoice_to_payment(invoice)
        except Exception as exc:
            logger.warning("Settlement rail failed to pay invoice: %s", exc)
            return LnurlResult(
                success=False, source=record.source, invoice=invoice, error=str(exc) or None
            )
        return LnurlResult(
            success=bool(paid),
            source=record.source,
            invoice=invoice,
            error=None if paid else "Cashu payment failed",
        )


class DmExecutor:
    """Mints a bearer token and delivers it inside a gift wrap."""

    def __init__(
        self,
        codec: GiftWrapCodec,
        identity: IdentityProvider,
        minter: TokenMintingRail | None,
        relays: Sequence[str] | None = None,
        message_template: str | None = None,
    ) -> None:
        self.codec = codec
        self.identity = identity
        self.minter = minter
        self.relays = list(relays) if relays is not None else list(settings.relays)
        self.message_template = message_template or settings.dm_message_template

    @property
    def available(self) -> bool:
        return self.minter is not None

    def build_message(self, amount_sats: int, token: str) -> str:
        return CashuPaymentMessage(
            amount=amount_sats,
            token=token,
            message=self.message_template.format(amount=amount_sats),
        ).model_dump_json()

    async def execute(self, recipient: PayoutRecipient) -> DmResult:
        if self.minter is None:
            return DmResult(success=False, error="No token minting capability")
        try:
            token = await self.minter.mint_transferable_token(recipient.amount_sats)
        except Exception as exc:
            logger.error("Failed to create Cashu token for DM: %s", exc)
            return DmResult(success=False, error=f"Token minting failed: {exc}")

        content = self.build_message(recipient.amount_sats, token)
        try:
            gift_wrap, report = await self.codec.send(
                content, self.identity.secret_key, recipient.pubkey, self.relays
            )
        except SettlementError as exc:
            logger.error("Failed to deliver Cashu DM to %s: %s", recipient.label, exc)
            return DmResult(success=False, error=str(exc))
        except Exception as exc:
            logger.exception("Unexpected error delivering Cashu DM to %s", recipient.label)
            return DmResult(success=False, error=str(exc) or type(exc).__name__)
        return DmResult(success=True, event_id=gift_wrap.id, relays=report.accepted)
