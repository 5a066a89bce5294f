"""Tests for the per-rail payment executors."""

from unittest.mock import AsyncMock

import pytest

from chainlinks_payouts.models.payment import AddressSource, LightningAddressRecord, PayoutRecipient
from chainlinks_payouts.services.crypto import LocalIdentity
from chainlinks_payouts.services.executors import DirectWalletExecutor, DmExecutor, LnurlExecutor
from chainlinks_payouts.services.gift_wrap import GiftWrapCodec
from tests.conftest import (
    TEST_RELAYS,
    FakeMinter,
    FakeRail,
    FakeRelayPool,
    FakeWallet,
    lnurl_transport,
)

KIND0_ADDRESS = LightningAddressRecord("bob@example.com", AddressSource.KIND0)


@pytest.mark.asyncio
async def test_can_pay_tolerates_wallet_errors() -> None:
    wallet = FakeWallet(balance=10_000)
    wallet.get_balance = AsyncMock(side_effect=RuntimeError("sdk not synced"))

    assert await DirectWalletExecutor(wallet).can_pay(100) is False
    assert await DirectWalletExecutor(None).can_pay(100) is False
    assert await DirectWalletExecutor(FakeWallet(balance=100)).can_pay(100) is True


@pytest.mark.asyncio
async def test_direct_execute_rejects_unexpected_wallet_results() -> None:
    wallet = FakeWallet(balance=10_000)
    wallet.pay_address = AsyncMock(return_value={"ok": True})

    result = await DirectWalletExecutor(wallet).execute("bob@example.com", 100)

    assert result.success is False
    assert "unexpected" in result.error


@pytest.mark.asyncio
async def test_lnurl_execute_pays_invoice(make_resolver) -> None:
    rail = FakeRail()
    transport, _ = lnurl_transport(invoice="lnbc1pinvoice")

    async with make_resolver(transport) as resolver:
        result = await LnurlExecutor(resolver, rail).execute(KIND0_ADDRESS, 1000, "gg")

    assert result.success is True
    assert result.invoice == "lnbc1pinvoice"
    assert rail.invoices == ["lnbc1pinvoice"]


@pytest.mark.asyncio
async def test_lnurl_execute_without_invoice_never_touches_rail(make_resolver) -> None:
    rail = FakeRail()
    transport, _ = lnurl_transport(discovery_status=503)

    async with make_resolver(transport) as resolver:
        result = await LnurlExecutor(resolver, rail).execute(KIND0_ADDRESS, 1000)

    assert result.success is False
    assert "bob@example.com" in result.error
    assert rail.invoices == []


@pytest.mark.asyncio
async def test_lnurl_execute_reports_rail_errors(make_resolver) -> None:
    rail = FakeRail()
    rail.melt_invoice_to_payment = AsyncMock(side_effect=RuntimeError("mint unreachable"))
    transport, _ = lnurl_transport()

    async with make_resolver(transport) as resolver:
        result = await LnurlExecutor(resolver, rail).execute(KIND0_ADDRESS, 1000)

    assert result.success is False
    assert result.error == "mint unreachable"
    assert result.source is AddressSource.KIND0


@pytest.mark.asyncio
async def test_dm_execute_reports_accepting_relays(codec, relay_pool: FakeRelayPool) -> None:
    sender = LocalIdentity.generate()
    relay_pool.rejecting = {TEST_RELAYS[0]}
    recipient = PayoutRecipient(pubkey=LocalIdentity.generate().public_key, amount_sats=50)
    executor = DmExecutor(codec, sender, FakeMinter(), TEST_RELAYS)

    result = await executor.execute(recipient)

    assert result.success is True
    assert set(result.relays) == set(TEST_RELAYS[1:])
    assert len(result.event_id) == 64


@pytest.mark.asyncio
async def test_dm_execute_without_minter(codec) -> None:
    executor = DmExecutor(codec, LocalIdentity.generate(), None, TEST_RELAYS)
    recipient = PayoutRecipient(pubkey=LocalIdentity.generate().public_key, amount_sats=50)

    result = await executor.execute(recipient)

    assert executor.available is False
    assert result.success is False


def test_dm_message_uses_template(codec) -> None:
    executor = DmExecutor(
        codec, LocalIdentity.generate(), FakeMinter(), TEST_RELAYS, message_template="{amount} for you"
    )

    assert '"message":"7 for you"' in executor.build_message(7, "cashuA")


@pytest.mark.asyncio
async def test_dm_execute_turns_unexpected_errors_into_results() -> None:
    executor = DmExecutor(GiftWrapCodec(), LocalIdentity.generate(), FakeMinter(), TEST_RELAYS)
    recipient = PayoutRecipient(pubkey=LocalIdentity.generate().public_key, amount_sats=50)

    result = await executor.execute(recipient)

    assert result.success is False
    assert "publisher" in result.error


@pytest.mark.asyncio
async def test_lnurl_execute_turns_resolver_errors_into_results(make_resolver) -> None:
    rail = FakeRail()
    resolver = make_resolver(lnurl_transport()[0])
    resolver.resolve_and_get_invoice = AsyncMock(side_effect=KeyError("callback"))

    result = await LnurlExecutor(resolver, rail).execute(KIND0_ADDRESS, 1000)

    assert result.success is False
    assert result.source is AddressSource.KIND0
    assert rail.invoices == []
