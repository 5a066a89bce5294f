# tests/conftest.py
from __future__ import annotations

import asyncio
import inspect
import os
from collections.abc import Awaitable, Callable, Iterator, Mapping, Sequence
from typing import Any

import httpx
import pytest

os.environ.setdefault("PYTEST_RUNNING", "true")

from chainlinks_payouts.core.settings import Settings
from chainlinks_payouts.models.payment import DirectResult, PayoutRecipient
from chainlinks_payouts.services.crypto import LocalIdentity
from chainlinks_payouts.services.gift_wrap import GiftWrapCodec
from chainlinks_payouts.services.lnurl import LnurlInvoiceResolver
from chainlinks_payouts.services.relay import RelayPublisher

TEST_RELAYS = ["wss://relay.one", "wss://relay.two", "wss://relay.three"]


class FakeRelayPool:
    """In-memory relay pool recording publishes and live subscriptions."""

    def __init__(self, rejecting: Sequence[str] = ()) -> None:
        self.rejecting = set(rejecting)
        self.published: list[tuple[str, Mapping[str, Any]]] = []
        self.subscriptions: list[dict[str, Any]] = []

    def publish(self, relays: Sequence[str], event: Mapping[str, Any]) -> list[Awaitable[str]]:
        async def _send(relay: str) -> str:
            await asyncio.sleep(0)
            if relay in self.rejecting:
                raise ConnectionError(f"{relay} rejected the event")
            self.published.append((relay, event))
            return relay

        return [_send(relay) for relay in relays]

    def subscribe_many(
        self,
        relays: Sequence[str],
        filters: Sequence[Mapping[str, Any]],
        *,
        on_event: Callable[[Mapping[str, Any]], Any],
        on_eose: Callable[[], None] | None = None,
    ) -> Callable[[], None]:
        subscription = {
            "relays": list(relays),
            "filters": list(filters),
            "on_event": on_event,
            "closed": False,
        }
        self.subscriptions.append(subscription)
        if on_eose is not None:
            on_eose()

        def close() -> None:
            subscription["closed"] = True

        return close

    @property
    def open_subscriptions(self) -> list[dict[str, Any]]:
        return [sub for sub in self.subscriptions if not sub["closed"]]

    async def deliver(self, event: Mapping[str, Any]) -> None:
        """Hand ``event`` to every subscription, open or not, like a late socket would."""
        for subscription in list(self.subscriptions):
            outcome = subscription["on_event"](event)
            if inspect.isawaitable(outcome):
                await outcome


class FakeProfileStore:
    def __init__(self, profiles: Mapping[str, Mapping[str, Any] | None] | None = None) -> None:
        self.profiles = dict(profiles or {})
        self.failing: dict[str, Exception] = {}
        self.calls: list[str] = []

    async def fetch_profile(self, pubkey: str) -> Mapping[str, Any] | None:
        self.calls.append(pubkey)
        if pubkey in self.failing:
            raise self.failing[pubkey]
        return self.profiles.get(pubkey)


class FakeWallet:
    def __init__(
        self,
        *,
        initialized: bool = True,
        balance: int = 0,
        result: DirectResult | None = None,
    ) -> None:
        self.initialized = initialized
        self.balance = balance
        self.result = result or DirectResult(success=True, tx_id="breez-tx", fee_sats=1)
        self.payments: list[tuple[str, int, str | None]] = []

    def is_initialized(self) -> bool:
        return self.initialized

    async def get_balance(self) -> int:
        return self.balance

    async def pay_address(
        self, address: str, amount_sats: int, comment: str | None = None
    ) -> DirectResult:
        self.payments.append((address, amount_sats, comment))
        return self.result


class FakeRail:
    """Settlement rail paying invoices and, optionally, minting tokens."""

    def __init__(self, *, pays: bool = True) -> None:
        self.pays = pays
        self.invoices: list[str] = []

    async def melt_invoice_to_payment(self, bolt11: str) -> bool:
        self.invoices.append(bolt11)
        return self.pays


class FakeMinter:
    def __init__(self, token: str = "cashuAeyJ0b2tlbiI6W119", error: Exception | None = None):
        self.token = token
        self.error = error
        self.amounts: list[int] = []

    async def mint_transferable_token(self, amount_sats: int) -> str:
        self.amounts.append(amount_sats)
        if self.error is not None:
            raise self.error
        return self.token


def lnurl_transport(
    *,
    min_sendable: int = 1_000_000,
    max_sendable: int = 100_000_000,
    invoice: str = "lnbc10u1pexampleinvoice",
    discovery_status: int = 200,
    extra: Mapping[str, Any] | None = None,
    callback_body: Mapping[str, Any] | None = None,
) -> tuple[httpx.MockTransport, list[httpx.Request]]:
    """Build a mock LNURL-pay server for any domain and record its requests."""
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.url.path.startswith("/.well-known/lnurlp/"):
            name = request.url.path.rsplit("/", 1)[-1]
            body = {
                "tag": "payRequest",
                "callback": f"https://{request.url.host}/lnurlp/{name}/callback",
                "minSendable": min_sendable,
                "maxSendable": max_sendable,
                "metadata": '[["text/plain","Pay to ' + name + '"]]',
            }
            body.update(extra or {})
            return httpx.Response(discovery_status, json=body)
        if request.url.path.endswith("/callback"):
            return httpx.Response(200, json=callback_body or {"pr": invoice, "routes": []})
        return httpx.Response(404, json={"status": "ERROR", "reason": "not found"})

    return httpx.MockTransport(handler), requests


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return Settings()


@pytest.fixture()
def alice() -> LocalIdentity:
    return LocalIdentity.generate()


@pytest.fixture()
def bob() -> LocalIdentity:
    return LocalIdentity.generate()


@pytest.fixture()
def relay_pool() -> FakeRelayPool:
    return FakeRelayPool()


@pytest.fixture()
def codec(relay_pool: FakeRelayPool) -> GiftWrapCodec:
    return GiftWrapCodec(RelayPublisher(relay_pool))


@pytest.fixture()
def profile_store() -> FakeProfileStore:
    return FakeProfileStore()


@pytest.fixture()
def recipients() -> Iterator[list[PayoutRecipient]]:
    yield [
        PayoutRecipient(pubkey=LocalIdentity.generate().public_key, amount_sats=1000, name=name)
        for name in ("r1", "r2", "r3")
    ]


@pytest.fixture()
def make_resolver() -> Callable[..., LnurlInvoiceResolver]:
    def _make(transport: httpx.AsyncBaseTransport) -> LnurlInvoiceResolver:
        return LnurlInvoiceResolver(transport=transport, timeout_seconds=1.0)

    return _make
