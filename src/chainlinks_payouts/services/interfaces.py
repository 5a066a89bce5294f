"""Contracts for the external collaborators the router depends on."""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from chainlinks_payouts.models.payment import DirectResult

Disposer = Callable[[], None]
EventHandler = Callable[[Mapping[str, Any]], Awaitable[None] | None]


class IdentityProvider(Protocol):
    """Holder of the local user's keys."""

    @property
    def secret_key(self) -> bytes: ...

    @property
    def public_key(self) -> str: ...

    def sign(self, template: Mapping[str, Any]) -> dict[str, Any]: ...


class RelayPool(Protocol):
    """Socket-level relay transport.

    ``publish`` returns one awaitable per relay; each resolves when that relay
    accepts the event and raises when it rejects it.
    """

    def publish(
        self, relays: Sequence[str], event: Mapping[str, Any]
    ) -> Sequence[Awaitable[Any]]: ...

    def subscribe_many(
        self,
        relays: Sequence[str],
        filters: Sequence[Mapping[str, Any]],
        *,
        on_event: EventHandler,
        on_eose: Callable[[], None] | None = None,
    ) -> Disposer: ...


class ProfileStore(Protocol):
    """Lookup of published kind 0 profile metadata."""

    async def fetch_profile(self, pubkey: str) -> Mapping[str, Any] | None: ...


class DirectWallet(Protocol):
    """Self-custodial wallet able to pay a Lightning address directly."""

    def is_initialized(self) -> bool: ...

    async def get_balance(self) -> int: ...

    async def pay_address(
        self, address: str, amount_sats: int, comment: str | None = None
    ) -> DirectResult: ...


class SettlementRail(Protocol):
    """Capability that settles a bolt11 invoice from the payer's funds."""

    async def melt_invoice_to_payment(self, bolt11: str) -> bool: ...


@runtime_checkable
class TokenMintingRail(Protocol):
    """Capability that mints a transferable bearer token."""

    async def mint_transferable_token(self, amount_sats: int) -> str: ...
