"""Fan-out publish and filtered subscribe against a relay pool."""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from chainlinks_payouts.core.errors import DeliveryError
from chainlinks_payouts.services.interfaces import Disposer, EventHandler, RelayPool

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PublishReport:
    """Per-relay outcome of one publish."""

    accepted: tuple[str, ...] = ()
    rejected: dict[str, str] = field(default_factory=dict)

    @property
    def delivered(self) -> bool:
        return bool(self.accepted)


class RelayPublisher:
    """Publishes an event to many relays at once."""

    def __init__(self, pool: RelayPool) -> None:
        self.pool = pool

    async def _publish_one(self, relay: str, event: Mapping[str, Any]) -> str:
        outcomes = self.pool.publish([relay], event)
        for outcome in outcomes:
            await outcome
        return relay

    async def publish(self, event: Mapping[str, Any], relays: Sequence[str]) -> PublishReport:
        """Publish ``event`` to every relay concurrently.

        Individual relay failures are logged; they never cancel the others.

        Raises:
            DeliveryError: If no relay accepted the event
        """
        if not relays:
            raise DeliveryError("No relays configured")

        outcomes = await asyncio.gather(
            *(self._publish_one(relay, event) for relay in relays),
            return_exceptions=True,
        )

        accepted: list[str] = []
        rejected: dict[str, str] = {}
        for relay, outcome in zip(relays, outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.info("Relay %s rejected event %s: %s", relay, event.get("id"), outcome)
                rejected[relay] = str(outcome) or type(outcome).__name__
            else:
                accepted.append(relay)

        logger.info(
            "Published event %s to %d/%d relays", event.get("id"), len(accepted), len(relays)
        )
        if not accepted:
            raise DeliveryError("Failed to publish to any relay")
        return PublishReport(accepted=tuple(accepted), rejected=rejected)


class RelaySubscriber:
    """Opens filtered subscriptions; a thin wrapper over the pool."""

    def __init__(self, pool: RelayPool) -> None:
        self.pool = pool

    def subscribe(
        self,
        relays: Sequence[str],
        filters: Sequence[Mapping[str, Any]],
        on_event: EventHandler,
        on_eose: Callable[[], None] | None = None,
    ) -> Disposer:
        return self.pool.subscribe_many(relays, filters, on_event=on_event, on_eose=on_eose)


async def maybe_await(value: Awaitable[Any] | Any) -> Any:
    """Await ``value`` if it is awaitable, else return it unchanged."""
    if inspect.isawaitable(value):
        return await value
    return value
