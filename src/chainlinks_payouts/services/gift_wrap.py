"""NIP-59 gift wrap service for private messaging.

Implements the 3-layer envelope:

1. Rumor: unsigned event with the actual content
2. Seal (kind 13): rumor encrypted to the recipient, signed by the sender
3. Gift wrap (kind 1059): seal encrypted and signed with a one-time key

Only the gift wrap is ever published. Its ``pubkey`` is the one-time key and
its only tag is ``["p", recipient]``; the true sender is visible only after
both layers are decrypted.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import time
from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any

from pydantic import ValidationError as SchemaValidationError

from chainlinks_payouts.core.errors import CryptographicError, DecryptionError, ValidationError
from chainlinks_payouts.core.settings import settings
from chainlinks_payouts.schemas.event import GIFT_WRAP_KIND, SEAL_KIND, GiftWrap, Rumor, Seal
from chainlinks_payouts.services import nip44
from chainlinks_payouts.services.crypto import CryptoService
from chainlinks_payouts.services.interfaces import Disposer, IdentityProvider
from chainlinks_payouts.services.relay import (
    PublishReport,
    RelayPublisher,
    RelaySubscriber,
    maybe_await,
)

logger = logging.getLogger(__name__)

MessageHandler = Callable[[Rumor, str], Awaitable[None] | None]


class GiftWrapCodec:
    """Builds, publishes and opens gift-wrapped messages."""

    def __init__(
        self,
        publisher: RelayPublisher | None = None,
        *,
        rumor_kind: int | None = None,
        timestamp_window_seconds: int | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.publisher = publisher
        self.rumor_kind = rumor_kind if rumor_kind is not None else settings.rumor_kind
        self.timestamp_window_seconds = (
            timestamp_window_seconds
            if timestamp_window_seconds is not None
            else settings.timestamp_window_seconds
        )
        self._clock = clock

    def _now(self) -> int:
        return int(self._clock())

    def random_timestamp(self) -> int:
        """Return a timestamp uniformly drawn from the trailing window."""
        return self._now() - secrets.randbelow(self.timestamp_window_seconds)

    def create_rumor(
        self,
        content: str,
        sender_pubkey: str,
        kind: int | None = None,
        tags: Sequence[Sequence[str]] | None = None,
    ) -> Rumor:
        """Create the unsigned inner event."""
        kind = self.rumor_kind if kind is None else kind
        tag_list = [list(tag) for tag in tags or []]
        created_at = self._now()
        event_id = CryptoService.compute_event_id(
            sender_pubkey, created_at, kind, tag_list, content
        )
        return Rumor(
            id=event_id,
            pubkey=sender_pubkey,
            created_at=created_at,
            kind=kind,
            tags=tag_list,
            content=content,
        )

    def create_seal(self, rumor: Rumor, sender_secret: bytes, recipient_public: str) -> Seal:
        """Encrypt ``rumor`` to the recipient and sign it with the sender's key."""
        conversation_key = nip44.get_conversation_key(sender_secret, recipient_public)
        ciphertext = nip44.encrypt(rumor.model_dump_json(exclude_none=True), conversation_key)
        template = {
            "kind": SEAL_KIND,
            "created_at": self.random_timestamp(),
            "tags": [],
            "content": ciphertext,
        }
        return Seal.model_validate(CryptoService.sign_event(template, sender_secret))

    def create_gift_wrap(self, seal: Seal, recipient_public: str) -> GiftWrap:
        """Encrypt ``seal`` with a fresh one-time key and sign with that key.

        The one-time secret never leaves this method.
        """
        ephemeral_secret = CryptoService.generate_secret_key()
        try:
            conversation_key = nip44.get_conversation_key(ephemeral_secret, recipient_public)
            ciphertext = nip44.encrypt(seal.model_dump_json(), conversation_key)
            template = {
                "kind": GIFT_WRAP_KIND,
                "created_at": self.random_timestamp(),
                "tags": [["p", recipient_public]],
                "content": ciphertext,
            }
            signed = CryptoService.sign_event(template, ephemeral_secret)
        finally:
            del ephemeral_secret
        return GiftWrap.model_validate(signed)

    def wrap(
        self,
        content: str,
        sender_secret: bytes,
        recipient_public: str,
        kind: int | None = None,
    ) -> GiftWrap:
        """Wrap ``content`` for ``recipient_public`` in all three layers."""
        try:
            CryptoService.validate_and_decode_pubkey(recipient_public)
        except ValueError as err:
            raise ValidationError(f"Invalid recipient public key: {err}") from err

        sender_pubkey = CryptoService.get_public_key(sender_secret)
        rumor = self.create_rumor(content, sender_pubkey, kind)
        seal = self.create_seal(rumor, sender_secret, recipient_public)
        gift_wrap = self.create_gift_wrap(seal, recipient_public)
        logger.debug(
            "Gift wrap %s created from %s to %s (one-time key %s)",
            gift_wrap.id,
            sender_pubkey[:8],
            recipient_public[:8],
            gift_wrap.pubkey[:8],
        )
        return gift_wrap

    async def publish(self, gift_wrap: GiftWrap, relays: Sequence[str]) -> PublishReport:
        """Publish to all ``relays`` concurrently; at least one must accept.

        Raises:
            DeliveryError: If every relay rejected the event
        """
        if self.publisher is None:
            raise RuntimeError("GiftWrapCodec has no relay publisher configured")
        return await self.publisher.publish(gift_wrap.model_dump(), relays)

    async def send(
        self,
        content: str,
        sender_secret: bytes,
        recipient_public: str,
        relays: Sequence[str] | None = None,
        kind: int | None = None,
    ) -> tuple[GiftWrap, PublishReport]:
        """Wrap ``content`` and publish it, returning the event and relay report."""
        gift_wrap = self.wrap(content, sender_secret, recipient_public, kind)
        report = await self.publish(gift_wrap, relays if relays is not None else settings.relays)
        logger.info("Gift wrap %s sent to %d relays", gift_wrap.id, len(report.accepted))
        return gift_wrap, report

    def unwrap(self, gift_wrap: GiftWrap | Mapping[str, Any], recipient_secret: bytes) -> Rumor:
        """Open a gift wrap addressed to ``recipient_secret``.

        Raises:
            DecryptionError: If either layer fails to decrypt, parse or verify
        """
        try:
            if not isinstance(gift_wrap, GiftWrap):
                gift_wrap = GiftWrap.model_validate(gift_wrap)
            if not CryptoService.verify_event(gift_wrap.model_dump()):
                raise DecryptionError("Gift wrap signature is invalid")

            outer_key = nip44.get_conversation_key(recipient_secret, gift_wrap.pubkey)
            seal = Seal.model_validate_json(nip44.decrypt(gift_wrap.content, outer_key))
            if not CryptoService.verify_event(seal.model_dump()):
                raise DecryptionError("Seal signature is invalid")

            inner_key = nip44.get_conversation_key(recipient_secret, seal.pubkey)
            rumor = Rumor.model_validate_json(nip44.decrypt(seal.content, inner_key))
        except DecryptionError:
            raise
        except (CryptographicError, SchemaValidationError, ValueError) as exc:
            raise DecryptionError("Failed to decrypt message") from exc

        if rumor.pubkey != seal.pubkey:
            raise DecryptionError("Rumor author does not match seal signer")
        return rumor


class GiftWrapSession:
    """Owns the single live gift wrap subscription of a running session.

    Starting a subscription always disposes of the previous one first, so at
    most one is ever active even when ``subscribe`` is called concurrently.
    """

    def __init__(
        self,
        codec: GiftWrapCodec,
        subscriber: RelaySubscriber,
        identity: IdentityProvider,
    ) -> None:
        self.codec = codec
        self.subscriber = subscriber
        self.identity = identity
        self._disposer: Disposer | None = None
        self._generation = 0
        self._lock = asyncio.Lock()

    @property
    def active(self) -> bool:
        return self._disposer is not None

    def _dispose_current(self) -> None:
        disposer, self._disposer = self._disposer, None
        self._generation += 1
        if disposer is not None:
            logger.debug("Closing previous gift wrap subscription")
            disposer()

    def _make_handler(
        self, generation: int, on_message: MessageHandler
    ) -> Callable[[Mapping[str, Any]], Awaitable[None]]:
        async def handle(event: Mapping[str, Any]) -> None:
            if generation != self._generation:
                return
            try:
                rumor = self.codec.unwrap(event, self.identity.secret_key)
            except DecryptionError as exc:
                logger.warning("Dropping gift wrap %s: %s", event.get("id"), exc)
                return
            try:
                await maybe_await(on_message(rumor, rumor.pubkey))
            except Exception:
                logger.exception("Gift wrap handler failed for rumor %s", rumor.id)

        return handle

    async def subscribe(
        self,
        relays: Sequence[str],
        on_message: MessageHandler,
        *,
        self_public: str | None = None,
    ) -> Disposer:
        """Listen for gift wraps tagged to this identity.

        Returns:
            A disposer that closes this subscription if it is still active
        """
        public_key = self_public or self.identity.public_key
        if public_key != self.identity.public_key:
            raise ValidationError("Can only subscribe for the session's own public key")

        async with self._lock:
            self._dispose_current()
            generation = self._generation
            filters = [{"kinds": [GIFT_WRAP_KIND], "#p": [public_key]}]
            self._disposer = self.subscriber.subscribe(
                relays,
                filters,
                self._make_handler(generation, on_message),
                on_eose=lambda: logger.info("Gift wrap subscription established"),
            )

        def dispose() -> None:
            if generation == self._generation:
                self._dispose_current()

        return dispose

    async def close(self) -> None:
        """Close the active subscription, if any."""
        async with self._lock:
            self._dispose_current()
