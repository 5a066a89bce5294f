"""Nostr event schemas used by the gift wrap envelope."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field, field_validator

SEAL_KIND = 13
PRIVATE_DIRECT_MESSAGE_KIND = 14
GIFT_WRAP_KIND = 1059

HEX_PUBKEY_PATTERN = r"^[0-9a-f]{64}$"
HEX_ID_PATTERN = r"^[0-9a-f]{64}$"
HEX_SIG_PATTERN = r"^[0-9a-f]{128}$"


class Rumor(BaseModel):
    """Unsigned event carrying the actual message.

    The ``id`` is present so recipients can reference the message, but there
    is no signature: a leaked rumor cannot be proven to come from its author.
    """

    id: str | None = Field(default=None, pattern=HEX_ID_PATTERN)
    pubkey: str = Field(..., pattern=HEX_PUBKEY_PATTERN)
    created_at: int
    kind: int
    tags: list[list[str]] = Field(default_factory=list)
    content: str

    model_config = ConfigDict(extra="ignore")


class SignedEvent(BaseModel):
    """A fully signed event as published to relays."""

    id: str = Field(..., pattern=HEX_ID_PATTERN)
    pubkey: str = Field(..., pattern=HEX_PUBKEY_PATTERN)
    created_at: int
    kind: int
    tags: list[list[str]] = Field(default_factory=list)
    content: str
    sig: str = Field(..., pattern=HEX_SIG_PATTERN)

    model_config = ConfigDict(extra="ignore", frozen=True)

    def tag_values(self, name: str) -> list[str]:
        """Return the first value of every tag called ``name``."""
        return [tag[1] for tag in self.tags if len(tag) > 1 and tag[0] == name]


class Seal(SignedEvent):
    """Kind 13 event: a rumor encrypted to the recipient, signed by the sender."""

    @field_validator("kind")
    @classmethod
    def _seal_kind(cls, value: int) -> int:
        if value != SEAL_KIND:
            raise ValueError(f"seal must be kind {SEAL_KIND}")
        return value


class GiftWrap(SignedEvent):
    """Kind 1059 event: a seal encrypted and signed with a one-time key."""

    @field_validator("kind")
    @classmethod
    def _gift_wrap_kind(cls, value: int) -> int:
        if value != GIFT_WRAP_KIND:
            raise ValueError(f"gift wrap must be kind {GIFT_WRAP_KIND}")
        return value

    @property
    def recipient(self) -> str | None:
        recipients = self.tag_values("p")
        return recipients[0] if recipients else None
