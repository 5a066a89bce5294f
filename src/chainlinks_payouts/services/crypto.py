"""Cryptographic services for Nostr identities and events."""

from __future__ import annotations

import hashlib
import json
import secrets
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import bech32
from coincurve import PrivateKey, PublicKey, PublicKeyXOnly

PUBKEY_LENGTH_BYTES = 32
SECRET_KEY_LENGTH_BYTES = 32
NPUB_HRP = "npub"
NSEC_HRP = "nsec"


class CryptoService:
    """Service handling secp256k1 keys, NIP-01 event ids and BIP-340 signatures."""

    @staticmethod
    def _decode_hex(data: str) -> bytes:
        try:
            return bytes.fromhex(data)
        except ValueError as err:
            raise ValueError(f"Invalid hex encoding: {err}") from err

    @staticmethod
    def _decode_bech32(data: str, expected_hrp: str) -> bytes:
        hrp, words = bech32.bech32_decode(data)
        if hrp is None or words is None:
            raise ValueError("Invalid bech32 encoding")
        if hrp != expected_hrp:
            raise ValueError(f"Expected '{expected_hrp}' prefix, got '{hrp}'")
        decoded = bech32.convertbits(words, 5, 8, False)
        if decoded is None:
            raise ValueError("Invalid bech32 payload")
        return bytes(decoded)

    @staticmethod
    def validate_and_decode_pubkey(pubkey_encoded: str) -> bytes:
        """Validate and decode an x-only public key given as hex or npub."""
        cleaned = pubkey_encoded.strip()
        if cleaned.startswith(NPUB_HRP + "1"):
            result = CryptoService._decode_bech32(cleaned, NPUB_HRP)
        else:
            result = CryptoService._decode_hex(cleaned)
        if len(result) != PUBKEY_LENGTH_BYTES:
            raise ValueError("Public keys must be 32 bytes")
        try:
            PublicKeyXOnly(result)
        except ValueError as err:
            raise ValueError(f"Public key is not on the curve: {err}") from err
        return result

    @staticmethod
    def decode_secret_key(secret_encoded: str) -> bytes:
        """Decode a secret key given as hex or nsec."""
        cleaned = secret_encoded.strip()
        if cleaned.startswith(NSEC_HRP + "1"):
            result = CryptoService._decode_bech32(cleaned, NSEC_HRP)
        else:
            result = CryptoService._decode_hex(cleaned)
        if len(result) != SECRET_KEY_LENGTH_BYTES:
            raise ValueError("Secret keys must be 32 bytes")
        return result

    @staticmethod
    def npub_encode(pubkey_hex: str) -> str:
        """Return the NIP-19 ``npub`` text form of a hex public key."""
        pubkey = CryptoService._decode_hex(pubkey_hex)
        if len(pubkey) != PUBKEY_LENGTH_BYTES:
            raise ValueError("Public keys must be 32 bytes")
        words = bech32.convertbits(pubkey, 8, 5)
        encoded = bech32.bech32_encode(NPUB_HRP, words)
        if encoded is None:  # pragma: no cover - bech32 only fails on bad hrp
            raise ValueError("Failed to encode npub")
        return encoded

    @staticmethod
    def npub_decode(npub: str) -> str:
        """Return the hex public key for an ``npub`` string."""
        return CryptoService._decode_bech32(npub.strip(), NPUB_HRP).hex()

    @staticmethod
    def generate_secret_key() -> bytes:
        """Generate a new random secp256k1 secret key."""
        return PrivateKey().secret

    @staticmethod
    def get_public_key(secret_key: bytes) -> str:
        """Return the hex x-only public key for ``secret_key``."""
        return PrivateKey(secret_key).public_key.format(compressed=True)[1:].hex()

    @staticmethod
    def shared_x(secret_key: bytes, pubkey_hex: str) -> bytes:
        """Return the unhashed ECDH x-coordinate between a secret and an x-only key."""
        pubkey = CryptoService._decode_hex(pubkey_hex)
        if len(pubkey) != PUBKEY_LENGTH_BYTES:
            raise ValueError("Public keys must be 32 bytes")
        point = PublicKey(b"\x02" + pubkey).multiply(secret_key)
        return point.format(compressed=True)[1:]

    @staticmethod
    def serialize_event(
        pubkey: str,
        created_at: int,
        kind: int,
        tags: Sequence[Sequence[str]],
        content: str,
    ) -> bytes:
        """Return the canonical NIP-01 serialization used for event ids."""
        payload = [0, pubkey, created_at, kind, [list(tag) for tag in tags], content]
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=False).encode()

    @staticmethod
    def compute_event_id(
        pubkey: str,
        created_at: int,
        kind: int,
        tags: Sequence[Sequence[str]],
        content: str,
    ) -> str:
        """Return the hex SHA-256 id of an event."""
        serialized = CryptoService.serialize_event(pubkey, created_at, kind, tags, content)
        return hashlib.sha256(serialized).hexdigest()

    @staticmethod
    def sign_event(template: Mapping[str, Any], secret_key: bytes) -> dict[str, Any]:
        """Finalize an event template: set pubkey, compute id and sign it.

        Args:
            template: Mapping with ``kind``, ``created_at``, ``tags`` and ``content``
            secret_key: Raw 32-byte secret key of the signer

        Returns:
            A new dict with ``id``, ``pubkey`` and ``sig`` populated
        """
        pubkey = CryptoService.get_public_key(secret_key)
        tags = [list(tag) for tag in template.get("tags", [])]
        event_id = CryptoService.compute_event_id(
            pubkey,
            int(template["created_at"]),
            int(template["kind"]),
            tags,
            str(template["content"]),
        )
        signature = PrivateKey(secret_key).sign_schnorr(
            bytes.fromhex(event_id), secrets.token_bytes(32)
        )
        return {
            "id": event_id,
            "pubkey": pubkey,
            "created_at": int(template["created_at"]),
            "kind": int(template["kind"]),
            "tags": tags,
            "content": str(template["content"]),
            "sig": signature.hex(),
        }

    @staticmethod
    def verify_event(event: Mapping[str, Any]) -> bool:
        """Return True if the event id matches its fields and the signature is valid."""
        try:
            expected_id = CryptoService.compute_event_id(
                event["pubkey"],
                int(event["created_at"]),
                int(event["kind"]),
                event.get("tags", []),
                event["content"],
            )
            if expected_id != event["id"]:
                return False
            pubkey = PublicKeyXOnly(bytes.fromhex(event["pubkey"]))
            return bool(pubkey.verify(bytes.fromhex(event["sig"]), bytes.fromhex(expected_id)))
        except (KeyError, TypeError, ValueError):
            return False


@dataclass(frozen=True)
class LocalIdentity:
    """In-memory identity holding a secret key, usable as an identity provider."""

    secret_key: bytes = field(repr=False)

    @classmethod
    def generate(cls) -> LocalIdentity:
        return cls(CryptoService.generate_secret_key())

    @classmethod
    def from_encoded(cls, secret_encoded: str) -> LocalIdentity:
        return cls(CryptoService.decode_secret_key(secret_encoded))

    @property
    def public_key(self) -> str:
        return CryptoService.get_public_key(self.secret_key)

    @property
    def npub(self) -> str:
        return CryptoService.npub_encode(self.public_key)

    def sign(self, template: Mapping[str, Any]) -> dict[str, Any]:
        return CryptoService.sign_event(template, self.secret_key)
