"""Tests for NIP-44 v2 encryption."""

import base64

import pytest

from chainlinks_payouts.core.errors import CryptographicError
from chainlinks_payouts.services import nip44
from chainlinks_payouts.services.crypto import LocalIdentity


@pytest.mark.parametrize(
    ("unpadded", "padded"),
    [
        (1, 32),
        (16, 32),
        (32, 32),
        (33, 64),
        (37, 64),
        (64, 64),
        (65, 96),
        (100, 128),
        (200, 224),
        (250, 256),
        (320, 320),
        (383, 384),
        (400, 448),
        (515, 640),
        (900, 1024),
        (65535, 65536),
    ],
)
def test_calc_padded_len(unpadded: int, padded: int) -> None:
    assert nip44.calc_padded_len(unpadded) == padded


def test_conversation_key_is_symmetric(alice: LocalIdentity, bob: LocalIdentity) -> None:
    assert nip44.get_conversation_key(alice.secret_key, bob.public_key) == (
        nip44.get_conversation_key(bob.secret_key, alice.public_key)
    )


def test_encrypt_decrypt_between_parties(alice: LocalIdentity, bob: LocalIdentity) -> None:
    sender_key = nip44.get_conversation_key(alice.secret_key, bob.public_key)
    recipient_key = nip44.get_conversation_key(bob.secret_key, alice.public_key)

    payload = nip44.encrypt("gm from hole 9 ⛳", sender_key)

    assert nip44.decrypt(payload, recipient_key) == "gm from hole 9 ⛳"


def test_payload_layout(alice: LocalIdentity, bob: LocalIdentity) -> None:
    key = nip44.get_conversation_key(alice.secret_key, bob.public_key)
    nonce = bytes(31) + b"\x01"

    payload = nip44.encrypt("a", key, nonce=nonce)
    decoded = base64.b64decode(payload)

    assert decoded[0] == 2
    assert decoded[1:33] == nonce
    # 2-byte length prefix + 32 bytes padded plaintext + 32 byte MAC
    assert len(decoded) == 1 + 32 + 34 + 32
    assert nip44.encrypt("a", key, nonce=nonce) == payload


def test_random_nonce_changes_payload(alice: LocalIdentity, bob: LocalIdentity) -> None:
    key = nip44.get_conversation_key(alice.secret_key, bob.public_key)

    assert nip44.encrypt("same", key) != nip44.encrypt("same", key)


def test_decrypt_rejects_tampered_payload(alice: LocalIdentity, bob: LocalIdentity) -> None:
    key = nip44.get_conversation_key(alice.secret_key, bob.public_key)
    raw = bytearray(base64.b64decode(nip44.encrypt("secret", key)))
    raw[40] ^= 0x01

    with pytest.raises(CryptographicError, match="MAC"):
        nip44.decrypt(base64.b64encode(bytes(raw)).decode(), key)


def test_decrypt_with_wrong_key_fails(alice: LocalIdentity, bob: LocalIdentity) -> None:
    eve = LocalIdentity.generate()
    payload = nip44.encrypt("secret", nip44.get_conversation_key(alice.secret_key, bob.public_key))

    with pytest.raises(CryptographicError):
        nip44.decrypt(payload, nip44.get_conversation_key(eve.secret_key, bob.public_key))


@pytest.mark.parametrize("payload", ["", "#unsupported", "AgAA", "not base64!" * 20])
def test_decrypt_rejects_malformed_payloads(payload: str, alice: LocalIdentity) -> None:
    with pytest.raises(CryptographicError):
        nip44.decrypt(payload, bytes(32))


def test_encrypt_rejects_empty_and_oversized_plaintext() -> None:
    with pytest.raises(CryptographicError):
        nip44.encrypt("", bytes(32))
    with pytest.raises(CryptographicError):
        nip44.encrypt("x" * 65536, bytes(32))


def test_invalid_public_key_is_a_cryptographic_error(alice: LocalIdentity) -> None:
    with pytest.raises(CryptographicError):
        nip44.get_conversation_key(alice.secret_key, "ff" * 32)


def test_known_answer_vectors() -> None:
    """Conversation key and payload for secret keys 1 and 2 with nonce 1."""
    sec1 = bytes(31) + b"\x01"
    sec2 = bytes(31) + b"\x02"
    pub2 = LocalIdentity(sec2).public_key

    key = nip44.get_conversation_key(sec1, pub2)
    payload = nip44.encrypt("a", key, nonce=bytes(31) + b"\x01")

    assert pub2 == "c6047f9441ed7d6d3045406e95c07cd85c778e4b8cef3ca7abac09b95c709ee5"
    assert key.hex() == "c41c775356fd92eadc63ff5a0dc1da211b268cbea22316767095b2871ea1412d"
    assert payload == (
        "AgAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAABee0G5VSK0/9YypIObAtDKfYEAjD35uVkHyB0F4Dw"
        "rcNaCXlCWZKaArsGrY6M9wnuTMxWfp1RTN9Xga8no+kF5Vsb"
    )
    assert nip44.decrypt(payload, nip44.get_conversation_key(sec2, LocalIdentity(sec1).public_key)) == "a"
