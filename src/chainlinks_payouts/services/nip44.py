"""NIP-44 version 2 authenticated encryption.

Payloads are ``base64(version || nonce || ciphertext || mac)`` where the
ciphertext is ChaCha20 over a length-prefixed, padded plaintext and the MAC is
HMAC-SHA256 over ``nonce || ciphertext``. Keys are derived with HKDF-SHA256
from the unhashed secp256k1 ECDH x-coordinate.
"""

from __future__ import annotations

import base64
import binascii
import hmac
import math
import secrets
import struct

from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms
from cryptography.hazmat.primitives.kdf.hkdf import HKDFExpand
from cryptography.hazmat.primitives.hmac import HMAC

from chainlinks_payouts.core.errors import CryptographicError
from chainlinks_payouts.services.crypto import CryptoService

VERSION = 2
SALT = b"nip44-v2"
NONCE_LENGTH = 32
MAC_LENGTH = 32
MIN_PLAINTEXT_LENGTH = 1
MAX_PLAINTEXT_LENGTH = 65535
MIN_PAYLOAD_LENGTH = 132
MAX_PAYLOAD_LENGTH = 87472
MIN_DECODED_LENGTH = 99
MAX_DECODED_LENGTH = 65603


def _hmac_sha256(key: bytes, data: bytes) -> bytes:
    mac = HMAC(key, hashes.SHA256())
    mac.update(data)
    return mac.finalize()


def get_conversation_key(secret_key: bytes, pubkey_hex: str) -> bytes:
    """Return the long-lived key shared between ``secret_key`` and ``pubkey_hex``.

    The conversation key is symmetric: A's secret with B's public key yields
    the same value as B's secret with A's public key.
    """
    try:
        shared_x = CryptoService.shared_x(secret_key, pubkey_hex)
    except ValueError as err:
        raise CryptographicError(f"Invalid key for ECDH: {err}") from err
    # HKDF-extract is HMAC(salt, ikm)
    return _hmac_sha256(SALT, shared_x)


def _message_keys(conversation_key: bytes, nonce: bytes) -> tuple[bytes, bytes, bytes]:
    keys = HKDFExpand(algorithm=hashes.SHA256(), length=76, info=nonce).derive(conversation_key)
    return keys[0:32], keys[32:44], keys[44:76]


def calc_padded_len(unpadded_len: int) -> int:
    """Return the padded plaintext size for a message of ``unpadded_len`` bytes."""
    if unpadded_len <= 32:
        return 32
    next_power = 1 << (math.floor(math.log2(unpadded_len - 1)) + 1)
    chunk = 32 if next_power <= 256 else next_power // 8
    return chunk * (math.floor((unpadded_len - 1) / chunk) + 1)


def _pad(plaintext: str) -> bytes:
    unpadded = plaintext.encode("utf-8")
    length = len(unpadded)
    if not MIN_PLAINTEXT_LENGTH <= length <= MAX_PLAINTEXT_LENGTH:
        raise CryptographicError("Plaintext length must be between 1 and 65535 bytes")
    padding = bytes(calc_padded_len(length) - length)
    return struct.pack(">H", length) + unpadded + padding


def _unpad(padded: bytes) -> str:
    (length,) = struct.unpack(">H", padded[:2])
    unpadded = padded[2 : 2 + length]
    if (
        length < MIN_PLAINTEXT_LENGTH
        or len(unpadded) != length
        or len(padded) != 2 + calc_padded_len(length)
    ):
        raise CryptographicError("Invalid padding")
    try:
        return unpadded.decode("utf-8")
    except UnicodeDecodeError as err:
        raise CryptographicError("Plaintext is not valid UTF-8") from err


def _chacha20(key: bytes, nonce: bytes, data: bytes) -> bytes:
    # cryptography takes a 16-byte nonce: 32-bit little-endian counter || 96-bit nonce
    cipher = Cipher(algorithms.ChaCha20(key, b"\x00\x00\x00\x00" + nonce), mode=None)
    encryptor = cipher.encryptor()
    return encryptor.update(data) + encryptor.finalize()


def encrypt(plaintext: str, conversation_key: bytes, nonce: bytes | None = None) -> str:
    """Encrypt ``plaintext`` under ``conversation_key``.

    Args:
        plaintext: UTF-8 text, 1 to 65535 bytes once encoded
        conversation_key: Output of :func:`get_conversation_key`
        nonce: Optional 32-byte nonce; a random one is drawn when omitted

    Returns:
        Base64 payload string
    """
    if nonce is None:
        nonce = secrets.token_bytes(NONCE_LENGTH)
    if len(nonce) != NONCE_LENGTH:
        raise CryptographicError("Nonce must be 32 bytes")
    chacha_key, chacha_nonce, hmac_key = _message_keys(conversation_key, nonce)
    ciphertext = _chacha20(chacha_key, chacha_nonce, _pad(plaintext))
    mac = _hmac_sha256(hmac_key, nonce + ciphertext)
    return base64.b64encode(bytes([VERSION]) + nonce + ciphertext + mac).decode("ascii")


def decrypt(payload: str, conversation_key: bytes) -> str:
    """Decrypt a payload produced by :func:`encrypt`.

    Raises:
        CryptographicError: If the payload is malformed, uses an unknown
            version, fails authentication or has invalid padding
    """
    if not payload or payload[0] == "#":
        raise CryptographicError("Unknown encryption version")
    if not MIN_PAYLOAD_LENGTH <= len(payload) <= MAX_PAYLOAD_LENGTH:
        raise CryptographicError("Invalid payload size")
    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as err:
        raise CryptographicError(f"Invalid base64 payload: {err}") from err
    if not MIN_DECODED_LENGTH <= len(data) <= MAX_DECODED_LENGTH:
        raise CryptographicError("Invalid decoded payload size")
    if data[0] != VERSION:
        raise CryptographicError(f"Unknown encryption version {data[0]}")

    nonce = data[1 : 1 + NONCE_LENGTH]
    ciphertext = data[1 + NONCE_LENGTH : -MAC_LENGTH]
    mac = data[-MAC_LENGTH:]

    chacha_key, chacha_nonce, hmac_key = _message_keys(conversation_key, nonce)
    expected_mac = _hmac_sha256(hmac_key, nonce + ciphertext)
    if not hmac.compare_digest(mac, expected_mac):
        raise CryptographicError("Invalid MAC")
    return _unpad(_chacha20(chacha_key, chacha_nonce, ciphertext))
