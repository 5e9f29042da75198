"""User-scoped re-encryption of ciphertext values.

Payload layout: ``version (1) | type code (1) | ephemeral X25519 key (32) |
nonce (12) | AES-GCM ciphertext``. The two header bytes are authenticated as
associated data.
"""
from __future__ import annotations

import os

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey, X25519PublicKey
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from governance.fhe.keys import NONCE_SIZE, KeyMaterialError
from governance.models import FheType

SEAL_VERSION = 1
_KEY_SIZE = 32
_HEADER_SIZE = 2
_TYPE_CODES: dict[FheType, int] = {FheType.EBOOL: 0, FheType.EUINT8: 1, FheType.EUINT32: 2}
_CODE_TYPES = {code: fhe_type for fhe_type, code in _TYPE_CODES.items()}


def _seal_key(shared_secret: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=b"governance-fhe-seal").derive(
        shared_secret
    )


def seal_value(value: int, fhe_type: FheType, public_key: bytes) -> bytes:
    """Encrypt ``value`` so that only the holder of ``public_key``'s private half can read it."""

    if len(public_key) != _KEY_SIZE:
        raise ValueError("Sealing public key must be a raw 32 byte X25519 key")
    recipient = X25519PublicKey.from_public_bytes(public_key)
    ephemeral = X25519PrivateKey.generate()
    key = _seal_key(ephemeral.exchange(recipient))
    header = bytes((SEAL_VERSION, _TYPE_CODES[fhe_type]))
    nonce = os.urandom(NONCE_SIZE)
    body = AESGCM(key).encrypt(nonce, value.to_bytes(4, "big"), header)
    ephemeral_public = ephemeral.public_key().public_bytes(
        encoding=serialization.Encoding.Raw, format=serialization.PublicFormat.Raw
    )
    return header + ephemeral_public + nonce + body


def open_sealed(private_key: X25519PrivateKey, payload: bytes) -> tuple[int, FheType]:
    """Decrypt a sealed payload with the recipient's private key."""

    minimum = _HEADER_SIZE + _KEY_SIZE + NONCE_SIZE
    if len(payload) <= minimum:
        raise KeyMaterialError("Sealed payload is truncated")
    header = payload[:_HEADER_SIZE]
    if header[0] != SEAL_VERSION or header[1] not in _CODE_TYPES:
        raise KeyMaterialError("Unsupported sealed payload header")
    ephemeral_public = payload[_HEADER_SIZE : _HEADER_SIZE + _KEY_SIZE]
    nonce = payload[_HEADER_SIZE + _KEY_SIZE : minimum]
    key = _seal_key(private_key.exchange(X25519PublicKey.from_public_bytes(ephemeral_public)))
    try:
        plaintext = AESGCM(key).decrypt(nonce, payload[minimum:], header)
    except InvalidTag as exc:
        raise KeyMaterialError("Sealed payload was not sealed for this key") from exc
    return int.from_bytes(plaintext, "big"), _CODE_TYPES[header[1]]


__all__ = ["SEAL_VERSION", "open_sealed", "seal_value"]
