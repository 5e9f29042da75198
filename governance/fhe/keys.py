"""Key material shared by the mock FHE engine and its clients.

The mock engine keeps every ciphertext AES-GCM sealed under a storage key and
authenticates client inputs with an HMAC proof key. Both are derived from a
single network key with HKDF, the way a real FHE network derives its input
and storage keys from one key-generation ceremony.
"""
from __future__ import annotations

import os
from dataclasses import dataclass

from cryptography.exceptions import InvalidSignature, InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives import hmac as crypto_hmac
from cryptography.hazmat.primitives.ciphers.aead import AESGCM
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from governance.models import FheType

NONCE_SIZE = 12

_TYPE_WIDTHS: dict[FheType, int] = {
    FheType.EBOOL: 1,
    FheType.EUINT8: 8,
    FheType.EUINT32: 32,
}


def type_max(fhe_type: FheType) -> int:
    return (1 << _TYPE_WIDTHS[fhe_type]) - 1


def _derive(key: bytes, info: bytes) -> bytes:
    return HKDF(algorithm=hashes.SHA256(), length=32, salt=None, info=info).derive(key)


def _encode(value: int) -> bytes:
    return value.to_bytes(4, "big")


def _decode(data: bytes) -> int:
    return int.from_bytes(data, "big")


class KeyMaterialError(ValueError):
    """Raised when sealed data cannot be authenticated under the network key."""


@dataclass(frozen=True, slots=True)
class NetworkKey:
    """Symmetric network key of the mock FHE deployment."""

    material: bytes

    @classmethod
    def from_hex(cls, value: str) -> "NetworkKey":
        material = bytes.fromhex(value.removeprefix("0x"))
        if len(material) != 32:
            raise ValueError("Network key must be 32 bytes")
        return cls(material=material)

    @property
    def storage_key(self) -> bytes:
        return _derive(self.material, b"governance-fhe-storage")

    @property
    def input_key(self) -> bytes:
        return _derive(self.material, b"governance-fhe-input")

    @property
    def proof_key(self) -> bytes:
        return _derive(self.material, b"governance-fhe-input-proof")

    def seal_value(self, value: int, *, associated_data: bytes) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(self.storage_key).encrypt(nonce, _encode(value), associated_data)

    def open_value(self, blob: bytes, *, associated_data: bytes) -> int:
        nonce, body = blob[:NONCE_SIZE], blob[NONCE_SIZE:]
        try:
            return _decode(AESGCM(self.storage_key).decrypt(nonce, body, associated_data))
        except InvalidTag as exc:
            raise KeyMaterialError("Stored ciphertext failed authentication") from exc

    def encrypt_input(self, value: int, *, binding: bytes) -> bytes:
        nonce = os.urandom(NONCE_SIZE)
        return nonce + AESGCM(self.input_key).encrypt(nonce, _encode(value), binding)

    def decrypt_input(self, ciphertext: bytes, *, binding: bytes) -> int:
        nonce, body = ciphertext[:NONCE_SIZE], ciphertext[NONCE_SIZE:]
        try:
            return _decode(AESGCM(self.input_key).decrypt(nonce, body, binding))
        except InvalidTag as exc:
            raise KeyMaterialError("Input ciphertext is not bound to this contract and caller") from exc

    def sign_input(self, ciphertext: bytes, *, binding: bytes) -> bytes:
        mac = crypto_hmac.HMAC(self.proof_key, hashes.SHA256())
        mac.update(binding)
        mac.update(ciphertext)
        return mac.finalize()

    def verify_input(self, ciphertext: bytes, proof: bytes, *, binding: bytes) -> None:
        mac = crypto_hmac.HMAC(self.proof_key, hashes.SHA256())
        mac.update(binding)
        mac.update(ciphertext)
        try:
            mac.verify(proof)
        except InvalidSignature as exc:
            raise KeyMaterialError("Input proof does not match the contract and caller") from exc


def input_binding(fhe_type: FheType, contract_address: str, user_address: str) -> bytes:
    """Bytes binding an external input to its type, target contract and sender."""

    return b"|".join(
        (fhe_type.value.encode("ascii"), contract_address.lower().encode(), user_address.lower().encode())
    )


__all__ = [
    "KeyMaterialError",
    "NONCE_SIZE",
    "NetworkKey",
    "input_binding",
    "type_max",
]
