"""Client-side helpers: encrypted inputs, participant keys and sealed vote decryption."""
from __future__ import annotations

import hashlib
from dataclasses import dataclass, field

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from governance.fhe.keys import NetworkKey, input_binding, type_max
from governance.fhe.sealing import open_sealed
from governance.models import FheType

_RAW = {"encoding": serialization.Encoding.Raw, "format": serialization.PublicFormat.Raw}


def derive_address(verify_key: bytes) -> str:
    """Derive a 20 byte hex address from a raw Ed25519 public key."""

    return "0x" + hashlib.sha256(verify_key).digest()[-20:].hex()


def login_message(address: str, signed_at: int) -> bytes:
    return f"confidential-governance login {address.lower()} {signed_at}".encode()


@dataclass(frozen=True, slots=True)
class ExternalInput:
    """An encrypted value plus the proof binding it to a contract and sender."""

    ciphertext: bytes
    proof: bytes
    fhe_type: FheType


def encrypt_input(
    value: int,
    *,
    contract_address: str,
    user_address: str,
    network_key: NetworkKey,
    fhe_type: FheType = FheType.EUINT8,
) -> ExternalInput:
    """Encrypt ``value`` for submission by ``user_address`` to ``contract_address``."""

    if value < 0 or value > type_max(fhe_type):
        raise ValueError(f"{value} does not fit in {fhe_type.value}")
    binding = input_binding(fhe_type, contract_address, user_address)
    ciphertext = network_key.encrypt_input(value, binding=binding)
    return ExternalInput(
        ciphertext=ciphertext,
        proof=network_key.sign_input(ciphertext, binding=binding),
        fhe_type=fhe_type,
    )


@dataclass(slots=True)
class UserKeypair:
    """A participant's signing identity and sealing keypair."""

    signing_key: Ed25519PrivateKey = field(default_factory=Ed25519PrivateKey.generate)
    sealing_key: X25519PrivateKey = field(default_factory=X25519PrivateKey.generate)

    @property
    def verify_key(self) -> bytes:
        return self.signing_key.public_key().public_bytes(**_RAW)

    @property
    def sealing_public_key(self) -> bytes:
        return self.sealing_key.public_key().public_bytes(**_RAW)

    @property
    def address(self) -> str:
        return derive_address(self.verify_key)

    def sign_login(self, signed_at: int) -> bytes:
        return self.signing_key.sign(login_message(self.address, signed_at))

    def encrypt(
        self,
        value: int,
        *,
        contract_address: str,
        network_key: NetworkKey,
        fhe_type: FheType = FheType.EUINT8,
    ) -> ExternalInput:
        return encrypt_input(
            value,
            contract_address=contract_address,
            user_address=self.address,
            network_key=network_key,
            fhe_type=fhe_type,
        )

    def open(self, payload: bytes) -> int:
        value, _ = open_sealed(self.sealing_key, payload)
        return value


__all__ = ["ExternalInput", "UserKeypair", "derive_address", "encrypt_input", "login_message"]
