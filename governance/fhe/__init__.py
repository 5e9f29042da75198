"""FHE engine collaborator and client helpers."""

from .client import ExternalInput, UserKeypair, derive_address, encrypt_input, login_message
from .engine import (
    FHEError,
    MockFHEEngine,
    PermissionDeniedError,
    ProofInvalidError,
    TypeMismatchError,
    UnknownHandleError,
)
from .keys import KeyMaterialError, NetworkKey
from .sealing import open_sealed, seal_value

__all__ = [
    "ExternalInput",
    "FHEError",
    "KeyMaterialError",
    "MockFHEEngine",
    "NetworkKey",
    "PermissionDeniedError",
    "ProofInvalidError",
    "TypeMismatchError",
    "UnknownHandleError",
    "UserKeypair",
    "derive_address",
    "encrypt_input",
    "login_message",
    "open_sealed",
    "seal_value",
]
