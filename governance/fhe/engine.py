"""Mock FHE engine backed by the ledger session.

Ciphertexts live in the ``ciphertexts`` table, sealed under the network key,
and are addressed by opaque handles. Permissions follow the usual FHE runtime
model:

* an address may use a handle as an operand, or reveal it, only while it is
  allowed on that handle;
* handles produced inside the current transaction are *transiently* allowed
  for the contract only and held in memory; a grant (:meth:`allow_this` or
  :meth:`allow`) writes them to the ledger, and ungranted intermediates are
  dropped with the engine;
* user permission (:meth:`allow`) is a separate grant from the contract's.

Because every row goes through the caller's session, a rolled back
governance transaction also discards the ciphertexts and grants it produced.
"""
from __future__ import annotations

import logging
import secrets

from sqlalchemy import select
from sqlalchemy.orm import Session

from governance.core.config import Settings
from governance.fhe.keys import KeyMaterialError, NetworkKey, input_binding, type_max
from governance.fhe.sealing import seal_value
from governance.models import Ciphertext, CiphertextGrant, FheType
from governance.obs.metrics import FHE_OPERATION_COUNTER

logger = logging.getLogger(__name__)


class FHEError(RuntimeError):
    """Base exception raised by the FHE engine."""


class UnknownHandleError(FHEError):
    """Raised when a handle does not reference a stored ciphertext."""


class PermissionDeniedError(FHEError):
    """Raised when an address uses a handle it has not been allowed on."""


class ProofInvalidError(FHEError):
    """Raised when an external input does not verify against its binding."""


class TypeMismatchError(FHEError):
    """Raised when operands of a homomorphic operation have incompatible types."""


def _new_handle() -> str:
    return "0x" + secrets.token_hex(32)


class MockFHEEngine:
    """FHE engine operating on behalf of a single contract within one transaction."""

    def __init__(self, session: Session, *, contract_address: str, network_key: NetworkKey) -> None:
        self._session = session
        self._contract = contract_address.lower()
        self._key = network_key
        self._transient: set[str] = set()
        # Values produced in this transaction; only granted handles are written to the ledger.
        self._pending: dict[str, Ciphertext] = {}

    @classmethod
    def from_settings(cls, session: Session, settings: Settings) -> "MockFHEEngine":
        return cls(
            session,
            contract_address=settings.contract_address,
            network_key=NetworkKey.from_hex(settings.engine_network_key),
        )

    @property
    def contract_address(self) -> str:
        return self._contract

    # storage -------------------------------------------------------------

    def _store(self, value: int, fhe_type: FheType) -> str:
        handle = _new_handle()
        sealed = self._key.seal_value(value & type_max(fhe_type), associated_data=handle.encode())
        self._pending[handle] = Ciphertext(handle=handle, fhe_type=fhe_type, sealed_value=sealed)
        self._transient.add(handle)
        return handle

    def _load(self, handle: str) -> Ciphertext:
        if handle in self._pending:
            return self._pending[handle]
        ciphertext = self._session.get(Ciphertext, handle)
        if ciphertext is None:
            raise UnknownHandleError(f"Unknown ciphertext handle {handle}")
        return ciphertext

    def _value(self, ciphertext: Ciphertext) -> int:
        try:
            return self._key.open_value(ciphertext.sealed_value, associated_data=ciphertext.handle.encode())
        except KeyMaterialError as exc:
            raise FHEError(str(exc)) from exc

    def _persist(self, handle: str) -> None:
        ciphertext = self._pending.pop(handle, None)
        if ciphertext is not None:
            self._session.add(ciphertext)
            self._session.flush()

    def _operand(self, handle: str) -> Ciphertext:
        if not self.is_allowed(handle, self._contract):
            raise PermissionDeniedError(f"Contract is not allowed to use handle {handle}")
        return self._load(handle)

    # inputs --------------------------------------------------------------

    def encrypt_constant(self, value: int, fhe_type: FheType = FheType.EUINT32) -> str:
        """Trivially encrypt a plaintext constant."""

        if value < 0 or value > type_max(fhe_type):
            raise ValueError(f"Constant {value} does not fit in {fhe_type.value}")
        FHE_OPERATION_COUNTER.labels(operation="encrypt_constant").inc()
        return self._store(value, fhe_type)

    def verify_and_import(
        self,
        ciphertext: bytes,
        proof: bytes,
        contract_address: str,
        caller_address: str,
        fhe_type: FheType = FheType.EUINT8,
    ) -> str:
        """Validate an external input bound to ``(contract_address, caller_address)`` and import it."""

        FHE_OPERATION_COUNTER.labels(operation="verify_and_import").inc()
        if contract_address.lower() != self._contract:
            raise ProofInvalidError("Input targets a different contract")
        binding = input_binding(fhe_type, contract_address, caller_address)
        try:
            self._key.verify_input(ciphertext, proof, binding=binding)
            value = self._key.decrypt_input(ciphertext, binding=binding)
        except KeyMaterialError as exc:
            raise ProofInvalidError(str(exc)) from exc
        if value > type_max(fhe_type):
            raise ProofInvalidError(f"Input value does not fit in {fhe_type.value}")
        return self._store(value, fhe_type)

    # permissions ---------------------------------------------------------

    def allow(self, handle: str, address: str) -> None:
        """Persistently allow ``address`` on ``handle``; the contract must itself be allowed."""

        self._operand(handle)
        self._persist(handle)
        address = address.lower()
        exists = self._session.scalar(
            select(CiphertextGrant.id).where(
                CiphertextGrant.handle == handle, CiphertextGrant.address == address
            )
        )
        if exists is None:
            self._session.add(CiphertextGrant(handle=handle, address=address))
            self._session.flush()

    def allow_this(self, handle: str) -> None:
        """Persistently allow the contract itself on ``handle``."""

        self.allow(handle, self._contract)

    def is_allowed(self, handle: str, address: str) -> bool:
        address = address.lower()
        if address == self._contract and handle in self._transient:
            return True
        grant = self._session.scalar(
            select(CiphertextGrant.id).where(
                CiphertextGrant.handle == handle, CiphertextGrant.address == address
            )
        )
        return grant is not None

    # homomorphic operations ----------------------------------------------

    def eq(self, lhs: str, rhs: str) -> str:
        left, right = self._operand(lhs), self._operand(rhs)
        if left.fhe_type != right.fhe_type:
            raise TypeMismatchError(f"Cannot compare {left.fhe_type.value} with {right.fhe_type.value}")
        FHE_OPERATION_COUNTER.labels(operation="eq").inc()
        return self._store(int(self._value(left) == self._value(right)), FheType.EBOOL)

    def select(self, condition: str, if_true: str, if_false: str) -> str:
        control = self._operand(condition)
        if control.fhe_type != FheType.EBOOL:
            raise TypeMismatchError("Select condition must be an encrypted boolean")
        first, second = self._operand(if_true), self._operand(if_false)
        if first.fhe_type != second.fhe_type:
            raise TypeMismatchError("Select branches must share a type")
        FHE_OPERATION_COUNTER.labels(operation="select").inc()
        chosen = first if self._value(control) else second
        return self._store(self._value(chosen), first.fhe_type)

    def add(self, lhs: str, rhs: str) -> str:
        left, right = self._operand(lhs), self._operand(rhs)
        if left.fhe_type != right.fhe_type or left.fhe_type == FheType.EBOOL:
            raise TypeMismatchError("Addition requires two integers of the same type")
        FHE_OPERATION_COUNTER.labels(operation="add").inc()
        return self._store(self._value(left) + self._value(right), left.fhe_type)

    # reveal --------------------------------------------------------------

    def decrypt(self, handle: str) -> int:
        """Publicly reveal ``handle``; only valid while the contract is allowed on it."""

        ciphertext = self._operand(handle)
        FHE_OPERATION_COUNTER.labels(operation="decrypt").inc()
        logger.debug("public decryption", extra={"handle": handle})
        return self._value(ciphertext)

    def seal_for_user(self, handle: str, address: str, public_key: bytes) -> bytes:
        """Re-encrypt ``handle`` for ``address``; both the contract and the user must be allowed."""

        ciphertext = self._operand(handle)
        if not self.is_allowed(handle, address):
            raise PermissionDeniedError(f"{address} is not allowed to decrypt handle {handle}")
        FHE_OPERATION_COUNTER.labels(operation="seal_for_user").inc()
        return seal_value(self._value(ciphertext), ciphertext.fhe_type, public_key)


__all__ = [
    "FHEError",
    "MockFHEEngine",
    "PermissionDeniedError",
    "ProofInvalidError",
    "TypeMismatchError",
    "UnknownHandleError",
]
