"""Ciphertext storage and permission grants used by the FHE engine."""
from __future__ import annotations

import enum

from sqlalchemy import Enum as SAEnum
from sqlalchemy import ForeignKey, Integer, LargeBinary, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from governance.models.base import Base, TimestampMixin


class FheType(str, enum.Enum):
    EBOOL = "EBOOL"
    EUINT8 = "EUINT8"
    EUINT32 = "EUINT32"


class Ciphertext(TimestampMixin, Base):
    """Opaque encrypted value addressed by its handle."""

    __tablename__ = "ciphertexts"

    handle: Mapped[str] = mapped_column(String(66), primary_key=True)
    fhe_type: Mapped[FheType] = mapped_column(SAEnum(FheType, name="fhe_type"), nullable=False)
    sealed_value: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)

    grants = relationship("CiphertextGrant", back_populates="ciphertext", cascade="all, delete-orphan")


class CiphertextGrant(TimestampMixin, Base):
    """Persistent permission for ``address`` to compute on or reveal a ciphertext."""

    __tablename__ = "ciphertext_grants"
    __table_args__ = (UniqueConstraint("handle", "address", name="uq_ciphertext_grants_handle_address"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    handle: Mapped[str] = mapped_column(
        String(66), ForeignKey("ciphertexts.handle", ondelete="CASCADE"), nullable=False
    )
    address: Mapped[str] = mapped_column(String(42), nullable=False)

    ciphertext = relationship("Ciphertext", back_populates="grants")


__all__ = ["Ciphertext", "CiphertextGrant", "FheType"]
