"""Shareholder model."""
from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from governance.models.base import Base, TimestampMixin


class Shareholder(TimestampMixin, Base):
    """Registered shareholder; the autoincrement id preserves registration order."""

    __tablename__ = "shareholders"
    __table_args__ = (
        UniqueConstraint("contract_address", "address", name="uq_shareholders_contract_address"),
        Index("ix_shareholders_contract_address", "contract_address"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_address: Mapped[str] = mapped_column(
        String(42), ForeignKey("contract_state.address", ondelete="CASCADE"), nullable=False
    )
    address: Mapped[str] = mapped_column(String(42), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    shares: Mapped[int] = mapped_column(BigInteger, nullable=False)
    is_registered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    contract = relationship("ContractState", back_populates="shareholders")


__all__ = ["Shareholder"]
