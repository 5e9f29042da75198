"""Ledger event log model."""
from __future__ import annotations

from sqlalchemy import JSON, BigInteger, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from governance.models.base import Base, TimestampMixin


class LedgerEvent(TimestampMixin, Base):
    __tablename__ = "ledger_events"
    __table_args__ = (Index("ix_ledger_events_contract_name", "contract_address", "name"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_address: Mapped[str] = mapped_column(
        String(42), ForeignKey("contract_state.address", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    block_timestamp: Mapped[int] = mapped_column(BigInteger, nullable=False)


__all__ = ["LedgerEvent"]
