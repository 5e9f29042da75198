"""Board member model."""
from __future__ import annotations

from sqlalchemy import ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from governance.models.base import Base, TimestampMixin


class BoardMember(TimestampMixin, Base):
    __tablename__ = "board_members"
    __table_args__ = (
        UniqueConstraint("contract_address", "address", name="uq_board_members_contract_address"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    contract_address: Mapped[str] = mapped_column(
        String(42), ForeignKey("contract_state.address", ondelete="CASCADE"), nullable=False
    )
    address: Mapped[str] = mapped_column(String(42), nullable=False)

    contract = relationship("ContractState", back_populates="board_members")


__all__ = ["BoardMember"]
