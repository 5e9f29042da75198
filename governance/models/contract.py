"""Governance contract state model."""
from __future__ import annotations

from sqlalchemy import BigInteger, Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from governance.models.base import Base, TimestampMixin


class ContractState(TimestampMixin, Base):
    """Singleton state of one deployed governance contract, including its company."""

    __tablename__ = "contract_state"

    address: Mapped[str] = mapped_column(String(42), primary_key=True)
    owner: Mapped[str] = mapped_column(String(42), nullable=False)
    deployed_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    company_name: Mapped[str | None] = mapped_column(String(255))
    total_shares: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)
    company_initialized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    board_member_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    proposal_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    board_members = relationship(
        "BoardMember", back_populates="contract", cascade="all, delete-orphan"
    )
    shareholders = relationship(
        "Shareholder",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="Shareholder.id",
    )
    proposals = relationship(
        "Proposal",
        back_populates="contract",
        cascade="all, delete-orphan",
        order_by="Proposal.proposal_id",
    )


__all__ = ["ContractState"]
