"""Proposal model with its encrypted tally and decrypted result."""
from __future__ import annotations

import enum
import uuid

from sqlalchemy import Enum as SAEnum
from sqlalchemy import BigInteger, Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from governance.models.base import Base, TimestampMixin


class ProposalType(str, enum.Enum):
    BOARD_DECISION = "BOARD_DECISION"
    FINANCIAL = "FINANCIAL"
    STRATEGIC = "STRATEGIC"
    OPERATIONAL = "OPERATIONAL"


class ProposalState(str, enum.Enum):
    """Lifecycle state; only ``FINALIZED`` is stored, the rest derive from the deadline."""

    CREATED = "CREATED"
    VOTING_OPEN = "VOTING_OPEN"
    VOTING_CLOSED = "VOTING_CLOSED"
    FINALIZED = "FINALIZED"


class Proposal(TimestampMixin, Base):
    __tablename__ = "proposals"
    __table_args__ = (
        UniqueConstraint("contract_address", "proposal_id", name="uq_proposals_contract_proposal_id"),
        Index("ix_proposals_contract_address", "contract_address"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    contract_address: Mapped[str] = mapped_column(
        String(42), ForeignKey("contract_state.address", ondelete="CASCADE"), nullable=False
    )
    proposal_id: Mapped[int] = mapped_column(Integer, nullable=False)
    proposal_type: Mapped[ProposalType] = mapped_column(
        SAEnum(ProposalType, name="proposal_type"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    creator: Mapped[str] = mapped_column(String(42), nullable=False)
    created_at_block: Mapped[int] = mapped_column(BigInteger, nullable=False)
    deadline: Mapped[int] = mapped_column(BigInteger, nullable=False)
    finalized: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    yes_count_handle: Mapped[str] = mapped_column(String(66), nullable=False)
    no_count_handle: Mapped[str] = mapped_column(String(66), nullable=False)
    abstain_count_handle: Mapped[str] = mapped_column(String(66), nullable=False)

    yes_votes: Mapped[int | None] = mapped_column(BigInteger)
    no_votes: Mapped[int | None] = mapped_column(BigInteger)
    abstain_votes: Mapped[int | None] = mapped_column(BigInteger)
    passed: Mapped[bool | None] = mapped_column(Boolean)

    contract = relationship("ContractState", back_populates="proposals")
    votes = relationship("VoteRecord", back_populates="proposal", cascade="all, delete-orphan")


__all__ = ["Proposal", "ProposalState", "ProposalType"]
