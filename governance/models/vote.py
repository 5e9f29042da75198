"""Encrypted vote record model."""
from __future__ import annotations

import enum
import uuid

from sqlalchemy import BigInteger, Boolean, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from governance.models.base import Base, TimestampMixin


class VoteChoice(int, enum.Enum):
    """Plaintext encoding of a ballot choice inside the encrypted vote."""

    NOT_VOTED = 0
    YES = 1
    NO = 2
    ABSTAIN = 3


class VoteRecord(TimestampMixin, Base):
    """One encrypted ballot per (proposal, voter); never updated after insert."""

    __tablename__ = "vote_records"
    __table_args__ = (
        UniqueConstraint("proposal_pk", "voter", name="uq_vote_records_proposal_voter"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    proposal_pk: Mapped[str] = mapped_column(
        String(36), ForeignKey("proposals.id", ondelete="CASCADE"), nullable=False
    )
    voter: Mapped[str] = mapped_column(String(42), nullable=False)
    vote_handle: Mapped[str] = mapped_column(String(66), nullable=False)
    has_voted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    cast_at: Mapped[int] = mapped_column(BigInteger, nullable=False)

    proposal = relationship("Proposal", back_populates="votes")


__all__ = ["VoteChoice", "VoteRecord"]
