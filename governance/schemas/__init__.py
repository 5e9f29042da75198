"""Pydantic schemas for the governance API."""
from .governance import (
    BoardMemberCreate,
    BoardMemberStatus,
    CompanyInitialize,
    CompanyRead,
    ShareholderCreate,
    ShareholderRead,
)
from .proposal import ProposalCreate, ProposalCreated, ProposalRead, ResultsRead
from .vote import OwnVoteRequest, SealedVoteRead, VoteStatus, VoteSubmit

__all__ = [
    "BoardMemberCreate",
    "BoardMemberStatus",
    "CompanyInitialize",
    "CompanyRead",
    "OwnVoteRequest",
    "ProposalCreate",
    "ProposalCreated",
    "ProposalRead",
    "ResultsRead",
    "SealedVoteRead",
    "ShareholderCreate",
    "ShareholderRead",
    "VoteStatus",
    "VoteSubmit",
]
