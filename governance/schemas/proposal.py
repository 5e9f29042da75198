"""Schemas for proposal endpoints."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from governance.models.proposal import ProposalState, ProposalType


class ProposalCreate(BaseModel):
    proposal_type: ProposalType
    title: str = Field(..., max_length=255)
    description: str = Field(default="")
    voting_days: int


class ProposalCreated(BaseModel):
    proposal_id: int


class ProposalRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    proposal_id: int
    proposal_type: ProposalType
    title: str
    description: str
    creator: str
    deadline: int
    finalized: bool
    state: ProposalState


class ResultsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    proposal_id: int
    yes_votes: int
    no_votes: int
    abstain_votes: int
    passed: bool


__all__ = ["ProposalCreate", "ProposalCreated", "ProposalRead", "ResultsRead"]
