"""Schemas for confidential voting endpoints."""
from __future__ import annotations

from pydantic import BaseModel

from governance.schemas.hexbytes import HexBytes


class VoteSubmit(BaseModel):
    encrypted_choice: HexBytes
    proof: HexBytes


class VoteStatus(BaseModel):
    proposal_id: int
    voter: str
    has_voted: bool


class OwnVoteRequest(BaseModel):
    public_key: HexBytes


class SealedVoteRead(BaseModel):
    proposal_id: int
    sealed_vote: HexBytes


__all__ = ["OwnVoteRequest", "SealedVoteRead", "VoteStatus", "VoteSubmit"]
