"""Schemas for company, board and shareholder endpoints."""
from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

_ADDRESS = r"^0x[0-9a-fA-F]{40}$"


class CompanyInitialize(BaseModel):
    name: str = Field(..., max_length=255)
    total_shares: int


class CompanyRead(BaseModel):
    address: str
    owner: str
    name: str
    total_shares: int
    initialized: bool
    board_member_count: int
    shareholder_count: int
    proposal_count: int


class BoardMemberCreate(BaseModel):
    address: str = Field(..., pattern=_ADDRESS)


class BoardMemberStatus(BaseModel):
    address: str
    is_board_member: bool


class ShareholderCreate(BaseModel):
    address: str = Field(..., pattern=_ADDRESS)
    name: str = Field(..., max_length=255)
    shares: int


class ShareholderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    address: str
    name: str
    shares: int
    is_registered: bool


__all__ = [
    "BoardMemberCreate",
    "BoardMemberStatus",
    "CompanyInitialize",
    "CompanyRead",
    "ShareholderCreate",
    "ShareholderRead",
]
