"""Company, board member and shareholder endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from governance.api.deps import get_governance
from governance.api.routes.auth import AuthenticatedCaller, get_current_caller
from governance.schemas import (
    BoardMemberCreate,
    BoardMemberStatus,
    CompanyInitialize,
    CompanyRead,
    ShareholderCreate,
    ShareholderRead,
)
from governance.services.governance import ConfidentialGovernance

router = APIRouter()


@router.get("/company", response_model=CompanyRead)
def read_company(governance: ConfidentialGovernance = Depends(get_governance)) -> CompanyRead:
    company = governance.company()
    return CompanyRead(
        address=governance.contract_address,
        owner=governance.owner(),
        name=company.name,
        total_shares=company.total_shares,
        initialized=company.initialized,
        board_member_count=governance.board_member_count(),
        shareholder_count=governance.shareholder_count(),
        proposal_count=governance.get_proposal_count(),
    )


@router.post("/company", response_model=CompanyRead, status_code=status.HTTP_201_CREATED)
def initialize_company(
    payload: CompanyInitialize,
    governance: ConfidentialGovernance = Depends(get_governance),
    caller: AuthenticatedCaller = Depends(get_current_caller),
) -> CompanyRead:
    governance.initialize_company(caller.address, payload.name, payload.total_shares)
    return read_company(governance)


@router.post("/board-members", response_model=BoardMemberStatus, status_code=status.HTTP_201_CREATED)
def add_board_member(
    payload: BoardMemberCreate,
    governance: ConfidentialGovernance = Depends(get_governance),
    caller: AuthenticatedCaller = Depends(get_current_caller),
) -> BoardMemberStatus:
    governance.add_board_member(caller.address, payload.address)
    return BoardMemberStatus(address=payload.address.lower(), is_board_member=True)


@router.delete("/board-members/{address}", status_code=status.HTTP_204_NO_CONTENT)
def remove_board_member(
    address: str,
    governance: ConfidentialGovernance = Depends(get_governance),
    caller: AuthenticatedCaller = Depends(get_current_caller),
) -> None:
    governance.remove_board_member(caller.address, address)


@router.get("/board-members/{address}", response_model=BoardMemberStatus)
def board_member_status(
    address: str, governance: ConfidentialGovernance = Depends(get_governance)
) -> BoardMemberStatus:
    return BoardMemberStatus(address=address.lower(), is_board_member=governance.is_board_member(address))


@router.post("/shareholders", response_model=ShareholderRead, status_code=status.HTTP_201_CREATED)
def add_shareholder(
    payload: ShareholderCreate,
    governance: ConfidentialGovernance = Depends(get_governance),
    caller: AuthenticatedCaller = Depends(get_current_caller),
) -> ShareholderRead:
    governance.add_shareholder(caller.address, payload.address, payload.name, payload.shares)
    return ShareholderRead.model_validate(governance.get_shareholder(payload.address))


@router.get("/shareholders", response_model=list[ShareholderRead])
def list_shareholders(governance: ConfidentialGovernance = Depends(get_governance)) -> list[ShareholderRead]:
    return [
        ShareholderRead.model_validate(governance.get_shareholder(address))
        for address in governance.get_all_shareholders()
    ]


@router.get("/shareholders/{address}", response_model=ShareholderRead)
def get_shareholder(
    address: str, governance: ConfidentialGovernance = Depends(get_governance)
) -> ShareholderRead:
    return ShareholderRead.model_validate(governance.get_shareholder(address))


__all__ = [
    "add_board_member",
    "add_shareholder",
    "board_member_status",
    "get_shareholder",
    "initialize_company",
    "list_shareholders",
    "read_company",
    "remove_board_member",
    "router",
]
