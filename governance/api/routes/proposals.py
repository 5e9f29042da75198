"""Proposal, confidential voting and result endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, status

from governance.api.deps import get_governance
from governance.api.routes.auth import AuthenticatedCaller, get_current_caller
from governance.schemas import (
    OwnVoteRequest,
    ProposalCreate,
    ProposalCreated,
    ProposalRead,
    ResultsRead,
    SealedVoteRead,
    VoteStatus,
    VoteSubmit,
)
from governance.services.governance import ConfidentialGovernance, ProposalResults

router = APIRouter(prefix="/proposals")


def _results(proposal_id: int, results: ProposalResults) -> ResultsRead:
    return ResultsRead(
        proposal_id=proposal_id,
        yes_votes=results.yes_votes,
        no_votes=results.no_votes,
        abstain_votes=results.abstain_votes,
        passed=results.passed,
    )


@router.post("", response_model=ProposalCreated, status_code=status.HTTP_201_CREATED)
def create_proposal(
    payload: ProposalCreate,
    governance: ConfidentialGovernance = Depends(get_governance),
    caller: AuthenticatedCaller = Depends(get_current_caller),
) -> ProposalCreated:
    proposal_id = governance.create_proposal(
        caller.address,
        payload.proposal_type,
        payload.title,
        payload.description,
        payload.voting_days,
    )
    return ProposalCreated(proposal_id=proposal_id)


@router.get("", response_model=list[ProposalRead])
def list_proposals(governance: ConfidentialGovernance = Depends(get_governance)) -> list[ProposalRead]:
    return [ProposalRead.model_validate(item) for item in governance.list_proposals()]


@router.get("/{proposal_id}", response_model=ProposalRead)
def get_proposal(
    proposal_id: int, governance: ConfidentialGovernance = Depends(get_governance)
) -> ProposalRead:
    return ProposalRead.model_validate(governance.get_proposal(proposal_id))


@router.post("/{proposal_id}/votes", response_model=VoteStatus, status_code=status.HTTP_201_CREATED)
def cast_vote(
    proposal_id: int,
    payload: VoteSubmit,
    governance: ConfidentialGovernance = Depends(get_governance),
    caller: AuthenticatedCaller = Depends(get_current_caller),
) -> VoteStatus:
    governance.cast_confidential_vote(caller.address, proposal_id, payload.encrypted_choice, payload.proof)
    return VoteStatus(proposal_id=proposal_id, voter=caller.address, has_voted=True)


@router.get("/{proposal_id}/votes/{address}", response_model=VoteStatus)
def vote_status(
    proposal_id: int, address: str, governance: ConfidentialGovernance = Depends(get_governance)
) -> VoteStatus:
    return VoteStatus(
        proposal_id=proposal_id,
        voter=address.lower(),
        has_voted=governance.has_user_voted(proposal_id, address),
    )


@router.post("/{proposal_id}/my-vote", response_model=SealedVoteRead)
def get_own_vote(
    proposal_id: int,
    payload: OwnVoteRequest,
    governance: ConfidentialGovernance = Depends(get_governance),
    caller: AuthenticatedCaller = Depends(get_current_caller),
) -> SealedVoteRead:
    sealed = governance.get_own_vote(caller.address, proposal_id, payload.public_key)
    return SealedVoteRead(proposal_id=proposal_id, sealed_vote=sealed)


@router.post("/{proposal_id}/finalize", response_model=ResultsRead)
def finalize_proposal(
    proposal_id: int,
    governance: ConfidentialGovernance = Depends(get_governance),
    caller: AuthenticatedCaller = Depends(get_current_caller),
) -> ResultsRead:
    return _results(proposal_id, governance.finalize_proposal(caller.address, proposal_id))


@router.get("/{proposal_id}/results", response_model=ResultsRead)
def get_results(
    proposal_id: int, governance: ConfidentialGovernance = Depends(get_governance)
) -> ResultsRead:
    return _results(proposal_id, governance.get_results(proposal_id))


__all__ = [
    "cast_vote",
    "create_proposal",
    "finalize_proposal",
    "get_own_vote",
    "get_proposal",
    "get_results",
    "list_proposals",
    "router",
    "vote_status",
]
