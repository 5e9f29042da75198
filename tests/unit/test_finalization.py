from __future__ import annotations

import pytest

from governance.core.errors import StateError
from governance.fhe import NetworkKey, UserKeypair
from governance.models import ProposalState, ProposalType, VoteChoice
from governance.services.finalization import FinalizationService
from governance.services.governance import ConfidentialGovernance
from tests.conftest import cast_vote


def _open_proposal(governance: ConfidentialGovernance, creator: UserKeypair, days: int = 7) -> int:
    return governance.create_proposal(
        creator.address, ProposalType.STRATEGIC, "Expansion Plan", "Expand to new markets", days
    )


def test_finalize_counts_each_choice(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], network_key: NetworkKey, clock
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"])
    cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)
    cast_vote(deployed, signers["shareholder2"], proposal_id, VoteChoice.YES, network_key)
    cast_vote(deployed, signers["shareholder3"], proposal_id, VoteChoice.NO, network_key)
    clock.advance(days=8)

    results = deployed.finalize_proposal(signers["non_shareholder"].address, proposal_id)

    assert (results.yes_votes, results.no_votes, results.abstain_votes) == (2, 1, 0)
    assert results.passed
    assert deployed.get_results(proposal_id) == results
    assert deployed.proposal_state(proposal_id) is ProposalState.FINALIZED


def test_proposal_without_votes_does_not_pass(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], clock
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"])
    clock.advance(days=8)

    results = deployed.finalize_proposal(signers["deployer"].address, proposal_id)

    assert (results.yes_votes, results.no_votes, results.abstain_votes) == (0, 0, 0)
    assert not results.passed


def test_all_abstentions_do_not_pass(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], network_key: NetworkKey, clock
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"])
    for name in ("shareholder1", "shareholder2", "shareholder3"):
        cast_vote(deployed, signers[name], proposal_id, VoteChoice.ABSTAIN, network_key)
    clock.advance(days=8)

    results = deployed.finalize_proposal(signers["deployer"].address, proposal_id)

    assert (results.yes_votes, results.no_votes, results.abstain_votes) == (0, 0, 3)
    assert not results.passed


def test_tie_does_not_pass(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], network_key: NetworkKey, clock
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"])
    cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)
    cast_vote(deployed, signers["shareholder2"], proposal_id, VoteChoice.NO, network_key)
    clock.advance(days=8)

    assert not deployed.finalize_proposal(signers["deployer"].address, proposal_id).passed


def test_out_of_range_choice_counts_nowhere(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], network_key: NetworkKey, clock
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"])
    voter = signers["shareholder1"]
    encrypted = voter.encrypt(7, contract_address=deployed.contract_address, network_key=network_key)
    deployed.cast_confidential_vote(voter.address, proposal_id, encrypted.ciphertext, encrypted.proof)
    clock.advance(days=8)

    results = deployed.finalize_proposal(signers["deployer"].address, proposal_id)

    assert deployed.has_user_voted(proposal_id, voter.address)
    assert (results.yes_votes, results.no_votes, results.abstain_votes) == (0, 0, 0)


def test_finalize_before_deadline_is_rejected(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], clock
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"])
    clock.advance(days=7, seconds=-1)

    with pytest.raises(StateError, match="Voting period still active"):
        deployed.finalize_proposal(signers["deployer"].address, proposal_id)
    assert not deployed.get_proposal(proposal_id).finalized


def test_finalize_twice_is_rejected(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], clock
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"])
    clock.advance(days=7)
    deployed.finalize_proposal(signers["deployer"].address, proposal_id)

    with pytest.raises(StateError, match="Proposal already finalized"):
        deployed.finalize_proposal(signers["deployer"].address, proposal_id)
    assert len(deployed.events("ProposalFinalized")) == 1


def test_results_unavailable_before_finalization(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair]
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"])

    with pytest.raises(StateError, match="Proposal not finalized yet"):
        deployed.get_results(proposal_id)


def test_proposal_state_follows_block_time(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], clock
) -> None:
    proposal_id = _open_proposal(deployed, signers["deployer"], days=1)
    assert deployed.proposal_state(proposal_id) is ProposalState.VOTING_OPEN

    clock.advance(days=1)
    assert deployed.proposal_state(proposal_id) is ProposalState.VOTING_CLOSED
    assert deployed.expired_unfinalized_proposals() == [proposal_id]

    deployed.finalize_proposal(signers["deployer"].address, proposal_id)
    assert deployed.proposal_state(proposal_id) is ProposalState.FINALIZED
    assert deployed.expired_unfinalized_proposals() == []


def test_finalization_service_sweeps_expired_proposals(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], network_key: NetworkKey, clock
) -> None:
    short = _open_proposal(deployed, signers["deployer"], days=1)
    long = _open_proposal(deployed, signers["deployer"], days=30)
    cast_vote(deployed, signers["shareholder1"], short, VoteChoice.YES, network_key)
    clock.advance(days=2)

    report = FinalizationService(deployed, keeper_address=signers["deployer"].address).finalize_expired()

    assert list(report.finalized) == [short]
    assert report.finalized[short].passed
    assert report.failed == {}
    assert not deployed.get_proposal(long).finalized

    second = FinalizationService(deployed, keeper_address=signers["deployer"].address).finalize_expired()
    assert second.finalized == {} and second.failed == {}
