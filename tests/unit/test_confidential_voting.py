from __future__ import annotations

import threading
from collections.abc import Callable, Iterator
from pathlib import Path

import pytest
from sqlalchemy import create_engine, select
from sqlalchemy.orm import Session, sessionmaker

from governance.core.errors import (
    AuthorizationError,
    CryptographicError,
    ProposalNotFoundError,
    StateError,
    ValidationError,
)
from governance.fhe import MockFHEEngine, NetworkKey, UserKeypair
from governance.models import (
    Base,
    Ciphertext,
    CiphertextGrant,
    Proposal,
    ProposalType,
    VoteChoice,
    VoteRecord,
)
from governance.services.governance import ConfidentialGovernance
from tests.conftest import cast_vote, deploy_demo_company


@pytest.fixture()
def proposal_id(deployed: ConfidentialGovernance, signers: dict[str, UserKeypair]) -> int:
    return deployed.create_proposal(
        signers["board_member1"].address,
        ProposalType.FINANCIAL,
        "Q4 Budget Approval",
        "Approve budget for Q4",
        7,
    )


class ExplodingAddEngine(MockFHEEngine):
    """Engine that fails on the second homomorphic addition of a tally update."""

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._additions = 0

    def add(self, lhs: str, rhs: str) -> str:
        self._additions += 1
        if self._additions == 2:
            raise RuntimeError("engine unavailable")
        return super().add(lhs, rhs)


def test_shareholder_vote_is_recorded(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    voter = signers["shareholder1"]
    cast_vote(deployed, voter, proposal_id, VoteChoice.YES, network_key)

    assert deployed.has_user_voted(proposal_id, voter.address)
    assert not deployed.has_user_voted(proposal_id, signers["shareholder2"].address)


def test_multiple_shareholders_vote(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)
    cast_vote(deployed, signers["shareholder2"], proposal_id, VoteChoice.NO, network_key)
    cast_vote(deployed, signers["shareholder3"], proposal_id, VoteChoice.ABSTAIN, network_key)

    for name in ("shareholder1", "shareholder2", "shareholder3"):
        assert deployed.has_user_voted(proposal_id, signers[name].address)


def test_vote_event_does_not_reveal_choice(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.NO, network_key)

    [event] = deployed.events("VoteCast")
    assert event.payload == {"proposal_id": proposal_id, "voter": signers["shareholder1"].address}


def test_double_voting_is_rejected(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
    db_session: Session,
) -> None:
    voter = signers["shareholder1"]
    cast_vote(deployed, voter, proposal_id, VoteChoice.YES, network_key)

    with pytest.raises(StateError, match="Already voted on this proposal"):
        cast_vote(deployed, voter, proposal_id, VoteChoice.NO, network_key)
    assert db_session.query(VoteRecord).count() == 1


def test_non_shareholder_cannot_vote(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    with pytest.raises(AuthorizationError, match="Only registered shareholders can vote"):
        cast_vote(deployed, signers["non_shareholder"], proposal_id, VoteChoice.YES, network_key)


def test_board_member_without_shares_cannot_vote(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    with pytest.raises(AuthorizationError):
        cast_vote(deployed, signers["board_member1"], proposal_id, VoteChoice.YES, network_key)


def test_vote_on_unknown_proposal(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], network_key: NetworkKey
) -> None:
    with pytest.raises(ProposalNotFoundError):
        cast_vote(deployed, signers["shareholder1"], 99, VoteChoice.YES, network_key)


def test_input_bound_to_another_sender_is_rejected(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    # Bob replays Alice's encrypted ballot.
    alice_input = signers["shareholder1"].encrypt(
        VoteChoice.YES.value, contract_address=deployed.contract_address, network_key=network_key
    )

    with pytest.raises(CryptographicError):
        deployed.cast_confidential_vote(
            signers["shareholder2"].address, proposal_id, alice_input.ciphertext, alice_input.proof
        )
    assert not deployed.has_user_voted(proposal_id, signers["shareholder2"].address)


def test_input_bound_to_another_contract_is_rejected(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    voter = signers["shareholder1"]
    stray = voter.encrypt(
        VoteChoice.YES.value, contract_address="0x" + "ab" * 20, network_key=network_key
    )

    with pytest.raises(CryptographicError):
        deployed.cast_confidential_vote(voter.address, proposal_id, stray.ciphertext, stray.proof)


def test_tampered_proof_is_rejected(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    voter = signers["shareholder1"]
    encrypted = voter.encrypt(
        VoteChoice.YES.value, contract_address=deployed.contract_address, network_key=network_key
    )
    forged = bytes([encrypted.proof[0] ^ 0x01]) + encrypted.proof[1:]

    with pytest.raises(CryptographicError):
        deployed.cast_confidential_vote(voter.address, proposal_id, encrypted.ciphertext, forged)


def test_failed_tally_update_leaves_no_trace(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
    db_session: Session,
    settings,
    clock,
) -> None:
    ciphertexts_before = db_session.query(Ciphertext).count()
    grants_before = db_session.query(CiphertextGrant).count()
    events_before = len(deployed.events())

    failing = ConfidentialGovernance(
        db_session,
        settings=settings,
        now_fn=clock,
        engine_factory=lambda session: ExplodingAddEngine(
            session, contract_address=settings.contract_address, network_key=network_key
        ),
    )
    with pytest.raises(RuntimeError, match="engine unavailable"):
        cast_vote(failing, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)

    assert not deployed.has_user_voted(proposal_id, signers["shareholder1"].address)
    assert db_session.query(VoteRecord).count() == 0
    assert db_session.query(Ciphertext).count() == ciphertexts_before
    assert db_session.query(CiphertextGrant).count() == grants_before
    assert len(deployed.events()) == events_before

    # The shareholder can still vote once the engine recovers, and the tally is intact.
    cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)
    clock.advance(days=8)
    results = deployed.finalize_proposal(signers["deployer"].address, proposal_id)
    assert (results.yes_votes, results.no_votes, results.abstain_votes) == (1, 0, 0)


def test_voting_after_deadline_is_rejected(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
    clock,
) -> None:
    clock.advance(days=7)

    with pytest.raises(StateError, match="Voting period ended"):
        cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)


def test_voting_one_second_before_deadline_is_accepted(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
    clock,
) -> None:
    clock.advance(days=7, seconds=-1)
    cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)

    assert deployed.has_user_voted(proposal_id, signers["shareholder1"].address)


def test_voting_on_finalized_proposal_is_rejected(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
    clock,
) -> None:
    clock.advance(days=8)
    deployed.finalize_proposal(signers["deployer"].address, proposal_id)

    with pytest.raises(StateError, match="Proposal already finalized"):
        cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)


def test_voter_can_read_own_sealed_vote(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    voter = signers["shareholder1"]
    cast_vote(deployed, voter, proposal_id, VoteChoice.ABSTAIN, network_key)

    sealed = deployed.get_own_vote(voter.address, proposal_id, voter.sealing_public_key)

    assert voter.open(sealed) == VoteChoice.ABSTAIN.value


def test_sealed_vote_is_unreadable_for_other_keys(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    voter = signers["shareholder1"]
    cast_vote(deployed, voter, proposal_id, VoteChoice.YES, network_key)
    sealed = deployed.get_own_vote(voter.address, proposal_id, voter.sealing_public_key)

    with pytest.raises(ValueError):
        signers["shareholder2"].open(sealed)


def test_own_vote_requires_having_voted(
    deployed: ConfidentialGovernance, signers: dict[str, UserKeypair], proposal_id: int
) -> None:
    voter = signers["shareholder2"]

    with pytest.raises(StateError, match="You have not voted on this proposal"):
        deployed.get_own_vote(voter.address, proposal_id, voter.sealing_public_key)


def test_own_vote_rejects_malformed_public_key(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
) -> None:
    voter = signers["shareholder1"]
    cast_vote(deployed, voter, proposal_id, VoteChoice.YES, network_key)

    with pytest.raises(ValidationError):
        deployed.get_own_vote(voter.address, proposal_id, b"\x00" * 5)


class DoubleBookingEngine(MockFHEEngine):
    """Engine that records a competing ballot for the voter while the vote is in flight."""

    def allow(self, handle: str, address: str) -> None:
        super().allow(handle, address)
        if address.lower() == self.contract_address:
            return
        proposal = self._session.scalar(select(Proposal))
        self._session.add(
            VoteRecord(
                proposal_pk=proposal.id,
                voter=address.lower(),
                vote_handle=handle,
                has_voted=True,
                cast_at=0,
            )
        )
        self._session.flush()


@pytest.fixture()
def ledger_sessions(tmp_path: Path) -> Iterator[Callable[[], Session]]:
    """Independent sessions on one file-backed ledger, one per simulated client."""

    file_engine = create_engine(
        f"sqlite+pysqlite:///{tmp_path / 'ledger.db'}", connect_args={"check_same_thread": False}
    )
    Base.metadata.create_all(bind=file_engine)
    factory = sessionmaker(bind=file_engine, autocommit=False, autoflush=False)
    sessions: list[Session] = []

    def open_session() -> Session:
        session = factory()
        sessions.append(session)
        return session

    yield open_session

    for session in sessions:
        session.close()
    file_engine.dispose()


def _vote_while_ledger_is_held(
    ledger_sessions: Callable[[], Session],
    settings,
    clock,
    network_key: NetworkKey,
    proposal_id: int,
    first: UserKeypair,
    second: UserKeypair,
) -> list[Exception]:
    """Cast ``first``'s YES vote; ``second`` votes YES from another session in the middle of it."""

    errors: list[Exception] = []

    def competing_vote() -> None:
        governance = ConfidentialGovernance(ledger_sessions(), settings=settings, now_fn=clock)
        try:
            cast_vote(governance, second, proposal_id, VoteChoice.YES, network_key)
        except Exception as exc:
            errors.append(exc)

    competitor = threading.Thread(target=competing_vote)

    def block_time():
        # The first read of block time happens after the proposal was loaded.
        if competitor.ident is None:
            competitor.start()
            competitor.join(timeout=0.2)
        return clock()

    holder = ConfidentialGovernance(ledger_sessions(), settings=settings, now_fn=block_time)
    cast_vote(holder, first, proposal_id, VoteChoice.YES, network_key)
    competitor.join()
    return errors


def test_overlapping_votes_all_reach_the_tally(
    ledger_sessions, settings, clock, signers: dict[str, UserKeypair], network_key: NetworkKey
) -> None:
    setup = ConfidentialGovernance(ledger_sessions(), settings=settings, now_fn=clock)
    deploy_demo_company(setup, signers)
    proposal_id = setup.create_proposal(signers["deployer"].address, ProposalType.FINANCIAL, "Budget", "", 7)

    errors = _vote_while_ledger_is_held(
        ledger_sessions,
        settings,
        clock,
        network_key,
        proposal_id,
        signers["shareholder1"],
        signers["shareholder2"],
    )

    assert errors == []
    assert setup.has_user_voted(proposal_id, signers["shareholder1"].address)
    assert setup.has_user_voted(proposal_id, signers["shareholder2"].address)
    clock.advance(days=8)
    results = setup.finalize_proposal(signers["deployer"].address, proposal_id)
    assert (results.yes_votes, results.no_votes, results.abstain_votes) == (2, 0, 0)


def test_overlapping_duplicate_vote_is_rejected(
    ledger_sessions, settings, clock, signers: dict[str, UserKeypair], network_key: NetworkKey
) -> None:
    setup = ConfidentialGovernance(ledger_sessions(), settings=settings, now_fn=clock)
    deploy_demo_company(setup, signers)
    proposal_id = setup.create_proposal(signers["deployer"].address, ProposalType.FINANCIAL, "Budget", "", 7)
    alice = signers["shareholder1"]

    errors = _vote_while_ledger_is_held(ledger_sessions, settings, clock, network_key, proposal_id, alice, alice)

    assert len(errors) == 1
    assert isinstance(errors[0], StateError)
    assert str(errors[0]) == "Already voted on this proposal"
    clock.advance(days=8)
    results = setup.finalize_proposal(signers["deployer"].address, proposal_id)
    assert results.yes_votes == 1


def test_conflicting_ballot_row_is_a_state_error(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
    db_session: Session,
    settings,
    clock,
) -> None:
    racing = ConfidentialGovernance(
        db_session,
        settings=settings,
        now_fn=clock,
        engine_factory=lambda session: DoubleBookingEngine(
            session, contract_address=settings.contract_address, network_key=network_key
        ),
    )

    with pytest.raises(StateError, match="Already voted on this proposal"):
        cast_vote(racing, signers["shareholder1"], proposal_id, VoteChoice.YES, network_key)
    assert db_session.query(VoteRecord).count() == 0
    assert not deployed.has_user_voted(proposal_id, signers["shareholder1"].address)


def test_vote_persists_only_granted_ciphertexts(
    deployed: ConfidentialGovernance,
    signers: dict[str, UserKeypair],
    network_key: NetworkKey,
    proposal_id: int,
    db_session: Session,
) -> None:
    before = db_session.query(Ciphertext).count()

    cast_vote(deployed, signers["shareholder1"], proposal_id, VoteChoice.NO, network_key)

    # The imported ballot plus the three replaced counters.
    assert db_session.query(Ciphertext).count() == before + 4
    assert db_session.query(Ciphertext).count() == db_session.query(CiphertextGrant.handle).distinct().count()
