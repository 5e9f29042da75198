"""Confidential corporate governance: roles, proposal lifecycle and encrypted tallying.

Every public mutation runs inside :meth:`ConfidentialGovernance._ledger_transaction`,
which holds the ledger write lock for its duration, commits on success and
rolls the whole session back on any failure, so a rejected operation never
leaves partial state (including ciphertexts and permission grants created by
the FHE engine on the same session).
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import select, text
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from governance.core.config import Settings, get_settings
from governance.core.errors import (
    AuthorizationError,
    CryptographicError,
    GovernanceError,
    ProposalNotFoundError,
    StateError,
    ValidationError,
)
from governance.fhe import MockFHEEngine, ProofInvalidError
from governance.models import (
    BoardMember,
    ContractState,
    FheType,
    LedgerEvent,
    Proposal,
    ProposalState,
    ProposalType,
    Shareholder,
    VoteChoice,
    VoteRecord,
)
from governance.obs import (
    GOVERNANCE_REJECTION_COUNTER,
    PROPOSALS_CREATED_COUNTER,
    PROPOSALS_FINALIZED_COUNTER,
    TALLY_UPDATE_SECONDS,
    VOTES_CAST_COUNTER,
    operation_span,
)

logger = logging.getLogger(__name__)

EngineFactory = Callable[[Session], MockFHEEngine]

_ADDRESS_PATTERN = re.compile(r"^0x[0-9a-fA-F]{40}$")

# Counter column per tallied choice, in the order the tally is updated.
_TALLY_COLUMNS: tuple[tuple[VoteChoice, str], ...] = (
    (VoteChoice.YES, "yes_count_handle"),
    (VoteChoice.NO, "no_count_handle"),
    (VoteChoice.ABSTAIN, "abstain_count_handle"),
)


@dataclass(frozen=True, slots=True)
class CompanyInfo:
    name: str
    total_shares: int
    initialized: bool


@dataclass(frozen=True, slots=True)
class ShareholderInfo:
    address: str
    name: str
    shares: int
    is_registered: bool


@dataclass(frozen=True, slots=True)
class ProposalInfo:
    proposal_id: int
    proposal_type: ProposalType
    title: str
    description: str
    creator: str
    deadline: int
    finalized: bool
    state: ProposalState


@dataclass(frozen=True, slots=True)
class ProposalResults:
    yes_votes: int
    no_votes: int
    abstain_votes: int
    passed: bool


def derive_state(proposal: Proposal, now: int) -> ProposalState:
    """Return the lifecycle state of ``proposal`` at block time ``now``."""

    if proposal.finalized:
        return ProposalState.FINALIZED
    if now < proposal.created_at_block:
        return ProposalState.CREATED
    if now >= proposal.deadline:
        return ProposalState.VOTING_CLOSED
    return ProposalState.VOTING_OPEN


def _address(value: str) -> str:
    if not isinstance(value, str) or not _ADDRESS_PATTERN.match(value):
        raise ValidationError(f"Invalid address '{value}'")
    return value.lower()


def _caller(value: str) -> str:
    return value.lower() if isinstance(value, str) else ""


def _proposal_type(value: ProposalType | str | int) -> ProposalType:
    """Accept a member, its name, or its declaration index (0 = BOARD_DECISION)."""

    if isinstance(value, ProposalType):
        return value
    members = list(ProposalType)
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < len(members):
        return members[value]
    try:
        return ProposalType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown proposal type '{value}'") from exc


class ConfidentialGovernance:
    """Governance contract bound to one ledger session and one contract address."""

    def __init__(
        self,
        session: Session,
        *,
        settings: Settings | None = None,
        engine_factory: EngineFactory | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._engine_factory = engine_factory or (
            lambda bound: MockFHEEngine.from_settings(bound, self._settings)
        )
        self._now_fn = now_fn or (lambda: datetime.now(timezone.utc))
        self._address = self._settings.contract_address.lower()

    @property
    def contract_address(self) -> str:
        return self._address

    # plumbing ------------------------------------------------------------

    def _block_timestamp(self) -> int:
        return int(self._now_fn().timestamp())

    def _begin_serializable(self) -> None:
        """Start a ledger transaction that excludes every other writer until it ends."""

        # Isolation only applies from the first statement; close the read transaction left by queries.
        if self._session.in_transaction():
            self._session.commit()
        bind = self._session.get_bind()
        if bind.dialect.name == "sqlite":
            self._session.execute(text("BEGIN IMMEDIATE"))
        else:
            self._session.execute(text("SET TRANSACTION ISOLATION LEVEL SERIALIZABLE"))

    @contextmanager
    def _ledger_transaction(self, operation: str) -> Iterator[MockFHEEngine]:
        engine = self._engine_factory(self._session)
        try:
            self._begin_serializable()
            yield engine
            self._session.commit()
        except GovernanceError as exc:
            self._session.rollback()
            GOVERNANCE_REJECTION_COUNTER.labels(operation=operation, error=type(exc).__name__).inc()
            logger.info(
                "governance operation rejected",
                extra={"operation": operation, "error": type(exc).__name__, "reason": str(exc)},
            )
            raise
        except Exception:
            self._session.rollback()
            raise

    def _state(self) -> ContractState:
        state = self._session.get(ContractState, self._address)
        if state is None:
            raise StateError("Contract not deployed")
        return state

    def _emit(self, event_name: str, /, **payload: object) -> None:
        self._session.add(
            LedgerEvent(
                contract_address=self._address,
                name=event_name,
                payload=payload,
                block_timestamp=self._block_timestamp(),
            )
        )

    def _board_member(self, address: str) -> BoardMember | None:
        return self._session.scalar(
            select(BoardMember).where(
                BoardMember.contract_address == self._address, BoardMember.address == address
            )
        )

    def _shareholder(self, address: str) -> Shareholder | None:
        return self._session.scalar(
            select(Shareholder).where(
                Shareholder.contract_address == self._address, Shareholder.address == address
            )
        )

    def _proposal(self, proposal_id: int, *, for_update: bool = False) -> Proposal:
        statement = select(Proposal).where(
            Proposal.contract_address == self._address, Proposal.proposal_id == proposal_id
        )
        if for_update:
            statement = statement.with_for_update().execution_options(populate_existing=True)
        proposal = self._session.scalar(statement)
        if proposal is None:
            raise ProposalNotFoundError(f"Proposal {proposal_id} does not exist")
        return proposal

    def _vote(self, proposal: Proposal, voter: str) -> VoteRecord | None:
        return self._session.scalar(
            select(VoteRecord).where(VoteRecord.proposal_pk == proposal.id, VoteRecord.voter == voter)
        )

    @staticmethod
    def _require_owner(state: ContractState, caller: str) -> None:
        if caller != state.owner:
            raise AuthorizationError("Only owner can perform this action")

    def _require_board_member(self, caller: str) -> None:
        if self._board_member(caller) is None:
            raise AuthorizationError("Only board members can perform this action")

    # deployment and company ---------------------------------------------

    def deploy(self, owner: str) -> None:
        """Create the contract state; the owner becomes the first board member."""

        with self._ledger_transaction("deploy"):
            owner = _address(owner)
            if self._session.get(ContractState, self._address) is not None:
                raise StateError("Contract already deployed")
            self._session.add(
                ContractState(
                    address=self._address,
                    owner=owner,
                    deployed_at=self._block_timestamp(),
                    total_shares=0,
                    company_initialized=False,
                    board_member_count=1,
                    proposal_count=0,
                )
            )
            self._session.flush()
            self._session.add(BoardMember(contract_address=self._address, address=owner))
        logger.info("governance contract deployed", extra={"contract": self._address, "owner": owner})

    def initialize_company(self, caller: str, name: str, total_shares: int) -> None:
        with self._ledger_transaction("initialize_company"):
            state = self._state()
            self._require_owner(state, _caller(caller))
            if state.company_initialized:
                raise StateError("Company already initialized")
            if not name or not name.strip():
                raise ValidationError("Company name cannot be empty")
            if total_shares <= 0:
                raise ValidationError("Total shares must be positive")
            state.company_name = name.strip()
            state.total_shares = total_shares
            state.company_initialized = True
            self._emit("CompanyInitialized", name=state.company_name, total_shares=total_shares)

    # board -----------------------------------------------------------------

    def add_board_member(self, caller: str, address: str) -> None:
        with self._ledger_transaction("add_board_member"):
            state = self._state()
            self._require_owner(state, _caller(caller))
            member = _address(address)
            if self._board_member(member) is not None:
                raise ValidationError("Already a board member")
            self._session.add(BoardMember(contract_address=self._address, address=member))
            state.board_member_count += 1
            self._emit("BoardMemberAdded", member=member)

    def remove_board_member(self, caller: str, address: str) -> None:
        with self._ledger_transaction("remove_board_member"):
            state = self._state()
            self._require_owner(state, _caller(caller))
            member = _address(address)
            if member == state.owner:
                raise ValidationError("Cannot remove owner from board")
            record = self._board_member(member)
            if record is None:
                raise ValidationError("Not a board member")
            self._session.delete(record)
            state.board_member_count -= 1
            self._emit("BoardMemberRemoved", member=member)

    # shareholders ----------------------------------------------------------

    def add_shareholder(self, caller: str, address: str, name: str, shares: int) -> None:
        with self._ledger_transaction("add_shareholder"):
            state = self._state()
            self._require_owner(state, _caller(caller))
            holder = _address(address)
            if self._shareholder(holder) is not None:
                raise ValidationError("Shareholder already registered")
            if not name or not name.strip():
                raise ValidationError("Shareholder name cannot be empty")
            if shares <= 0:
                raise ValidationError("Shares must be positive")
            self._session.add(
                Shareholder(
                    contract_address=self._address,
                    address=holder,
                    name=name.strip(),
                    shares=shares,
                    is_registered=True,
                )
            )
            self._emit("ShareholderAdded", shareholder=holder, name=name.strip(), shares=shares)

    # proposals -------------------------------------------------------------

    def create_proposal(
        self,
        caller: str,
        proposal_type: ProposalType | str,
        title: str,
        description: str,
        voting_days: int,
    ) -> int:
        """Open a proposal for voting and return its id."""

        with self._ledger_transaction("create_proposal") as engine:
            state = self._state()
            creator = _caller(caller)
            self._require_board_member(creator)
            kind = _proposal_type(proposal_type)
            if not title or not title.strip():
                raise ValidationError("Title cannot be empty")
            if voting_days <= 0 or voting_days > self._settings.max_voting_days:
                raise ValidationError("Invalid voting period")

            now = self._block_timestamp()
            proposal_id = state.proposal_count
            counters: dict[str, str] = {}
            for _, column in _TALLY_COLUMNS:
                handle = engine.encrypt_constant(0, FheType.EUINT32)
                engine.allow_this(handle)
                counters[column] = handle

            self._session.add(
                Proposal(
                    contract_address=self._address,
                    proposal_id=proposal_id,
                    proposal_type=kind,
                    title=title.strip(),
                    description=description or "",
                    creator=creator,
                    created_at_block=now,
                    deadline=now + voting_days * self._settings.seconds_per_day,
                    finalized=False,
                    **counters,
                )
            )
            state.proposal_count += 1
            self._emit(
                "ProposalCreated",
                proposal_id=proposal_id,
                proposal_type=kind.value,
                title=title.strip(),
                creator=creator,
                deadline=now + voting_days * self._settings.seconds_per_day,
            )

        PROPOSALS_CREATED_COUNTER.labels(proposal_type=kind.value).inc()
        logger.info("proposal created", extra={"proposal_id": proposal_id, "creator": creator})
        return proposal_id

    # voting ----------------------------------------------------------------

    def cast_confidential_vote(
        self, caller: str, proposal_id: int, encrypted_choice: bytes, proof: bytes
    ) -> None:
        """Add an encrypted ballot to the proposal's tally without learning the choice."""

        with self._ledger_transaction("cast_confidential_vote") as engine:
            self._state()
            voter = _caller(caller)
            shareholder = self._shareholder(voter)
            if shareholder is None or not shareholder.is_registered:
                raise AuthorizationError("Only registered shareholders can vote")
            proposal = self._proposal(proposal_id, for_update=True)
            if proposal.finalized:
                raise StateError("Proposal already finalized")
            now = self._block_timestamp()
            if now >= proposal.deadline:
                raise StateError("Voting period ended")
            if self._vote(proposal, voter) is not None:
                raise StateError("Already voted on this proposal")

            try:
                vote = engine.verify_and_import(
                    encrypted_choice, proof, self._address, voter, FheType.EUINT8
                )
            except ProofInvalidError as exc:
                raise CryptographicError(str(exc)) from exc
            engine.allow_this(vote)
            engine.allow(vote, voter)

            with TALLY_UPDATE_SECONDS.time(), operation_span("governance.tally", proposal_id=proposal_id):
                one = engine.encrypt_constant(1, FheType.EUINT32)
                zero = engine.encrypt_constant(0, FheType.EUINT32)
                # Every counter is updated for every ballot; the branch taken never depends on plaintext.
                for choice, column in _TALLY_COLUMNS:
                    is_choice = engine.eq(vote, engine.encrypt_constant(choice.value, FheType.EUINT8))
                    increment = engine.select(is_choice, one, zero)
                    updated = engine.add(getattr(proposal, column), increment)
                    engine.allow_this(updated)
                    setattr(proposal, column, updated)

            self._session.add(
                VoteRecord(proposal_pk=proposal.id, voter=voter, vote_handle=vote, has_voted=True, cast_at=now)
            )
            try:
                self._session.flush()
            except IntegrityError as exc:
                raise StateError("Already voted on this proposal") from exc
            self._emit("VoteCast", proposal_id=proposal_id, voter=voter)

        VOTES_CAST_COUNTER.inc()
        logger.info("vote cast", extra={"proposal_id": proposal_id, "voter": voter})

    def get_own_vote(self, caller: str, proposal_id: int, public_key: bytes) -> bytes:
        """Return the caller's ballot sealed for ``public_key``."""

        with self._ledger_transaction("get_own_vote") as engine:
            self._state()
            voter = _caller(caller)
            proposal = self._proposal(proposal_id)
            record = self._vote(proposal, voter)
            if record is None:
                raise StateError("You have not voted on this proposal")
            try:
                return engine.seal_for_user(record.vote_handle, voter, public_key)
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

    # finalization ----------------------------------------------------------

    def finalize_proposal(self, caller: str, proposal_id: int) -> ProposalResults:
        """Publicly decrypt the tally once the deadline has passed."""

        with self._ledger_transaction("finalize_proposal") as engine:
            self._state()
            proposal = self._proposal(proposal_id, for_update=True)
            if proposal.finalized:
                raise StateError("Proposal already finalized")
            if self._block_timestamp() < proposal.deadline:
                raise StateError("Voting period still active")

            with operation_span("governance.finalize", proposal_id=proposal_id):
                yes_votes = engine.decrypt(proposal.yes_count_handle)
                no_votes = engine.decrypt(proposal.no_count_handle)
                abstain_votes = engine.decrypt(proposal.abstain_count_handle)

            results = ProposalResults(
                yes_votes=yes_votes,
                no_votes=no_votes,
                abstain_votes=abstain_votes,
                passed=yes_votes > no_votes,
            )
            proposal.yes_votes = results.yes_votes
            proposal.no_votes = results.no_votes
            proposal.abstain_votes = results.abstain_votes
            proposal.passed = results.passed
            proposal.finalized = True
            self._emit(
                "ProposalFinalized",
                proposal_id=proposal_id,
                yes_votes=yes_votes,
                no_votes=no_votes,
                abstain_votes=abstain_votes,
                passed=results.passed,
                finalized_by=_caller(caller),
            )

        PROPOSALS_FINALIZED_COUNTER.labels(outcome="passed" if results.passed else "rejected").inc()
        logger.info("proposal finalized", extra={"proposal_id": proposal_id, "passed": results.passed})
        return results

    def get_results(self, proposal_id: int) -> ProposalResults:
        proposal = self._proposal(proposal_id)
        if not proposal.finalized:
            raise StateError("Proposal not finalized yet")
        return ProposalResults(
            yes_votes=proposal.yes_votes or 0,
            no_votes=proposal.no_votes or 0,
            abstain_votes=proposal.abstain_votes or 0,
            passed=bool(proposal.passed),
        )

    # queries ---------------------------------------------------------------

    def owner(self) -> str:
        return self._state().owner

    def company(self) -> CompanyInfo:
        state = self._state()
        return CompanyInfo(
            name=state.company_name or "",
            total_shares=state.total_shares,
            initialized=state.company_initialized,
        )

    def _proposal_info(self, proposal: Proposal, now: int) -> ProposalInfo:
        return ProposalInfo(
            proposal_id=proposal.proposal_id,
            proposal_type=proposal.proposal_type,
            title=proposal.title,
            description=proposal.description,
            creator=proposal.creator,
            deadline=proposal.deadline,
            finalized=proposal.finalized,
            state=derive_state(proposal, now),
        )

    def get_proposal(self, proposal_id: int) -> ProposalInfo:
        return self._proposal_info(self._proposal(proposal_id), self._block_timestamp())

    def get_proposal_count(self) -> int:
        return self._state().proposal_count

    def list_proposals(self) -> list[ProposalInfo]:
        now = self._block_timestamp()
        return [self._proposal_info(proposal, now) for proposal in self._state().proposals]

    def proposal_state(self, proposal_id: int) -> ProposalState:
        return derive_state(self._proposal(proposal_id), self._block_timestamp())

    def expired_unfinalized_proposals(self) -> list[int]:
        """Ids of proposals whose deadline passed but which are not finalized yet."""

        statement = (
            select(Proposal.proposal_id)
            .where(
                Proposal.contract_address == self._address,
                Proposal.finalized.is_(False),
                Proposal.deadline <= self._block_timestamp(),
            )
            .order_by(Proposal.proposal_id)
        )
        return list(self._session.scalars(statement))

    def is_board_member(self, address: str) -> bool:
        return self._board_member(_caller(address)) is not None

    def board_member_count(self) -> int:
        return self._state().board_member_count

    def get_shareholder(self, address: str) -> ShareholderInfo:
        holder = self._shareholder(_caller(address))
        if holder is None:
            return ShareholderInfo(address=_caller(address), name="", shares=0, is_registered=False)
        return ShareholderInfo(
            address=holder.address, name=holder.name, shares=holder.shares, is_registered=holder.is_registered
        )

    def get_all_shareholders(self) -> list[str]:
        return [holder.address for holder in self._state().shareholders]

    def shareholder_count(self) -> int:
        return len(self._state().shareholders)

    def has_user_voted(self, proposal_id: int, address: str) -> bool:
        record = self._vote(self._proposal(proposal_id), _caller(address))
        return record is not None and record.has_voted

    def events(self, name: str | None = None) -> list[LedgerEvent]:
        statement = select(LedgerEvent).where(LedgerEvent.contract_address == self._address)
        if name is not None:
            statement = statement.where(LedgerEvent.name == name)
        return list(self._session.scalars(statement.order_by(LedgerEvent.id)))


__all__ = [
    "CompanyInfo",
    "ConfidentialGovernance",
    "EngineFactory",
    "ProposalInfo",
    "ProposalResults",
    "ShareholderInfo",
    "derive_state",
]
