"""Sweep that finalizes proposals whose voting window has closed."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field

from governance.core.errors import GovernanceError
from governance.services.governance import ConfidentialGovernance, ProposalResults

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class FinalizationReport:
    finalized: dict[int, ProposalResults] = field(default_factory=dict)
    failed: dict[int, str] = field(default_factory=dict)


class FinalizationService:
    """Finalizes every expired proposal, one ledger transaction per proposal."""

    def __init__(self, governance: ConfidentialGovernance, *, keeper_address: str) -> None:
        self._governance = governance
        self._keeper = keeper_address

    def finalize_expired(self) -> FinalizationReport:
        report = FinalizationReport()
        for proposal_id in self._governance.expired_unfinalized_proposals():
            try:
                report.finalized[proposal_id] = self._governance.finalize_proposal(self._keeper, proposal_id)
            except GovernanceError as exc:
                # Another keeper may have finalized it first; the rejection is already rolled back.
                report.failed[proposal_id] = str(exc)
                logger.warning(
                    "proposal finalization rejected",
                    extra={"proposal_id": proposal_id, "reason": str(exc)},
                )
        return report


__all__ = ["FinalizationReport", "FinalizationService"]
