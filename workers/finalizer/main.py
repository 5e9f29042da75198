"""Keeper worker finalizing proposals once their voting deadline has passed."""

from __future__ import annotations

import asyncio
import logging

from governance.core.config import get_settings
from governance.core.logging import configure_logging
from governance.db.session import SessionLocal
from governance.services.finalization import FinalizationReport, FinalizationService
from governance.services.governance import ConfidentialGovernance
from governance.workers.observability import configure_worker, worker_span

LOGGER = logging.getLogger(__name__)


async def run_once(service: FinalizationService) -> FinalizationReport:
    """Execute a single finalization sweep."""

    with worker_span("finalizer.cycle"):
        report = service.finalize_expired()
        LOGGER.info(
            "finalization cycle complete",
            extra={"finalized": sorted(report.finalized), "failed": sorted(report.failed)},
        )
    return report


async def run() -> None:
    """Continuously sweep for expired proposals at the configured cadence."""

    settings = get_settings()
    configure_worker("governance-finalizer")
    interval = max(10, settings.finalizer_interval_seconds)
    LOGGER.info("starting finalizer worker", extra={"interval_seconds": interval})
    while True:
        with SessionLocal() as session:  # type: ignore[attr-defined]
            governance = ConfidentialGovernance(session, settings=settings)
            service = FinalizationService(governance, keeper_address=settings.owner_address)
            await run_once(service)
        await asyncio.sleep(interval)


def main() -> None:
    configure_logging()
    try:
        asyncio.run(run())
    except KeyboardInterrupt:  # pragma: no cover - manual shutdown
        LOGGER.info("finalizer worker stopped")


if __name__ == "__main__":
    main()
