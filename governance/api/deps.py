"""Common dependencies for API routes."""
from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import datetime, timezone

from fastapi import Depends
from sqlalchemy.orm import Session

from governance.core.config import get_settings
from governance.db.session import SessionLocal
from governance.services.governance import ConfidentialGovernance


def get_db_session() -> Iterator[Session]:
    """Yield a database session for FastAPI dependencies."""

    session: Session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def get_clock() -> Callable[[], datetime]:
    """Block time source; overridden in tests to move past voting deadlines."""

    return _utc_now


def get_governance(
    session: Session = Depends(get_db_session),
    now_fn: Callable[[], datetime] = Depends(get_clock),
) -> ConfidentialGovernance:
    return ConfidentialGovernance(session, settings=get_settings(), now_fn=now_fn)


__all__ = ["get_clock", "get_db_session", "get_governance"]
