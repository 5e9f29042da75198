"""Deploy a governance contract and seed a demo company, board and shareholder roster."""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from governance.core.config import get_settings
from governance.core.errors import StateError
from governance.db.session import engine, get_session
from governance.models import Base
from governance.services.governance import ConfidentialGovernance

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

DEMO_BOARD = ["0x70997970c51812dc3a010c7d01b50e0d17dc79c8"]
DEMO_SHAREHOLDERS = [
    ("0x3c44cdddb6a900fa2b585dd299e03d12fa4293bc", "Alice Johnson", 3000),
    ("0x90f79bf6eb2c4f870365e785982e1f101e93b906", "Bob Smith", 2500),
    ("0x15d34aaf54267db7d7c367839aaf71a00a2c6a65", "Carol White", 1500),
]


def seed(session: Session) -> None:
    """Deploy the contract if needed and register the demo participants."""

    settings = get_settings()
    governance = ConfidentialGovernance(session, settings=settings)
    owner = settings.owner_address

    try:
        governance.deploy(owner)
        logger.info("Deployed governance contract %s", governance.contract_address)
    except StateError:
        logger.info("Governance contract %s already deployed", governance.contract_address)

    if not governance.company().initialized:
        governance.initialize_company(owner, "TechCorp Inc.", 10000)
        logger.info("Initialized company TechCorp Inc.")

    for member in DEMO_BOARD:
        if governance.is_board_member(member):
            logger.info("Board member %s already registered", member)
            continue
        governance.add_board_member(owner, member)
        logger.info("Added board member %s", member)

    for address, name, shares in DEMO_SHAREHOLDERS:
        if governance.get_shareholder(address).is_registered:
            logger.info("Shareholder %s already registered", address)
            continue
        governance.add_shareholder(owner, address, name, shares)
        logger.info("Added shareholder %s (%s shares)", name, shares)


def main() -> None:
    Base.metadata.create_all(bind=engine)
    with get_session() as session:
        seed(session)


if __name__ == "__main__":
    main()
