from __future__ import annotations

import os
import sys
from collections.abc import Iterator
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

ROOT_DIR = Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

os.environ.setdefault("GOVERNANCE_ENABLE_TRACING", "false")
os.environ.setdefault("GOVERNANCE_DATABASE_URL", "sqlite+pysqlite:///:memory:")

from governance.api.deps import get_clock, get_db_session
from governance.core.config import Settings, get_settings
from governance.fhe import NetworkKey, UserKeypair
from governance.main import app
from governance.models import Base, VoteChoice
from governance.services.governance import ConfidentialGovernance

DATABASE_URL = "sqlite+pysqlite:///:memory:"

engine = create_engine(
    DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

GENESIS = datetime(2025, 1, 6, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Mutable block time used to fast forward past voting deadlines."""

    def __init__(self, start: datetime = GENESIS) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, *, days: float = 0, seconds: float = 0) -> None:
        self.now += timedelta(days=days, seconds=seconds)


@pytest.fixture()
def settings() -> Settings:
    return get_settings()


@pytest.fixture()
def network_key(settings: Settings) -> NetworkKey:
    return NetworkKey.from_hex(settings.engine_network_key)


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def db_session() -> Iterator[Session]:
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture()
def signers() -> dict[str, UserKeypair]:
    return {
        name: UserKeypair()
        for name in (
            "deployer",
            "board_member1",
            "shareholder1",
            "shareholder2",
            "shareholder3",
            "non_shareholder",
        )
    }


@pytest.fixture()
def governance(db_session: Session, settings: Settings, clock: FakeClock) -> ConfidentialGovernance:
    return ConfidentialGovernance(db_session, settings=settings, now_fn=clock)


def deploy_demo_company(governance: ConfidentialGovernance, signers: dict[str, UserKeypair]) -> None:
    owner = signers["deployer"].address
    governance.deploy(owner)
    governance.initialize_company(owner, "TechCorp Inc.", 10000)
    governance.add_board_member(owner, signers["board_member1"].address)
    governance.add_shareholder(owner, signers["shareholder1"].address, "Alice Johnson", 3000)
    governance.add_shareholder(owner, signers["shareholder2"].address, "Bob Smith", 2500)
    governance.add_shareholder(owner, signers["shareholder3"].address, "Carol White", 1500)


@pytest.fixture()
def deployed(
    governance: ConfidentialGovernance, signers: dict[str, UserKeypair]
) -> ConfidentialGovernance:
    deploy_demo_company(governance, signers)
    return governance


def cast_vote(
    governance: ConfidentialGovernance,
    voter: UserKeypair,
    proposal_id: int,
    choice: VoteChoice,
    network_key: NetworkKey,
) -> None:
    encrypted = voter.encrypt(
        choice.value, contract_address=governance.contract_address, network_key=network_key
    )
    governance.cast_confidential_vote(voter.address, proposal_id, encrypted.ciphertext, encrypted.proof)


@pytest.fixture()
def client(db_session: Session, clock: FakeClock) -> Iterator[TestClient]:
    def override_get_db() -> Iterator[Session]:
        try:
            yield db_session
        finally:
            db_session.rollback()

    app.dependency_overrides[get_db_session] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_db_session, None)
    app.dependency_overrides.pop(get_clock, None)


def login(client: TestClient, keypair: UserKeypair) -> dict[str, str]:
    signed_at = int(datetime.now(timezone.utc).timestamp())
    response = client.post(
        "/api/auth/login",
        json={
            "verify_key": keypair.verify_key.hex(),
            "signed_at": signed_at,
            "signature": keypair.sign_login(signed_at).hex(),
        },
    )
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}
