"""Shared fixtures — in-memory database, controllable clock, raffle and test client.

Every test gets a fresh in-memory SQLite database (StaticPool so all sessions
see the same data). The clock is frozen and only moves through clock.advance().
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database import Base, Settings, get_db
from core.raffle_manager import RaffleManager
from services import ledger_service
from main import app

ENTRANCE_FEE = 100
INTERVAL = 60
ORACLE = "oracle-coordinator"
POOL = "raffle-pool"
START_TIME = 1_700_000_000


class FakeClock:
    def __init__(self, now: int = START_TIME):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture
def test_engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock(monkeypatch):
    fake = FakeClock()
    monkeypatch.setattr("services.clock_service.current_timestamp", fake)
    return fake


@pytest.fixture
def raffle_settings():
    return Settings(
        database_url="sqlite://",
        entrance_fee=ENTRANCE_FEE,
        interval_seconds=INTERVAL,
        oracle_address=ORACLE,
        holding_address=POOL,
    )


@pytest.fixture
def raffle(db, clock, raffle_settings):
    return RaffleManager.create_raffle(db, raffle_settings)


@pytest.fixture
def fund(db):
    """Give an account spendable balance: fund("alice", 1000)."""
    def _fund(address: str, amount: int = 1_000):
        account = ledger_service.fund(db, address, amount)
        db.commit()
        return account
    return _fund


@pytest.fixture
def client(session_factory, raffle):
    """FastAPI test client bound to the test database and raffle (no lifespan)."""
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.state.raffle_id = raffle.id

    yield TestClient(app)

    app.dependency_overrides.clear()
    app.state.raffle_id = None
