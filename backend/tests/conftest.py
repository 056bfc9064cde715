"""Pytest configuration and fixtures."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from api.positions import set_position_service_override
from database import Base, enable_sqlite_savepoints, get_db
from main import app
from services.lot_enrichment_service import LotEnricher
from services.position_service import PositionService
# Pytest fixtures - imported to make them available to tests
from tests.fixtures import (  # noqa: F401
    second_token,
    token,
    wallet,
)
from tests.fixtures.mocks import MockPriceHistoryProvider, MockSnapshotProvider


@pytest.fixture(name="db")
def db_fixture():
    """Create an in-memory SQLite database for testing."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_savepoints(engine)
    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(name="snapshot_provider")
def snapshot_provider_fixture():
    """Snapshot provider with no data."""
    return MockSnapshotProvider()


@pytest.fixture(name="price_history_provider")
def price_history_provider_fixture():
    """Price history provider with no data."""
    return MockPriceHistoryProvider()


@pytest.fixture(name="position_service")
def position_service_fixture(snapshot_provider, price_history_provider):
    """PositionService wired to mock market data providers."""
    return PositionService(enricher=LotEnricher(snapshot_provider, price_history_provider))


@pytest.fixture(name="client")
def client_fixture(db, position_service):
    """Create a test client with the test database."""

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    set_position_service_override(position_service)
    client = TestClient(app)
    yield client
    app.dependency_overrides.clear()
    set_position_service_override(None)
