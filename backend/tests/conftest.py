# backend/tests/conftest.py
"""
Shared pytest fixtures.

Tests run against an in-memory SQLite engine; every test gets a session that
joins an outer transaction and only ever commits/rolls back savepoints, so
service code can call ``commit()``/``rollback()`` freely while the test's data
is discarded at the end.
"""

from datetime import datetime, timezone
import unittest.mock

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from mentorship.core.clock import FrozenClock
from mentorship.database import Base
from mentorship.integrations.daily_client import FakeDailyClient
import mentorship.models  # noqa: F401
from mentorship.services.notification_service import NotificationService
from mentorship.services.stripe_service import StripeService
from mentorship.services.video_service import VideoRoomService

# Monday 2026-06-01 12:00 UTC (08:00 in New York)
NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session", autouse=True)
def _mock_resend():
    """Never reach the real email provider from a test."""
    with unittest.mock.patch("resend.Emails.send") as mocked_send:
        mocked_send.return_value = {"id": "test-email-id"}
        yield mocked_send


@pytest.fixture(autouse=True)
def _no_redis():
    """Lifecycle leases fail open without Redis."""
    with unittest.mock.patch("mentorship.core.pass_lease.lease_client", return_value=None):
        yield


@pytest.fixture(scope="session")
def _unit_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite needs explicit BEGIN for SAVEPOINT to behave.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture(scope="function")
def unit_db(_unit_engine) -> Session:
    """Session bound to an outer transaction that is rolled back after the test."""
    connection = _unit_engine.connect()
    transaction = connection.begin()
    session = Session(bind=connection, join_transaction_mode="create_savepoint", expire_on_commit=False)
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(NOW)


@pytest.fixture
def fake_daily() -> FakeDailyClient:
    return FakeDailyClient()


@pytest.fixture
def video_service(fake_daily) -> VideoRoomService:
    return VideoRoomService(client=fake_daily)


@pytest.fixture
def notifier() -> unittest.mock.MagicMock:
    mock = unittest.mock.MagicMock(spec=NotificationService)
    for name in dir(NotificationService):
        if name.startswith("send_"):
            getattr(mock, name).return_value = True
    return mock


@pytest.fixture
def stripe_service(unit_db) -> StripeService:
    return StripeService(unit_db)


@pytest.fixture
def mock_transfer():
    with unittest.mock.patch("stripe.Transfer.create") as mocked:
        mocked.return_value = {"id": "tr_test_123"}
        yield mocked


@pytest.fixture
def mock_refund():
    with unittest.mock.patch("stripe.Refund.create") as mocked:
        mocked.return_value = {"id": "re_test_123"}
        yield mocked
