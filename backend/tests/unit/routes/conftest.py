import pytest
from fastapi.testclient import TestClient

from mentorship.api import dependencies
from mentorship.main import create_app
from mentorship.services.call_service import CallService
from mentorship.services.group_session_service import GroupSessionService
from mentorship.services.payment_event_router import PaymentEventRouter
from mentorship.services.session_lifecycle_service import SessionLifecycleService


@pytest.fixture
def app(unit_db, clock, notifier, video_service, stripe_service):
    app = create_app()

    def override_get_db():
        yield unit_db

    app.dependency_overrides[dependencies.get_db] = override_get_db
    app.dependency_overrides[dependencies.get_clock] = lambda: clock
    app.dependency_overrides[dependencies.get_call_service] = lambda: CallService(
        unit_db,
        clock=clock,
        notification_service=notifier,
        video_service=video_service,
        stripe_service=stripe_service,
    )
    app.dependency_overrides[dependencies.get_group_session_service] = lambda: GroupSessionService(
        unit_db, clock=clock, notification_service=notifier, stripe_service=stripe_service
    )
    app.dependency_overrides[dependencies.get_payment_event_router] = lambda: PaymentEventRouter(
        unit_db,
        clock=clock,
        stripe_service=stripe_service,
        notification_service=notifier,
        video_service=video_service,
    )
    app.dependency_overrides[dependencies.get_lifecycle_service] = lambda: SessionLifecycleService(
        unit_db,
        clock=clock,
        notification_service=notifier,
        video_service=video_service,
        stripe_service=stripe_service,
    )
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client
