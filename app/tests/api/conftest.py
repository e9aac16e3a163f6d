"""Fixtures for API tests.

The application is built with ``create_app`` and a notification service
wired to stub channel adapters, so requests never reach a real provider.
"""

import pytest
from fastapi.testclient import TestClient

from api.dependencies.rate_limits import get_limiter
from server.server import create_app


@pytest.fixture(autouse=True)
def reset_rate_limits():
    get_limiter().reset()
    yield
    get_limiter().reset()


@pytest.fixture
def service(service_factory, stub_channels):
    return service_factory(stub_channels)


@pytest.fixture
def app(service):
    application = create_app()
    application.state.notification_service = service
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def create_sent(client, service):
    """POST a notification for user-1 and wait for its dispatch.

    Example:
        notification_id = create_sent(title="Hello", content="World")
    """

    def _factory(**overrides):
        body = {
            "recipient_id": "user-1",
            "type": "system_announcement",
            "title": "Maintenance tonight",
            "content": "The app is down from 1am to 2am",
        }
        body.update(overrides)
        response = client.post("/api/v1/notifications", json=body)
        assert response.status_code == 202
        service.dispatch_queue.wait_idle(timeout=5)
        return response.json()["id"]

    return _factory
