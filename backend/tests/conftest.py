import os

os.environ.setdefault("SQLITE_PATH", "test_callportal.db")

import pytest
from fastapi.testclient import TestClient

from callportal.config import Settings, get_settings
from callportal.database import Base, SessionLocal, engine
from callportal.main import app
from callportal.services.broadcaster import EventBroadcaster, Subscriber
from callportal.services.signature import compute_signature

TEST_AUTH_TOKEN = "test-auth-token"
WEBHOOK_URL = "http://testserver/api/call-events"


@pytest.fixture()
def test_settings():
    return Settings(twilio_auth_token=TEST_AUTH_TOKEN)


@pytest.fixture(autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture()
def call_log_broadcaster():
    broadcaster = app.state.call_log_broadcaster
    yield broadcaster
    broadcaster.close_all()


@pytest.fixture()
def contact_broadcaster():
    broadcaster = app.state.contact_broadcaster
    yield broadcaster
    broadcaster.close_all()


@pytest.fixture()
def client(test_settings):
    app.dependency_overrides[get_settings] = lambda: test_settings
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def drain(subscriber: Subscriber) -> list:
    """Return every frame currently queued for a subscriber."""
    frames = []
    while not subscriber.queue.empty():
        frames.append(subscriber.queue.get_nowait())
    return frames


def post_call_event(client, params: dict, query: str = "", signature: str = None, token: str = TEST_AUTH_TOKEN):
    url = WEBHOOK_URL + (f"?{query}" if query else "")
    if signature is None:
        signature = compute_signature(url, params, token)
    path = "/api/call-events" + (f"?{query}" if query else "")
    return client.post(path, data=params, headers={"X-Twilio-Signature": signature})


def subscribe(broadcaster: EventBroadcaster, employee_id=None) -> Subscriber:
    subscriber = Subscriber(employee_id=employee_id)
    broadcaster.register(subscriber)
    return subscriber
