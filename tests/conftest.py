"""Pytest configuration and fixtures for pair-chat tests."""

import fakeredis
import pytest
from fastapi.testclient import TestClient

from backend import REDIS_CLIENT_OPTIONS, RedisBackend, get_backend
from constants import AUTH_COOKIE_NAME
from events import EventPublisher


class RecordingPublisher(EventPublisher):
    """Publisher that remembers events, and whether the room still existed."""

    def __init__(self, backend: RedisBackend):
        self.backend = backend
        self.events = []

    def publish(self, room_id: str, event: str, data: dict) -> None:
        self.events.append(
            {
                "room_id": room_id,
                "event": event,
                "data": data,
                "room_existed": self.backend.room_exists(room_id),
            }
        )


@pytest.fixture
def redis_server():
    return fakeredis.FakeServer()


@pytest.fixture
def redis_client(redis_server):
    return fakeredis.FakeRedis(server=redis_server, **REDIS_CLIENT_OPTIONS)


@pytest.fixture
def backend(redis_client):
    return RedisBackend(redis_client)


@pytest.fixture
def make_backend(redis_server):
    """Factory for extra backends on the same fake server (one per thread)."""

    def factory():
        return RedisBackend(fakeredis.FakeRedis(server=redis_server, **REDIS_CLIENT_OPTIONS))

    return factory


@pytest.fixture
def publisher(backend):
    return RecordingPublisher(backend)


@pytest.fixture
def make_client(backend, publisher):
    """Create TestClients against the app with the fake store wired in.

    Pass ``token`` to act as an admitted participant.

    Usage:
        def test_something(make_client):
            alice = make_client(token="...")
            response = alice.get("/rooms/abc/ttl")
    """
    from app import app
    from dependencies import get_publisher

    app.dependency_overrides[get_backend] = lambda: backend
    app.dependency_overrides[get_publisher] = lambda: publisher

    def factory(token=None):
        cookies = {AUTH_COOKIE_NAME: token} if token else None
        return TestClient(app, cookies=cookies)

    yield factory
    app.dependency_overrides.clear()
