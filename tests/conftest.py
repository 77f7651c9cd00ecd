"""Shared test fixtures for the sync service tests."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

import pytest
from fastapi.testclient import TestClient

from main import create_app
from services.sync.broadcaster import SyncBroadcaster
from services.sync.session_registry import SessionRegistry
from utils.settings import SyncSettings


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1_700_000_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


class RecordingHandle:
    """Push handle that keeps every pushed event in memory."""

    def __init__(self) -> None:
        self.events: List[Tuple[str, Dict[str, Any]]] = []
        self.closed = False

    def push(self, event: str, data: Dict[str, Any]) -> bool:
        if self.closed:
            return False
        self.events.append((event, data))
        return True


@pytest.fixture
def settings() -> SyncSettings:
    return SyncSettings(sign_key="test-secret", allowed_origins=["*"])


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def registry(clock: FakeClock) -> SessionRegistry:
    """Fresh registry per test."""
    return SessionRegistry(clock=clock)


@pytest.fixture
def broadcaster(clock: FakeClock) -> SyncBroadcaster:
    return SyncBroadcaster(clock=clock)


@pytest.fixture
def app(settings: SyncSettings):
    return create_app(settings)


@pytest.fixture
def client(app, clock: FakeClock):
    """TestClient with the lifespan started and a controllable broadcaster clock."""
    with TestClient(app) as test_client:
        app.state.session_registry = SessionRegistry(clock=clock)
        app.state.broadcaster = SyncBroadcaster(clock=clock)
        yield test_client
