"""Shared fixtures for playtrack tests."""

import os
from collections.abc import Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient


os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("STORE_BACKEND", "memory")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("LOG_LEVEL", "WARNING")

from playtrack.catalog.models import Audience, ContentItem  # noqa: E402
from playtrack.progress.policy import MergePolicy  # noqa: E402
from playtrack.progress.store import InMemoryProgressStore  # noqa: E402


USER_ID = "user-1"


class FakePlayer:
    """Scriptable stand-in for an embedded media player."""

    def __init__(self, duration: float = 200.0, position: float = 0.0) -> None:
        self.duration = duration
        self.position = position
        self.fail = False
        self.resumed = 0

    def get_current_position(self) -> float:
        if self.fail:
            raise RuntimeError("player detached")
        return self.position

    def get_total_duration(self) -> float:
        if self.fail:
            raise RuntimeError("player detached")
        return self.duration

    def resume(self) -> None:
        self.resumed += 1

    def seek_percent(self, percentage: float) -> None:
        self.position = self.duration * percentage / 100


class FixedClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 5, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def user_id() -> str:
    """Test user ID."""
    return USER_ID


@pytest.fixture
def player() -> FakePlayer:
    """A ready player for a 200 second video."""
    return FakePlayer()


@pytest.fixture
def make_player() -> type[FakePlayer]:
    """Factory for additional players."""
    return FakePlayer


@pytest.fixture
def clock() -> FixedClock:
    """Deterministic policy clock."""
    return FixedClock()


@pytest.fixture
def store() -> InMemoryProgressStore:
    """Empty in-memory progress store."""
    return InMemoryProgressStore()


@pytest.fixture
def policy(store: InMemoryProgressStore, clock: FixedClock) -> MergePolicy:
    """Merge policy over the in-memory store."""
    return MergePolicy(store, clock=clock)


@pytest.fixture
def items() -> list[ContentItem]:
    """A small training catalog."""
    return [
        ContentItem(
            id="c1",
            title="Induccion general",
            description="Bienvenida al programa",
            duration_label="15:30",
            source_ref="https://www.youtube.com/watch?v=dQw4w9WgXcQ&t=10",
            audience=Audience.BECARIO,
        ),
        ContentItem(
            id="c2",
            title="Seguridad digital",
            description="Buenas practicas de contrasenas",
            duration_label="00:30",
            source_ref="https://youtu.be/abcdefghijk?si=xyz",
            audience=Audience.BOTH,
        ),
        ContentItem(
            id="c3",
            title="Guia del facilitador",
            description="Como acompanar a los becarios",
            duration_label="01:05:00",
            source_ref="https://www.youtube.com/embed/ABCDEFGHIJK?rel=0",
            audience=Audience.FACILITADOR,
        ),
    ]


@pytest.fixture
def client() -> Iterator[TestClient]:
    """Test client running the app lifespan with the in-memory backend."""
    from playtrack.config import get_settings

    get_settings.cache_clear()
    from playtrack.main import create_app

    with TestClient(create_app()) as test_client:
        yield test_client
