"""Shared pytest fixtures."""

from collections.abc import AsyncIterator, Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from sendo.app import App
from sendo.config import Config
from sendo.core.core import Core
from sendo.core.modules.session.store import SessionStore
from sendo.web.server import create_fastapi_app


class FakeClock:
    """Manually advanced clock for deterministic expiry tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2026, 1, 1, 12, 0, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    """Create a fake clock starting at a fixed instant."""
    return FakeClock()


@pytest.fixture
def config(tmp_path):
    """Create a config with blobs under a temporary directory and a sweeper that never fires on its own."""
    return Config(
        blobs_path=str(tmp_path / "blobs"),
        session_ttl_seconds=300,
        max_file_mb=1,
        sender_gone_seconds=30,
        receiver_gone_seconds=30,
        heartbeat_interval_seconds=10,
        sweep_interval_seconds=3600,
        tombstone_retention_seconds=120,
        download_chunk_size=4,
        public_origin=None,
    )


@pytest.fixture
def store(clock):
    """Create an empty session store on the fake clock."""
    return SessionStore(clock)


@pytest.fixture
def app(config, clock):
    """Create an application facade with a fresh core."""
    return App(config, clock)


@pytest.fixture
def core(app) -> Core:
    return app.core


@pytest.fixture
def client(app, config) -> Iterator[TestClient]:
    """HTTP client running the full application lifespan."""
    with TestClient(create_fastapi_app(app, config), base_url="http://sendo.test") as test_client:
        yield test_client


@pytest.fixture
def make_chunks() -> Callable[..., AsyncIterator[bytes]]:
    """Build an async byte stream from raw bytes, split into small chunks."""

    async def _make(data: bytes, size: int = 3) -> AsyncIterator[bytes]:
        for start in range(0, len(data), size):
            yield data[start : start + size]

    return _make
