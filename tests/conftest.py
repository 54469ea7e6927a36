"""Shared fixtures for the reaction service tests."""

import asyncio
from typing import List, Tuple
from unittest.mock import AsyncMock, MagicMock

import pytest
from chatreact.core.config import Settings, get_settings
from chatreact.reactions.engine import ReactionEngine
from chatreact.reactions.store import InMemoryReactionStore


class ManualClock:
    """Millisecond clock with a matching ``sleep`` that only advances on demand.

    ``sleep`` parks the caller until ``advance`` moves the clock past its
    deadline, so flow stage timing can be asserted exactly.
    """

    def __init__(self, start_ms: float = 1_000_000.0):
        self.now_ms = start_ms
        self._sleepers: List[Tuple[float, asyncio.Future]] = []

    def __call__(self) -> float:
        return self.now_ms

    async def sleep(self, seconds: float) -> None:
        future = asyncio.get_running_loop().create_future()
        self._sleepers.append((self.now_ms + seconds * 1000.0, future))
        await future

    def tick(self, ms: float) -> None:
        """Advance without waking sleepers (for purely synchronous code)."""
        self.now_ms += ms

    async def advance(self, ms: float) -> None:
        target = self.now_ms + ms
        await self._drain()
        while True:
            due = [deadline for deadline, _ in self._sleepers if deadline <= target]
            if not due:
                break
            self.now_ms = max(self.now_ms, min(due))
            for entry in list(self._sleepers):
                deadline, future = entry
                if deadline <= self.now_ms:
                    self._sleepers.remove(entry)
                    if not future.done():
                        future.set_result(None)
            await self._drain()
        self.now_ms = target
        await self._drain()

    @staticmethod
    async def _drain() -> None:
        for _ in range(50):
            await asyncio.sleep(0)


@pytest.fixture()
def clock():
    return ManualClock()


@pytest.fixture()
def transport():
    """Transport mock that accepts every reaction."""
    mock = AsyncMock()
    mock.send = AsyncMock(return_value=True)
    return mock


@pytest.fixture()
def metrics():
    sink = MagicMock()
    sink.increment = MagicMock()
    return sink


@pytest.fixture()
def store():
    return InMemoryReactionStore()


@pytest.fixture()
def engine(transport, store, metrics, clock):
    """Engine wired with mocks and the manual clock."""
    return ReactionEngine(
        transport=transport,
        store=store,
        metrics=metrics,
        clock=clock,
        sleep=clock.sleep,
    )


@pytest.fixture()
def test_settings(tmp_path):
    """Settings isolated from the environment and any .env file."""
    return Settings(
        _env_file=None,
        DATA_DIR=str(tmp_path),
        REACTIONS_DRY_RUN=True,
        ADMIN_API_KEY="",
    )


@pytest.fixture(autouse=True)
def clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def pytest_configure(config):
    """Configure pytest with custom markers.

    Args:
        config: Pytest configuration object
    """
    config.addinivalue_line("markers", "integration: mark test as an integration test")
    config.addinivalue_line("markers", "unit: mark test as a unit test")
