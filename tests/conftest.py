"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from config import Settings  # noqa: E402
from src.leitner.engine import LeitnerEngine  # noqa: E402
from src.leitner.models import CatalogItem  # noqa: E402
from src.leitner.storage import MemoryStorage  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (engine over real storage)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


class FixedClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


def make_item(
    item_id: str,
    topic: str = "networking",
    option_count: int = 4,
    rich: bool = False,
    priority: bool = False,
) -> CatalogItem:
    """Build a catalog item with sensible defaults."""
    return CatalogItem(
        id=item_id,
        topic=topic,
        option_count=option_count,
        has_rich_content=rich,
        origin_priority=priority,
    )


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """A fixed mid-morning clock."""
    return FixedClock(datetime(2026, 3, 10, 9, 30))


@pytest.fixture
def storage():
    """Empty in-memory storage."""
    return MemoryStorage()


@pytest.fixture
def settings():
    """Default settings, isolated from any .env file."""
    return Settings(_env_file=None)


@pytest.fixture
def catalog():
    """30 eligible items across three topics, every third one origin-priority."""
    topics = ["networking", "security", "storage"]
    return [
        make_item(f"q{i:02d}", topic=topics[i % 3], priority=(i % 3 == 0))
        for i in range(30)
    ]


@pytest.fixture
def engine(storage, settings, clock):
    """Engine over in-memory storage with a fixed clock and seeded RNG."""
    return LeitnerEngine(storage, settings, clock=clock, rng=random.Random(7))


@pytest.fixture
def item_factory():
    """Factory for catalog items (see make_item)."""
    return make_item
