"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import pytest_asyncio
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.bridge.events import EventBus  # noqa: E402
from src.bridge.message_bus import MessageBus  # noqa: E402
from src.bridge.transport import LoopbackTransport  # noqa: E402
from src.services.results import ServiceResult  # noqa: E402
from src.training.session import TrainingSession  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class MemoryStore:
    """In-memory persistence collaborator recording every call."""

    def __init__(self, state=None, fail_saves: bool = False):
        self.saved = []
        self.state = state
        self.fail_saves = fail_saves
        self.calls = []

    async def save_state(self, snapshot):
        self.calls.append(("save_state", snapshot))
        if self.fail_saves:
            return ServiceResult.fail("store unavailable")
        self.saved.append(snapshot)
        return ServiceResult.ok({"success": True})

    async def get_state(self):
        self.calls.append(("get_state", None))
        if self.state is None:
            return ServiceResult.fail("No saved state")
        return ServiceResult.ok(self.state)

    async def submit_results(self, records, total_questions):
        self.calls.append(("submit_results", (list(records), total_questions)))
        return ServiceResult.ok({"id": "resp-1"})

    async def complete_training(self, report):
        self.calls.append(("complete_training", report))
        return ServiceResult.ok({"success": True})

    async def update_progress(self, phase, progress, time_spent_ms=0):
        self.calls.append(("update_progress", (phase, progress)))
        return ServiceResult.ok({"success": True})

    async def record_time_spent(self, time_ms):
        self.calls.append(("record_time_spent", time_ms))
        return ServiceResult.ok({"success": True})

    async def update_status(self, status):
        self.calls.append(("update_status", status))
        return ServiceResult.ok({"success": True})

    def called(self, name: str) -> list:
        return [args for call, args in self.calls if call == name]


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def clock():
    """Controllable clock for time-dependent components."""
    return FakeClock()


@pytest.fixture
def transport():
    """Loopback transport that records outbound lines."""
    return LoopbackTransport()


@pytest.fixture
def bus(transport):
    """Message bus bound to the loopback transport."""
    return MessageBus(transport, transport.stream)


@pytest.fixture
def events():
    """Fresh event bus."""
    return EventBus()


@pytest.fixture
def memory_store():
    """In-memory session store."""
    return MemoryStore()


@pytest_asyncio.fixture
async def training_session(bus, events, memory_store):
    """Loaded and bound training session over the loopback transport."""
    session = TrainingSession(bus, events, results_sink=memory_store)
    await session.load()
    session.bind_all()
    yield session
    session.unbind_all()
