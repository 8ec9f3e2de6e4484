"""
Pytest configuration and fixtures for watchtower tests.
"""

import os
import tempfile

# Keep test runs from writing logs/ into the working tree
os.environ.setdefault("WATCHTOWER_LOG_DIR", tempfile.mkdtemp(prefix="watchtower-logs-"))

import time  # noqa: E402
from datetime import datetime, timezone  # noqa: E402

import pytest  # noqa: E402

from watchtower.models import ErrorContext, ProcessRecord, ProcessStatus  # noqa: E402
from tests.mocks import MockSender, MockSupervisor  # noqa: E402


# =============================================================================
# Clock
# =============================================================================


class FakeClock:
    """Controllable replacement for time.time()."""

    def __init__(self, start: float = 1_760_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock(monkeypatch) -> FakeClock:
    """
    Patch time.time with a manually advanced clock.

    asyncio scheduling uses the monotonic clock and is unaffected.
    """
    fake = FakeClock()
    monkeypatch.setattr(time, "time", fake)
    return fake


# =============================================================================
# Domain Fixtures
# =============================================================================


@pytest.fixture
def sample_processes() -> list[ProcessRecord]:
    return [
        ProcessRecord(
            id=1,
            name="worker-1",
            cwd="/srv/agents/worker-1",
            status=ProcessStatus.ONLINE,
            memory=128 * 1024 * 1024,
            cpu=1.5,
            uptime=3720,
        ),
        ProcessRecord(
            id=2,
            name="scheduler",
            cwd="/srv/agents/scheduler",
            status=ProcessStatus.STOPPED,
            memory=0,
            cpu=0.0,
            uptime=0,
        ),
    ]


@pytest.fixture
def supervisor(sample_processes) -> MockSupervisor:
    return MockSupervisor(sample_processes)


@pytest.fixture
def sender() -> MockSender:
    return MockSender()


@pytest.fixture
def error_context() -> ErrorContext:
    """Context for a typical Node.js TypeError."""
    return ErrorContext(
        process_id=1,
        process_name="worker-1",
        error_message="TypeError: Cannot read properties of undefined (reading 'id')",
        stack_trace=(
            "TypeError: Cannot read properties of undefined (reading 'id')\n"
            "    at handleJob (/srv/agents/worker-1/dist/jobs.js:42:17)"
        ),
        log_context=(
            "Starting job 17",
            "TypeError: Cannot read properties of undefined (reading 'id')",
            "    at handleJob (/srv/agents/worker-1/dist/jobs.js:42:17)",
        ),
        repo="acme/worker-1",
        branch="main",
        timestamp=datetime(2025, 10, 19, 10, 30, tzinfo=timezone.utc),
    )
