"""Mock process supervisor for testing."""

import asyncio
from typing import Optional

from watchtower.core import UpstreamUnavailableError
from watchtower.models import LifecycleEvent, LogEvent, ProcessRecord


class MockSupervisor:
    """
    In-memory supervisor.

    Counts list calls and can be told to fail or to block until released,
    which makes cache stampedes observable.

    Example:
        >>> supervisor = MockSupervisor([ProcessRecord(id=1, name="worker-1")])
        >>> supervisor.on_log(pipeline.handle_log)
        >>> supervisor.emit_log(LogEvent(process_id=1, data="Error: boom"))
    """

    def __init__(self, processes: Optional[list[ProcessRecord]] = None):
        self.processes: list[ProcessRecord] = list(processes or [])
        self.list_calls = 0
        self.fail_with: Optional[Exception] = None
        self.gate: Optional[asyncio.Event] = None

        self.connect_calls = 0
        self.disconnect_calls = 0
        self._connected = False

        self.log_callbacks: list = []
        self.lifecycle_callbacks: list = []

    @property
    def is_connected(self) -> bool:
        return self._connected

    async def connect(self) -> None:
        self.connect_calls += 1
        if self.fail_with is not None:
            raise UpstreamUnavailableError("pm2 not reachable")
        self._connected = True

    async def disconnect(self) -> None:
        self.disconnect_calls += 1
        self._connected = False

    def on_log(self, callback) -> None:
        self.log_callbacks.append(callback)

    def on_lifecycle(self, callback) -> None:
        self.lifecycle_callbacks.append(callback)

    async def list_processes(self) -> list[ProcessRecord]:
        self.list_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.fail_with is not None:
            raise self.fail_with
        return list(self.processes)

    def emit_log(self, event: LogEvent) -> None:
        for callback in self.log_callbacks:
            callback(event)

    def emit_lifecycle(self, event: LifecycleEvent) -> None:
        for callback in self.lifecycle_callbacks:
            callback(event)
