"""
Process Supervisor Interface.

The pipeline only talks to the supervisor through this protocol; the PM2
adapter is one implementation, the test doubles are another.
"""

from typing import Callable, Protocol, Sequence, runtime_checkable

from watchtower.models import LifecycleEvent, LogEvent, ProcessRecord

LogCallback = Callable[[LogEvent], None]
LifecycleCallback = Callable[[LifecycleEvent], None]


@runtime_checkable
class SupervisorClient(Protocol):
    """
    Connection to a process supervisor.

    connect() and list_processes() raise UpstreamUnavailableError when the
    supervisor cannot be reached.
    """

    @property
    def is_connected(self) -> bool:
        ...

    async def connect(self) -> None:
        ...

    async def disconnect(self) -> None:
        ...

    def on_log(self, callback: LogCallback) -> None:
        ...

    def on_lifecycle(self, callback: LifecycleCallback) -> None:
        ...

    async def list_processes(self) -> Sequence[ProcessRecord]:
        ...
