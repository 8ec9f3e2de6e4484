"""
PM2 Supervisor Adapter.

Talks to PM2 through its CLI:

    pm2 jlist                     process list as JSON
    pm2 logs --json --lines 0     newline-delimited JSON event stream

The log stream runs as a long-lived subprocess. If it exits while the
adapter is connected it is restarted after a short delay.
"""

import asyncio
import json
import time
from typing import Any, List, Optional, Union

from watchtower.core import (
    MalformedEventError,
    TimeoutError,
    UpstreamUnavailableError,
    get_logger,
    with_timeout,
)
from watchtower.models import (
    LifecycleEvent,
    LifecycleKind,
    LogEvent,
    ProcessRecord,
    ProcessStatus,
    StreamKind,
)
from watchtower.notification.redactor import redact_object

from .base import LifecycleCallback, LogCallback

logger = get_logger(__name__)

SupervisorEvent = Union[LogEvent, LifecycleEvent]

# Longest `pm2 logs` line kept; longer lines are skipped
DEFAULT_STREAM_LIMIT = 1024 * 1024

STREAM_TYPES = {
    "out": StreamKind.STDOUT,
    "err": StreamKind.STDERR,
}


# =============================================================================
# Parsing
# =============================================================================


def parse_process(entry: dict[str, Any], now: Optional[float] = None) -> ProcessRecord:
    """
    Convert one `pm2 jlist` entry.

    Raises:
        MalformedEventError: If pm_id or name is missing
    """
    if entry.get("pm_id") is None or not entry.get("name"):
        raise MalformedEventError(
            "Process entry without pm_id/name",
            details={"entry": redact_object(entry)},
        )

    env = entry.get("pm2_env") or {}
    monit = entry.get("monit") or {}
    now = time.time() if now is None else now

    started_ms = env.get("pm_uptime")
    uptime = max(0.0, now - started_ms / 1000.0) if started_ms else 0.0

    return ProcessRecord(
        id=int(entry["pm_id"]),
        name=str(entry["name"]),
        cwd=env.get("pm_cwd") or entry.get("pm_cwd") or "",
        status=ProcessStatus.parse(env.get("status")),
        memory=int(monit.get("memory") or 0),
        cpu=float(monit.get("cpu") or 0.0),
        uptime=uptime,
    )


def parse_process_list(raw: str, now: Optional[float] = None) -> List[ProcessRecord]:
    """
    Parse `pm2 jlist` output.

    PM2 sometimes prints banner lines such as "[PM2] Spawning daemon"
    before the JSON array; the first line that decodes as a JSON array is
    used. Malformed entries are skipped.

    Raises:
        UpstreamUnavailableError: If no JSON array can be decoded
    """
    entries = None
    last_error: Optional[json.JSONDecodeError] = None

    for line in raw.splitlines():
        candidate = line.strip()
        if not candidate.startswith("["):
            continue
        try:
            decoded = json.loads(candidate)
        except json.JSONDecodeError as e:
            last_error = e
            continue
        if isinstance(decoded, list):
            entries = decoded
            break

    if entries is None:
        if last_error is not None:
            raise UpstreamUnavailableError(f"pm2 jlist returned invalid JSON: {last_error}")
        raise UpstreamUnavailableError("pm2 jlist returned no process list")

    records = []
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        try:
            records.append(parse_process(entry, now))
        except (MalformedEventError, TypeError, ValueError) as e:
            logger.debug(f"Skipping process entry: {e}")

    return records


def _optional_int(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_stream_line(line: str) -> Optional[SupervisorEvent]:
    """
    Parse one line of `pm2 logs --json`.

    Returns:
        LogEvent, LifecycleEvent, or None for lines that are not events
    """
    line = line.strip()
    if not line:
        return None

    try:
        payload = json.loads(line)
    except json.JSONDecodeError:
        logger.debug(f"Skipping non-JSON pm2 output: {line[:120]}")
        return None

    if not isinstance(payload, dict):
        return None

    event_type = payload.get("type")
    process_id = _optional_int(payload.get("process_id"))
    process_name = payload.get("app_name")

    if event_type in STREAM_TYPES:
        message = payload.get("message")
        if message is None:
            message = payload.get("data", "")
        return LogEvent(
            process_id=process_id,
            data=str(message).rstrip("\n"),
            stream=STREAM_TYPES[event_type],
            process_name=process_name,
        )

    if event_type == "process_event":
        return LifecycleEvent(
            kind=LifecycleKind.parse(payload.get("status") or payload.get("event")),
            process_id=process_id,
            process_name=process_name,
        )

    logger.debug(f"Ignoring pm2 event type {event_type!r}")
    return None


# =============================================================================
# Adapter
# =============================================================================


class Pm2Supervisor:
    """
    PM2 CLI adapter.

    Example:
        >>> supervisor = Pm2Supervisor()
        >>> supervisor.on_log(pipeline.handle_log)
        >>> await supervisor.connect()
        >>> processes = await supervisor.list_processes()
        >>> await supervisor.disconnect()
    """

    def __init__(
        self,
        pm2_bin: str = "pm2",
        command_timeout: float = 10.0,
        restart_delay: float = 5.0,
        stream_limit: int = DEFAULT_STREAM_LIMIT,
    ):
        """
        Initialize Pm2Supervisor.

        Args:
            pm2_bin: pm2 executable
            command_timeout: Timeout for one-shot pm2 commands
            restart_delay: Delay before restarting a dead log stream
            stream_limit: Longest log stream line in bytes
        """
        self._pm2_bin = pm2_bin
        self._command_timeout = command_timeout
        self._restart_delay = restart_delay
        self._stream_limit = stream_limit

        self._log_callbacks: List[LogCallback] = []
        self._lifecycle_callbacks: List[LifecycleCallback] = []

        self._connected = False
        self._reader_task: Optional[asyncio.Task] = None
        self._stream: Optional[asyncio.subprocess.Process] = None

    @property
    def is_connected(self) -> bool:
        return self._connected

    def on_log(self, callback: LogCallback) -> None:
        self._log_callbacks.append(callback)

    def on_lifecycle(self, callback: LifecycleCallback) -> None:
        self._lifecycle_callbacks.append(callback)

    # =========================================================================
    # Lifecycle Methods
    # =========================================================================

    async def connect(self) -> None:
        """
        Verify PM2 is reachable and start the event stream.

        Raises:
            UpstreamUnavailableError: If pm2 cannot be run
        """
        if self._connected:
            logger.warning("Already connected to PM2")
            return

        await self.list_processes()

        self._connected = True
        self._reader_task = asyncio.create_task(self._read_loop(), name="pm2-log-stream")
        logger.info("Connected to PM2")

    async def disconnect(self) -> None:
        """Stop the event stream."""
        if not self._connected:
            return

        self._connected = False

        await self._terminate_stream()

        if self._reader_task:
            self._reader_task.cancel()
            try:
                await self._reader_task
            except asyncio.CancelledError:
                pass
            self._reader_task = None

        logger.info("Disconnected from PM2")

    # =========================================================================
    # Queries
    # =========================================================================

    async def list_processes(self) -> List[ProcessRecord]:
        """
        Current process list.

        Raises:
            UpstreamUnavailableError: If pm2 fails or times out
        """
        stdout = await self._run("jlist")
        return parse_process_list(stdout)

    async def _run(self, *args: str) -> str:
        """Run a one-shot pm2 command and return stdout."""
        try:
            process = await asyncio.create_subprocess_exec(
                self._pm2_bin,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise UpstreamUnavailableError(f"Failed to run {self._pm2_bin}: {e}") from e

        try:
            stdout, stderr = await with_timeout(
                process.communicate(),
                timeout=self._command_timeout,
                operation_name=f"pm2 {' '.join(args)}",
            )
        except TimeoutError as e:
            process.kill()
            await process.wait()
            raise UpstreamUnavailableError(e.message) from e

        if process.returncode != 0:
            raise UpstreamUnavailableError(
                f"pm2 {' '.join(args)} exited with {process.returncode}",
                details={"stderr": stderr.decode("utf-8", "replace")[:500]},
            )

        return stdout.decode("utf-8", "replace")

    # =========================================================================
    # Event Stream
    # =========================================================================

    def dispatch(self, event: SupervisorEvent) -> None:
        """Deliver an event to the registered callbacks."""
        callbacks: List[Any]
        if isinstance(event, LogEvent):
            callbacks = self._log_callbacks
        else:
            callbacks = self._lifecycle_callbacks

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Event callback failed: {e}")

    async def _read_loop(self) -> None:
        """Keep a `pm2 logs` subprocess running while connected."""
        while self._connected:
            try:
                await self._consume_stream()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"PM2 log stream error: {e}")

            if not self._connected:
                break

            logger.warning(f"PM2 log stream ended, restarting in {self._restart_delay}s")
            try:
                await asyncio.sleep(self._restart_delay)
            except asyncio.CancelledError:
                break

    async def _consume_stream(self) -> None:
        self._stream = await asyncio.create_subprocess_exec(
            self._pm2_bin,
            "logs",
            "--json",
            "--lines",
            "0",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.DEVNULL,
            limit=self._stream_limit,
        )
        logger.debug("PM2 log stream started")

        assert self._stream.stdout is not None
        try:
            async for raw in self._iter_lines(self._stream.stdout):
                event = parse_stream_line(raw.decode("utf-8", "replace"))
                if event is not None:
                    self.dispatch(event)
        finally:
            await self._terminate_stream()

    async def _iter_lines(self, reader: asyncio.StreamReader):
        """
        Yield complete lines, dropping any longer than the stream limit.

        An oversized line is consumed and discarded so the stream keeps
        running; the lines after it are delivered as usual.
        """
        skipping = False
        while True:
            try:
                line = await reader.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                if e.partial and not skipping:
                    yield e.partial
                return
            except asyncio.LimitOverrunError as e:
                if not skipping:
                    logger.warning(
                        f"Skipping pm2 log line longer than {self._stream_limit} bytes"
                    )
                    skipping = True
                await reader.readexactly(e.consumed)
                continue

            if skipping:
                skipping = False
                continue
            yield line

    async def _terminate_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None or stream.returncode is not None:
            return

        try:
            stream.terminate()
        except ProcessLookupError:
            return

        try:
            await asyncio.wait_for(stream.wait(), timeout=5.0)
        except asyncio.TimeoutError:
            stream.kill()
            await stream.wait()
