"""
Unit tests for the PM2 adapter.

Tests for:
- jlist parsing
- log stream line parsing
- Callback dispatch
- CLI invocation against a stand-in executable
"""

import json
import stat

import pytest

from watchtower.core import MalformedEventError, UpstreamUnavailableError
from watchtower.models import LifecycleEvent, LifecycleKind, LogEvent, ProcessStatus, StreamKind
from watchtower.supervisor import (
    Pm2Supervisor,
    SupervisorClient,
    parse_process,
    parse_process_list,
    parse_stream_line,
)

NOW = 1_760_000_000.0

JLIST_ENTRY = {
    "pm_id": 3,
    "name": "worker-1",
    "pm2_env": {
        "status": "online",
        "pm_cwd": "/srv/agents/worker-1",
        "pm_uptime": (NOW - 3600) * 1000,
    },
    "monit": {"memory": 52428800, "cpu": 2.5},
}


# =============================================================================
# Process List Parsing
# =============================================================================


class TestParseProcess:
    """Tests for parse_process."""

    def test_full_entry(self):
        record = parse_process(JLIST_ENTRY, now=NOW)

        assert record.id == 3
        assert record.name == "worker-1"
        assert record.cwd == "/srv/agents/worker-1"
        assert record.status == ProcessStatus.ONLINE
        assert record.memory_mb == 50
        assert record.cpu == 2.5
        assert record.uptime == pytest.approx(3600)

    def test_missing_name_rejected(self):
        with pytest.raises(MalformedEventError):
            parse_process({"pm_id": 1}, now=NOW)

    def test_malformed_entry_details_are_redacted(self):
        entry = {
            "pm_id": 5,
            "pm2_env": {
                "SLACK_WEBHOOK_URL": "https://hooks.slack.com/services/T/B/X",
                "DATABASE_URL": "postgres://app:hunter2hunter2@db:5432/app",
            },
        }

        with pytest.raises(MalformedEventError) as exc_info:
            parse_process(entry, now=NOW)

        rendered = str(exc_info.value)
        assert "hooks.slack.com" not in rendered
        assert "hunter2hunter2" not in rendered
        assert exc_info.value.details["entry"]["pm_id"] == 5

    def test_unknown_status(self):
        entry = {**JLIST_ENTRY, "pm2_env": {"status": "launching"}}
        assert parse_process(entry, now=NOW).status == ProcessStatus.UNKNOWN

    def test_stopped_process_has_zero_uptime(self):
        entry = {"pm_id": 4, "name": "cron", "pm2_env": {"status": "stopped"}}
        record = parse_process(entry, now=NOW)
        assert record.uptime == 0.0
        assert not record.is_online


class TestParseProcessList:
    """Tests for parse_process_list."""

    def test_skips_banner_and_bad_entries(self):
        raw = "[PM2] Spawning daemon\n" + json.dumps([JLIST_ENTRY, {"pm_id": 9}, "junk"])

        records = parse_process_list(raw, now=NOW)

        assert [r.id for r in records] == [3]

    def test_no_array(self):
        with pytest.raises(UpstreamUnavailableError):
            parse_process_list("[PM2] daemon not running")

    def test_invalid_json(self):
        with pytest.raises(UpstreamUnavailableError):
            parse_process_list("[{broken")


# =============================================================================
# Stream Parsing
# =============================================================================


class TestParseStreamLine:
    """Tests for parse_stream_line."""

    def test_stdout(self):
        line = json.dumps({
            "type": "out",
            "message": "job done\n",
            "process_id": 3,
            "app_name": "worker-1",
        })

        event = parse_stream_line(line)

        assert isinstance(event, LogEvent)
        assert event.process_id == 3
        assert event.data == "job done"
        assert event.stream == StreamKind.STDOUT
        assert event.process_name == "worker-1"

    def test_stderr_with_data_field(self):
        event = parse_stream_line(json.dumps({"type": "err", "data": "boom", "process_id": "3"}))

        assert event.stream == StreamKind.STDERR
        assert event.data == "boom"
        assert event.process_id == 3

    def test_process_event(self):
        event = parse_stream_line(json.dumps({
            "type": "process_event",
            "status": "exit",
            "process_id": 3,
            "app_name": "worker-1",
        }))

        assert isinstance(event, LifecycleEvent)
        assert event.kind == LifecycleKind.EXIT
        assert event.is_terminal

    @pytest.mark.parametrize("line", [
        "",
        "not json at all",
        "[1, 2]",
        json.dumps({"type": "heartbeat"}),
    ])
    def test_ignored_lines(self, line):
        assert parse_stream_line(line) is None


# =============================================================================
# Adapter
# =============================================================================


def write_fake_pm2(tmp_path, stdout: str, exit_code: int = 0):
    script = tmp_path / "pm2"
    script.write_text(
        "#!/bin/sh\n"
        f"cat <<'EOF'\n{stdout}\nEOF\n"
        f"exit {exit_code}\n",
        encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IEXEC)
    return str(script)


class TestPm2Supervisor:
    """Tests for Pm2Supervisor."""

    def test_satisfies_protocol(self):
        assert isinstance(Pm2Supervisor(), SupervisorClient)

    def test_dispatch_routes_by_type(self):
        supervisor = Pm2Supervisor()
        logs, lifecycle = [], []
        supervisor.on_log(logs.append)
        supervisor.on_lifecycle(lifecycle.append)

        supervisor.dispatch(LogEvent(process_id=1, data="x"))
        supervisor.dispatch(LifecycleEvent(kind=LifecycleKind.RESTART, process_id=1))

        assert len(logs) == 1
        assert len(lifecycle) == 1

    def test_dispatch_survives_callback_error(self):
        supervisor = Pm2Supervisor()
        received = []

        def broken(event):
            raise RuntimeError("handler bug")

        supervisor.on_log(broken)
        supervisor.on_log(received.append)
        supervisor.dispatch(LogEvent(process_id=1, data="x"))

        assert len(received) == 1

    @pytest.mark.asyncio
    async def test_list_processes_runs_jlist(self, tmp_path):
        pm2 = write_fake_pm2(tmp_path, json.dumps([JLIST_ENTRY]))

        records = await Pm2Supervisor(pm2_bin=pm2).list_processes()

        assert [r.name for r in records] == ["worker-1"]

    @pytest.mark.asyncio
    async def test_non_zero_exit(self, tmp_path):
        pm2 = write_fake_pm2(tmp_path, "[]", exit_code=1)

        with pytest.raises(UpstreamUnavailableError):
            await Pm2Supervisor(pm2_bin=pm2).list_processes()

    @pytest.mark.asyncio
    async def test_missing_binary(self, tmp_path):
        supervisor = Pm2Supervisor(pm2_bin=str(tmp_path / "no-such-pm2"))

        with pytest.raises(UpstreamUnavailableError):
            await supervisor.connect()

        assert not supervisor.is_connected


class TestPm2LogStream:
    """Tests for the pm2 logs reader."""

    @staticmethod
    def stream_output(message_size: int) -> str:
        lines = [
            {"type": "out", "message": "x" * message_size, "process_id": 3},
            {"type": "err", "message": "Error: after", "process_id": 3},
            {"type": "out", "message": "still running", "process_id": 3},
        ]
        return "\n".join(json.dumps(line) for line in lines)

    @staticmethod
    def collect(supervisor: Pm2Supervisor) -> list:
        events = []
        supervisor.on_log(events.append)
        return events

    @pytest.mark.asyncio
    async def test_lines_above_asyncio_default_limit_are_read(self, tmp_path):
        pm2 = write_fake_pm2(tmp_path, self.stream_output(70_000))
        supervisor = Pm2Supervisor(pm2_bin=pm2)
        events = self.collect(supervisor)

        await supervisor._consume_stream()

        assert [len(e.data) for e in events] == [70_000, len("Error: after"), len("still running")]

    @pytest.mark.asyncio
    async def test_oversized_line_is_skipped_without_losing_later_lines(self, tmp_path):
        pm2 = write_fake_pm2(tmp_path, self.stream_output(20_000))
        supervisor = Pm2Supervisor(pm2_bin=pm2, stream_limit=4096)
        events = self.collect(supervisor)

        await supervisor._consume_stream()

        assert [e.data for e in events] == ["Error: after", "still running"]
        assert events[0].stream == StreamKind.STDERR
