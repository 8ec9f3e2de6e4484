"""
Unit tests for the HTTP surface.

Tests for:
- Slack request signatures
- /slack/status, /health and /metrics handlers
- Per-client rate limiting
"""

import time
from urllib.parse import urlencode

import pytest
import pytest_asyncio
from aiohttp import test_utils

from watchtower.api import WatchtowerServer, compute_slack_signature, verify_slack_signature
from watchtower.config import AppConfig, RateLimitConfig, ServerConfig
from watchtower.core import UpstreamUnavailableError
from watchtower.monitoring import MetricsCollector
from watchtower.monitoring.metrics import DISABLED_EXPORT
from watchtower.pipeline import AlertPipeline
from tests.mocks import MockSupervisor

SIGNING_SECRET = "8f742231b10e8888abcd99yyyzzz85a5"


def make_server(supervisor, sender, metrics=None, **server_kwargs) -> WatchtowerServer:
    pipeline = AlertPipeline.from_config(AppConfig(), supervisor, sender, metrics)
    return WatchtowerServer(
        pipeline,
        metrics,
        server_config=ServerConfig(**server_kwargs),
        rate_limit_config=RateLimitConfig(slash_command_rpm=10, health_rpm=3),
    )


@pytest_asyncio.fixture
async def make_client():
    clients = []

    async def factory(server: WatchtowerServer) -> test_utils.TestClient:
        client = test_utils.TestClient(test_utils.TestServer(server.app))
        await client.start_server()
        clients.append(client)
        return client

    yield factory

    for client in clients:
        await client.close()


# =============================================================================
# Signature Tests
# =============================================================================


class TestSlackSignature:
    """Tests for Slack request signing."""

    def test_signature_format(self):
        body = b"token=xyz&command=%2Fstatus"
        signature = compute_slack_signature(SIGNING_SECRET, "1531420618", body)

        assert signature.startswith("v0=")
        assert len(signature) == 3 + 64

    def test_valid_signature(self):
        body = b"command=%2Fstatus"
        signature = compute_slack_signature(SIGNING_SECRET, "1000", body)

        assert verify_slack_signature(SIGNING_SECRET, "1000", body, signature, now=1100)

    def test_tampered_body(self):
        signature = compute_slack_signature(SIGNING_SECRET, "1000", b"command=%2Fstatus")

        assert not verify_slack_signature(
            SIGNING_SECRET, "1000", b"command=%2Fdeploy", signature, now=1000
        )

    def test_stale_timestamp(self):
        body = b"command=%2Fstatus"
        signature = compute_slack_signature(SIGNING_SECRET, "1000", body)

        assert not verify_slack_signature(SIGNING_SECRET, "1000", body, signature, now=1000 + 301)

    def test_missing_headers(self):
        assert not verify_slack_signature(SIGNING_SECRET, None, b"", None)
        assert not verify_slack_signature(SIGNING_SECRET, "abc", b"", "v0=00")


# =============================================================================
# Handler Tests
# =============================================================================


class TestStatusEndpoint:
    """Tests for POST /slack/status."""

    @pytest.mark.asyncio
    async def test_status_report(self, supervisor, sender, make_client):
        client = await make_client(make_server(supervisor, sender))

        response = await client.post("/slack/status", data="command=%2Fstatus")

        assert response.status == 200
        payload = await response.json()
        assert payload["response_type"] == "in_channel"
        assert payload["blocks"][0]["text"]["text"] == "🤖 Agent Status Report"

    @pytest.mark.asyncio
    async def test_upstream_failure_is_500(self, sender, make_client):
        supervisor = MockSupervisor()
        supervisor.fail_with = UpstreamUnavailableError("pm2 down")
        client = await make_client(make_server(supervisor, sender))

        response = await client.post("/slack/status")

        assert response.status == 500

    @pytest.mark.asyncio
    async def test_signed_request_accepted(self, supervisor, sender, make_client):
        client = await make_client(
            make_server(supervisor, sender, slack_signing_secret=SIGNING_SECRET)
        )
        body = urlencode({"command": "/status"}).encode()
        timestamp = str(int(time.time()))

        response = await client.post(
            "/slack/status",
            data=body,
            headers={
                "X-Slack-Request-Timestamp": timestamp,
                "X-Slack-Signature": compute_slack_signature(SIGNING_SECRET, timestamp, body),
                "Content-Type": "application/x-www-form-urlencoded",
            },
        )

        assert response.status == 200

    @pytest.mark.asyncio
    async def test_unsigned_request_rejected(self, supervisor, sender, make_client):
        client = await make_client(
            make_server(supervisor, sender, slack_signing_secret=SIGNING_SECRET)
        )

        response = await client.post("/slack/status", data="command=%2Fstatus")

        assert response.status == 401
        assert supervisor.list_calls == 0

    @pytest.mark.asyncio
    async def test_rate_limited(self, supervisor, sender, make_client):
        client = await make_client(make_server(supervisor, sender))
        headers = {"X-Forwarded-For": "203.0.113.9"}

        for _ in range(10):
            response = await client.post("/slack/status", headers=headers)
            assert response.status == 200

        response = await client.post("/slack/status", headers=headers)

        assert response.status == 429
        assert int(response.headers["Retry-After"]) > 0
        body = await response.json()
        assert body["error"] == "Too Many Requests"

        other = await client.post("/slack/status", headers={"X-Forwarded-For": "203.0.113.10"})
        assert other.status == 200


class TestHealthEndpoint:
    """Tests for GET /health."""

    @pytest.mark.asyncio
    async def test_ok(self, supervisor, sender, make_client):
        client = await make_client(make_server(supervisor, sender))

        response = await client.get("/health")

        assert response.status == 200
        assert await response.json() == {
            "status": "OK",
            "processCount": 2,
            "retryQueueSize": 0,
            "deadLetterQueueSize": 0,
        }

    @pytest.mark.asyncio
    async def test_error(self, sender, make_client):
        supervisor = MockSupervisor()
        supervisor.fail_with = UpstreamUnavailableError("pm2 down")
        client = await make_client(make_server(supervisor, sender))

        response = await client.get("/health")

        assert response.status == 503
        assert await response.json() == {"status": "ERROR", "error": "pm2 down"}

    @pytest.mark.asyncio
    async def test_rate_limited(self, supervisor, sender, make_client):
        client = await make_client(make_server(supervisor, sender))

        statuses = [(await client.get("/health")).status for _ in range(4)]

        assert statuses == [200, 200, 200, 429]


class TestMetricsEndpoint:
    """Tests for GET /metrics."""

    @pytest.mark.asyncio
    async def test_export(self, supervisor, sender, make_client):
        metrics = MetricsCollector()
        metrics.increment_counter("watchtower_alerts_sent_total")
        client = await make_client(make_server(supervisor, sender, metrics))

        response = await client.get("/metrics")
        text = await response.text()

        assert response.status == 200
        assert response.headers["Content-Type"].startswith("text/plain")
        assert "watchtower_alerts_sent_total 1" in text
        assert "watchtower_retry_queue_size 0" in text

    @pytest.mark.asyncio
    async def test_disabled(self, supervisor, sender, make_client):
        client = await make_client(make_server(supervisor, sender, MetricsCollector(enabled=False)))

        response = await client.get("/metrics")

        assert await response.text() == DISABLED_EXPORT

    @pytest.mark.asyncio
    async def test_without_collector(self, supervisor, sender, make_client):
        client = await make_client(make_server(supervisor, sender))

        response = await client.get("/metrics")

        assert await response.text() == DISABLED_EXPORT
