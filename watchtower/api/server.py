"""
HTTP Surface.

Small aiohttp.web application exposing:

    POST /slack/status   Slack slash command, process status report
    GET  /health         directory fetch probe
    GET  /metrics        Prometheus text export
"""

import hashlib
import hmac
import time
from typing import Optional

from aiohttp import web

from watchtower.config import RateLimitConfig, ServerConfig
from watchtower.core import UpstreamUnavailableError, get_logger
from watchtower.monitoring import MetricsCollector
from watchtower.monitoring.metrics import DISABLED_EXPORT
from watchtower.notification import AlertTemplates
from watchtower.pipeline import AlertPipeline

from .rate_limiter import RateLimiter

logger = get_logger(__name__)

PROMETHEUS_CONTENT_TYPE = "text/plain; version=0.0.4; charset=utf-8"
SIGNATURE_VERSION = "v0"


def compute_slack_signature(secret: str, timestamp: str, body: bytes) -> str:
    """v0=<hex HMAC-SHA256 of "v0:{timestamp}:{body}">"""
    base = f"{SIGNATURE_VERSION}:{timestamp}:".encode("utf-8") + body
    digest = hmac.new(secret.encode("utf-8"), base, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    secret: str,
    timestamp: Optional[str],
    body: bytes,
    signature: Optional[str],
    tolerance: int = 300,
    now: Optional[float] = None,
) -> bool:
    """
    Check a Slack request signature.

    Requests older (or newer) than `tolerance` seconds are rejected to
    block replays.
    """
    if not timestamp or not signature:
        return False

    try:
        sent_at = int(timestamp)
    except ValueError:
        return False

    now = time.time() if now is None else now
    if abs(now - sent_at) > tolerance:
        return False

    expected = compute_slack_signature(secret, timestamp, body)
    return hmac.compare_digest(expected, signature)


def client_identifier(request: web.Request) -> str:
    """Client IP, honouring the first X-Forwarded-For hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.remote or "unknown"


class WatchtowerServer:
    """
    Inbound HTTP server.

    Example:
        >>> server = WatchtowerServer(pipeline, metrics, config.server, config.rate_limit)
        >>> await server.start()
        >>> ...
        >>> await server.stop()
    """

    def __init__(
        self,
        pipeline: AlertPipeline,
        metrics: Optional[MetricsCollector] = None,
        server_config: Optional[ServerConfig] = None,
        rate_limit_config: Optional[RateLimitConfig] = None,
    ):
        """
        Initialize WatchtowerServer.

        Args:
            pipeline: Source of status, health and queue figures
            metrics: Collector exported on /metrics
            server_config: Bind address and Slack signing settings
            rate_limit_config: Per-endpoint request budgets
        """
        self._pipeline = pipeline
        self._metrics = metrics
        self._config = server_config or ServerConfig()
        self._limits = rate_limit_config or RateLimitConfig()

        self._status_limiter = RateLimiter(
            cleanup_interval=self._limits.cleanup_interval,
            name="status-limiter",
        )
        self._health_limiter = RateLimiter(
            cleanup_interval=self._limits.cleanup_interval,
            name="health-limiter",
        )

        self._app = self.create_app()
        self._runner: Optional[web.AppRunner] = None

    @property
    def app(self) -> web.Application:
        return self._app

    def create_app(self) -> web.Application:
        app = web.Application()
        app.router.add_post("/slack/status", self.handle_status)
        app.router.add_get("/health", self.handle_health)
        app.router.add_get("/metrics", self.handle_metrics)
        return app

    # =========================================================================
    # Lifecycle Methods
    # =========================================================================

    async def start(self) -> None:
        """Bind and start serving."""
        if self._runner is not None:
            return

        self._status_limiter.start()
        self._health_limiter.start()

        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

        logger.info(f"HTTP server listening on {self._config.host}:{self._config.port}")

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

        await self._status_limiter.stop()
        await self._health_limiter.stop()

        logger.info("HTTP server stopped")

    # =========================================================================
    # Handlers
    # =========================================================================

    def _rate_limited(self, limiter: RateLimiter, request: web.Request, max_requests: int) -> Optional[web.Response]:
        identifier = client_identifier(request)
        result = limiter.check_limit(identifier, max_requests)
        if result.allowed:
            return None

        logger.warning(f"Rate limit exceeded for {identifier} on {request.path}")
        return web.json_response(
            {"error": "Too Many Requests", "retryAfter": result.retry_after},
            status=429,
            headers={"Retry-After": str(result.retry_after)},
        )

    async def handle_status(self, request: web.Request) -> web.Response:
        """Slack slash command: in-channel status report."""
        limited = self._rate_limited(
            self._status_limiter, request, self._limits.slash_command_rpm
        )
        if limited is not None:
            return limited

        body = await request.read()

        secret = self._config.slack_signing_secret
        if secret and not verify_slack_signature(
            secret,
            request.headers.get("X-Slack-Request-Timestamp"),
            body,
            request.headers.get("X-Slack-Signature"),
            tolerance=self._config.signature_tolerance,
        ):
            logger.warning(f"Rejected unsigned or stale status request from {client_identifier(request)}")
            return web.Response(status=401, text="Unauthorized")

        logger.info("Received Slack slash command")

        try:
            processes = await self._pipeline.list_processes()
        except UpstreamUnavailableError as e:
            logger.error(f"Failed to handle slash command: {e.message}")
            return web.Response(status=500, text="Internal Server Error")

        return web.json_response(AlertTemplates.status_report(processes).build())

    async def handle_health(self, request: web.Request) -> web.Response:
        limited = self._rate_limited(self._health_limiter, request, self._limits.health_rpm)
        if limited is not None:
            return limited

        report = await self._pipeline.check_health()
        if not report.healthy:
            return web.json_response({"status": "ERROR", "error": report.error}, status=503)

        snapshot = self._pipeline.metrics_snapshot()
        return web.json_response({
            "status": "OK",
            "processCount": report.process_count,
            "retryQueueSize": snapshot["retry_queue_size"],
            "deadLetterQueueSize": snapshot["dead_letter_queue_size"],
        })

    async def handle_metrics(self, request: web.Request) -> web.Response:
        if self._metrics is None or not self._metrics.enabled:
            text = DISABLED_EXPORT
        else:
            self._pipeline.publish_gauges()
            text = self._metrics.export_prometheus()

        return web.Response(
            body=text.encode("utf-8"),
            headers={"Content-Type": PROMETHEUS_CONTENT_TYPE},
        )
