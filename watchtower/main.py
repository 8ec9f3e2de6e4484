"""
Watchtower Entry Point.

Starts the alert pipeline and the HTTP surface, then waits for SIGINT or
SIGTERM.

Usage:
    watchtower --config config/config.yaml --env production
    python -m watchtower.main --port 3333 --debug
"""

import argparse
import asyncio
import signal
import sys
from typing import Optional, Sequence

from dotenv import load_dotenv

from watchtower.api import WatchtowerServer
from watchtower.config import AppConfig, ConfigError, ConfigLoader
from watchtower.core import get_logger, set_log_level
from watchtower.monitoring import MetricsCollector
from watchtower.notification import SlackNotifier
from watchtower.pipeline import AlertPipeline
from watchtower.supervisor import Pm2Supervisor

logger = get_logger(__name__)


def load_app_config(
    config_path: Optional[str] = None,
    env: Optional[str] = None,
    port: Optional[int] = None,
) -> AppConfig:
    """
    Resolve configuration from a YAML file or the environment.

    Args:
        config_path: YAML file; when absent flat env vars are used
        env: Environment overlay name for the YAML loader
        port: Overrides server.port

    Raises:
        ConfigError: If the configuration is invalid or the webhook is missing
    """
    if config_path:
        config = ConfigLoader().load(config_path, env=env)
    else:
        load_dotenv()
        config = AppConfig.from_env()

    if port is not None:
        config = config.model_copy(
            update={"server": config.server.model_copy(update={"port": port})}
        )

    if not config.notification.is_slack_configured:
        raise ConfigError("SLACK_WEBHOOK_URL environment variable is required")

    return config


async def run_watchtower(config: AppConfig) -> None:
    """
    Run until a shutdown signal arrives.

    Args:
        config: Application configuration
    """
    shutdown_event = asyncio.Event()

    def signal_handler(sig):
        logger.info(f"Received signal {sig}, initiating shutdown")
        shutdown_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGTERM, signal.SIGINT):
        try:
            loop.add_signal_handler(sig, lambda s=sig: signal_handler(s))
        except NotImplementedError:
            # Windows doesn't support add_signal_handler
            signal.signal(sig, lambda s, f: signal_handler(s))

    notifier = SlackNotifier(
        config.notification.slack_webhook_url,
        timeout=config.notification.timeout,
        deploy_host=config.notification.deploy_host,
        deploy_root=config.notification.deploy_root,
        username=config.notification.username,
    )
    metrics = MetricsCollector(enabled=config.metrics.enabled)
    supervisor = Pm2Supervisor()
    pipeline = AlertPipeline.from_config(config, supervisor, notifier, metrics)
    server = WatchtowerServer(pipeline, metrics, config.server, config.rate_limit)

    try:
        logger.info(f"Starting {config.app_name} ({config.environment})")

        await pipeline.start()
        await server.start()

        logger.info("Watchtower running. Press Ctrl+C to stop.")
        await shutdown_event.wait()

    finally:
        logger.info("Shutting down watchtower")

        try:
            await server.stop()
        except Exception as e:
            logger.error(f"Error stopping HTTP server: {e}")

        try:
            await pipeline.stop()
        except Exception as e:
            logger.error(f"Error stopping pipeline: {e}")

        await notifier.close()

        logger.info("Watchtower shutdown complete")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="watchtower",
        description="Watch PM2 processes and send deduplicated error alerts to Slack",
    )
    parser.add_argument(
        "--config",
        help="YAML configuration file (default: read flat environment variables)",
    )
    parser.add_argument(
        "--env",
        help="Environment overlay, loads config.<env>.yaml next to --config",
    )
    parser.add_argument(
        "--port",
        type=int,
        help="HTTP port (overrides configuration)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging",
    )
    return parser


def main(argv: Optional[Sequence[str]] = None) -> None:
    """CLI entry point."""
    args = build_parser().parse_args(argv)

    try:
        config = load_app_config(args.config, args.env, args.port)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    set_log_level("DEBUG" if args.debug else config.log_level)

    try:
        asyncio.run(run_watchtower(config))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except Exception as e:
        logger.error(f"Watchtower failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
