"""
Logging system for Agent Watchtower.

Provides colored terminal output and rotating file logs.
"""

import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


# ANSI color codes
class Colors:
    """ANSI color codes for terminal output."""
    RESET = "\033[0m"
    GRAY = "\033[90m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    RED = "\033[91m"
    BOLD = "\033[1m"


LEVEL_COLORS = {
    logging.DEBUG: Colors.GRAY,
    logging.INFO: Colors.GREEN,
    logging.WARNING: Colors.YELLOW,
    logging.ERROR: Colors.RED,
    logging.CRITICAL: Colors.RED + Colors.BOLD,
}

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class ColoredFormatter(logging.Formatter):
    """Formatter that adds colors to terminal output."""

    def format(self, record: logging.LogRecord) -> str:
        color = LEVEL_COLORS.get(record.levelno, Colors.RESET)
        message = super().format(record)
        return f"{color}{message}{Colors.RESET}"


class PlainFormatter(logging.Formatter):
    """Plain formatter for file output (no colors)."""
    pass


def _resolve_level(level: int | str | None) -> int:
    if level is None:
        level_str = os.getenv("LOG_LEVEL", "INFO").upper()
        return getattr(logging, level_str, logging.INFO)
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def _default_log_file() -> Path:
    log_dir = Path(os.getenv("WATCHTOWER_LOG_DIR", "logs"))
    log_dir.mkdir(parents=True, exist_ok=True)
    return log_dir / "watchtower.log"


def setup_logger(
    name: str,
    level: int | str | None = None,
    log_file: str | Path | None = None,
) -> logging.Logger:
    """
    Set up and return a configured logger.

    Args:
        name: Logger name, typically the module name like "watchtower.pipeline"
        level: Log level. Defaults to LOG_LEVEL env var or INFO
        log_file: Log file path. Defaults to logs/watchtower.log
            (directory overridable with WATCHTOWER_LOG_DIR)

    Returns:
        Configured logger instance

    Example:
        >>> logger = setup_logger("watchtower.supervisor")
        >>> logger.info("Connected to PM2")
    """
    logger = logging.getLogger(name)

    # Avoid adding duplicate handlers
    if logger.handlers:
        return logger

    level = _resolve_level(level)
    logger.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(ColoredFormatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(console_handler)

    log_path = Path(log_file) if log_file is not None else _default_log_file()
    log_path.parent.mkdir(parents=True, exist_ok=True)

    file_handler = RotatingFileHandler(
        log_path,
        maxBytes=10 * 1024 * 1024,  # 10 MB
        backupCount=5,
        encoding="utf-8",
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(PlainFormatter(LOG_FORMAT, DATE_FORMAT))
    logger.addHandler(file_handler)

    # Keep pytest's caplog working: propagate to root
    logger.propagate = True

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger by name.

    If the logger doesn't exist, creates a new one with default settings.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    logger = logging.getLogger(name)

    if not logger.handlers:
        return setup_logger(name)

    return logger


def set_log_level(level: int | str) -> None:
    """
    Change the level of every watchtower logger already created.

    Args:
        level: New log level
    """
    resolved = _resolve_level(level)
    for name, candidate in logging.Logger.manager.loggerDict.items():
        if not name.startswith("watchtower") or not isinstance(candidate, logging.Logger):
            continue
        candidate.setLevel(resolved)
        for handler in candidate.handlers:
            handler.setLevel(resolved)
