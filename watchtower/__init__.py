"""
Agent Watchtower.

Watches PM2-supervised processes, detects errors in their log streams and
delivers deduplicated alerts to Slack with retry and dead-letter handling.
"""

__version__ = "0.3.0"
