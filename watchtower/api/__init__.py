# API module - Inbound HTTP surface and request rate limiting
from .rate_limiter import RateLimitEntry, RateLimiter, RateLimitResult
from .server import (
    WatchtowerServer,
    client_identifier,
    compute_slack_signature,
    verify_slack_signature,
)

__all__ = [
    "RateLimiter",
    "RateLimitEntry",
    "RateLimitResult",
    "WatchtowerServer",
    "client_identifier",
    "compute_slack_signature",
    "verify_slack_signature",
]
