"""Retry backoff calculation for failed syncs."""
from __future__ import annotations

from appproject_governance.retry.backoff import (
    DEFAULT_SYNC_RETRY_DURATION,
    DEFAULT_SYNC_RETRY_FACTOR,
    DEFAULT_SYNC_RETRY_MAX_DURATION,
    Backoff,
    RetryStrategy,
    parse_retry_duration,
)

__all__ = [
    "DEFAULT_SYNC_RETRY_DURATION",
    "DEFAULT_SYNC_RETRY_FACTOR",
    "DEFAULT_SYNC_RETRY_MAX_DURATION",
    "Backoff",
    "RetryStrategy",
    "parse_retry_duration",
]
