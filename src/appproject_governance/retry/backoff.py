"""Exponential retry backoff for failed syncs.

The wait before retry number ``attempt`` (zero-based) is::

    delay = min(duration * factor ** attempt, max_duration)

With the defaults (5s, factor 2, 3 minute ceiling) the first five retries
wait 5s, 10s, 20s, 40s and 80s, after which every retry waits 3 minutes.

Example
-------
>>> from datetime import datetime, timezone
>>> strategy = RetryStrategy(limit=5)
>>> last = datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc)
>>> strategy.next_retry_at(last, attempt=2) - last
datetime.timedelta(seconds=20)
"""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from pydantic import BaseModel, Field, field_validator
from pydantic.alias_generators import to_camel

from appproject_governance.errors import RetryConfigError, WindowParseError
from appproject_governance.windows.schedule import parse_duration

logger = logging.getLogger(__name__)

DEFAULT_SYNC_RETRY_DURATION = timedelta(seconds=5)
DEFAULT_SYNC_RETRY_FACTOR = 2
DEFAULT_SYNC_RETRY_MAX_DURATION = timedelta(minutes=3)

# Largest delay representable without overflowing datetime arithmetic.
_UNBOUNDED_DELAY = timedelta(days=365 * 1000)
_MICROSECOND = timedelta(microseconds=1)


def parse_retry_duration(text: str) -> timedelta:
    """Parse a backoff duration; a bare integer is a number of seconds.

    Raises
    ------
    RetryConfigError
        If *text* is neither an integer nor a Go-style duration.
    """
    stripped = text.strip()
    if stripped.lstrip("+-").isdigit():
        try:
            return timedelta(seconds=int(stripped))
        except OverflowError as exc:
            raise RetryConfigError(f"unable to parse {text} as a duration") from exc
    try:
        return parse_duration(stripped)
    except WindowParseError as exc:
        raise RetryConfigError(f"unable to parse {text} as a duration") from exc


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class Backoff(BaseModel):
    """Backoff parameters; empty fields fall back to the defaults.

    Attributes
    ----------
    duration:
        Initial delay (``"5s"``, ``"2m"`` or a bare number of seconds).
    factor:
        Multiplier applied per attempt.
    max_duration:
        Ceiling on any single delay.  A non-positive value disables it.
    """

    model_config = {"frozen": True, "populate_by_name": True, "alias_generator": to_camel}

    duration: str = ""
    factor: int | None = None
    max_duration: str = ""

    @field_validator("duration", "max_duration", mode="before")
    @classmethod
    def _coerce_seconds(cls, value: object) -> object:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("factor")
    @classmethod
    def _factor_positive(cls, value: int | None) -> int | None:
        if value is not None and value < 1:
            raise ValueError(f"backoff factor must be at least 1, got {value}")
        return value


class RetryStrategy(BaseModel):
    """How often, and how quickly, a failed sync is retried.

    Attributes
    ----------
    limit:
        Maximum number of retries; a negative value means unlimited.
    backoff:
        Optional backoff parameters.
    """

    model_config = {"frozen": True, "populate_by_name": True, "alias_generator": to_camel}

    limit: int = 0
    backoff: Backoff | None = Field(default=None)

    def resolved(self) -> tuple[timedelta, int, timedelta]:
        """Return the effective ``(duration, factor, max_duration)``.

        Raises
        ------
        RetryConfigError
            If a duration string cannot be parsed, or the initial duration
            is not positive.
        """
        duration = DEFAULT_SYNC_RETRY_DURATION
        factor = DEFAULT_SYNC_RETRY_FACTOR
        max_duration = DEFAULT_SYNC_RETRY_MAX_DURATION
        if self.backoff is not None:
            if self.backoff.duration:
                duration = parse_retry_duration(self.backoff.duration)
            if self.backoff.max_duration:
                max_duration = parse_retry_duration(self.backoff.max_duration)
            if self.backoff.factor is not None:
                factor = self.backoff.factor
        if duration <= timedelta(0):
            raise RetryConfigError(
                f"backoff duration must be positive, got {duration}"
            )
        return duration, factor, max_duration

    def delay(self, attempt: int) -> timedelta:
        """Return the wait before retry number *attempt* (zero-based)."""
        if attempt < 0:
            raise ValueError(f"attempt must be non-negative, got {attempt}")
        duration, factor, max_duration = self.resolved()
        ceiling = _UNBOUNDED_DELAY
        if timedelta(0) < max_duration < _UNBOUNDED_DELAY:
            ceiling = max_duration

        # Integer microseconds; a positive delay reaches the ceiling within
        # log(ceiling) multiplications.
        ceiling_us = ceiling // _MICROSECOND
        delay_us = min(duration // _MICROSECOND, ceiling_us)
        if factor > 1:
            for _ in range(attempt):
                if delay_us >= ceiling_us:
                    break
                delay_us = min(delay_us * factor, ceiling_us)
        return timedelta(microseconds=delay_us)

    def next_retry_at(self, last_attempt_at: datetime, attempt: int) -> datetime:
        """Return when retry number *attempt* should start.

        Parameters
        ----------
        last_attempt_at:
            When the previous attempt finished.
        attempt:
            Zero-based retry counter.

        Raises
        ------
        RetryConfigError
            If the backoff durations cannot be parsed.
        """
        wait = self.delay(attempt)
        logger.debug("Retry %d scheduled after %.0f seconds", attempt, wait.total_seconds())
        return last_attempt_at + wait

    def is_exhausted(self, attempt: int) -> bool:
        """Return True once *attempt* retries have used up the limit."""
        if self.limit < 0:
            return False
        return attempt >= self.limit
