"""Cron schedule, duration and timezone parsing for sync windows.

A sync window is described by three strings: a 5-field cron expression, a
Go-style duration (``"2h"``, ``"1h30m"``, ``"90s"``) and an IANA timezone
name (empty meaning UTC).  :class:`WindowSchedule` parses the three together
and answers whether the window is open at a given instant.

Example
-------
>>> from datetime import datetime, timezone
>>> schedule = WindowSchedule.parse("* 10 * * *", "2h", "")
>>> schedule.is_active(datetime(2026, 3, 2, 11, 0, tzinfo=timezone.utc))
True
>>> schedule.is_active(datetime(2026, 3, 2, 13, 0, tzinfo=timezone.utc))
False
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone, tzinfo
from decimal import Decimal, InvalidOperation
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from croniter import croniter

from appproject_governance.errors import WindowParseError

logger = logging.getLogger(__name__)

_CRON_FIELD_COUNT = 5
_MAX_DAY_OF_WEEK = 6
# Durations are signed 64-bit nanosecond counts.
_MAX_DURATION_NANOS = 2**63 - 1

_DURATION_UNIT_NANOS: dict[str, int] = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

# Longer units first so that "ms" is not read as "m" followed by "s".
_DURATION_COMPONENT_RE = re.compile(
    r"(?P<value>\d+(?:\.\d*)?|\.\d+)(?P<unit>ns|us|µs|μs|ms|s|m|h)"
)


# ---------------------------------------------------------------------------
# Primitive parsers
# ---------------------------------------------------------------------------


def parse_duration(text: str) -> timedelta:
    """Parse a Go-style duration string into a ``timedelta``.

    Accepts an optional sign followed by one or more ``<number><unit>``
    components, where unit is one of ``ns``, ``us``, ``ms``, ``s``, ``m``,
    ``h``.  The bare string ``"0"`` is also accepted.

    Raises
    ------
    WindowParseError
        If the string is empty, has no unit, uses an unknown unit, or is
        larger than about 292 years.
    """
    remainder = text.strip()
    negative = False
    if remainder[:1] in ("+", "-"):
        negative = remainder[0] == "-"
        remainder = remainder[1:]

    if remainder == "0":
        return timedelta(0)
    if not remainder:
        raise WindowParseError(f"cannot parse duration '{text}': empty duration")

    total_nanos = Decimal(0)
    position = 0
    while position < len(remainder):
        component = _DURATION_COMPONENT_RE.match(remainder, position)
        if component is None:
            raise WindowParseError(
                f"cannot parse duration '{text}': invalid or missing unit"
            )
        try:
            value = Decimal(component.group("value"))
        except InvalidOperation as exc:
            raise WindowParseError(f"cannot parse duration '{text}': {exc}") from exc
        total_nanos += value * _DURATION_UNIT_NANOS[component.group("unit")]
        position = component.end()

    limit = _MAX_DURATION_NANOS + 1 if negative else _MAX_DURATION_NANOS
    if total_nanos > limit:
        raise WindowParseError(f"cannot parse duration '{text}': duration out of range")

    micros = int(total_nanos / 1000)
    return timedelta(microseconds=-micros if negative else micros)


def load_timezone(name: str) -> tzinfo:
    """Resolve an IANA timezone name; an empty name means UTC.

    Raises
    ------
    WindowParseError
        If the name is not in the timezone database.
    """
    if not name or name == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise WindowParseError(f"cannot load timezone '{name}': {exc}") from exc


def parse_schedule(expression: str) -> str:
    """Validate a 5-field cron expression and return it normalised.

    Day-of-week values must lie in 0-6 (Sunday = 0).

    Raises
    ------
    WindowParseError
        If the expression has the wrong number of fields or any field is
        out of range.
    """
    fields = expression.split()
    if len(fields) != _CRON_FIELD_COUNT:
        raise WindowParseError(
            f"cannot parse schedule '{expression}': expected exactly "
            f"{_CRON_FIELD_COUNT} fields, found {len(fields)}"
        )
    normalised = " ".join(fields)
    if not croniter.is_valid(normalised):
        raise WindowParseError(f"cannot parse schedule '{expression}'")
    _check_day_of_week(expression, fields[4])
    return normalised


def _check_day_of_week(expression: str, field: str) -> None:
    """Reject numeric day-of-week values above 6."""
    for item in field.split(","):
        base = item.split("/", 1)[0]
        for bound in base.split("-"):
            if bound.isdigit() and int(bound) > _MAX_DAY_OF_WEEK:
                raise WindowParseError(
                    f"cannot parse schedule '{expression}': day of week "
                    f"{bound} is beyond the end of range (0-{_MAX_DAY_OF_WEEK})"
                )


def ensure_aware(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment


# ---------------------------------------------------------------------------
# WindowSchedule
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class WindowSchedule:
    """A parsed (schedule, duration, timezone) triple.

    Attributes
    ----------
    expression:
        Normalised 5-field cron expression.
    duration:
        How long the window stays open after each cron firing.
    tz:
        Timezone the cron expression is evaluated in.
    """

    expression: str
    duration: timedelta
    tz: tzinfo

    @classmethod
    def parse(cls, schedule: str, duration: str, time_zone: str = "") -> WindowSchedule:
        """Parse all three window strings, raising ``WindowParseError`` on the first failure."""
        expression = parse_schedule(schedule)
        span = parse_duration(duration)
        tz = load_timezone(time_zone)
        return cls(expression=expression, duration=span, tz=tz)

    def is_active(self, now: datetime) -> bool:
        """Return True if *now* falls in ``[last_fire, last_fire + duration)``."""
        local_now = ensure_aware(now).astimezone(self.tz)
        # The first firing after (now - duration) is the only one whose
        # window can still cover now.
        first_fire = self._next_after(local_now - self.duration)
        return first_fire <= local_now

    def next_start(self, now: datetime) -> datetime:
        """Return the first cron firing strictly after *now* (window timezone)."""
        return self._next_after(ensure_aware(now).astimezone(self.tz))

    def _next_after(self, moment: datetime) -> datetime:
        return croniter(self.expression, moment).get_next(datetime)
