"""Cron-driven sync windows and their admission decision."""
from __future__ import annotations

from appproject_governance.windows.schedule import (
    WindowSchedule,
    load_timezone,
    parse_duration,
    parse_schedule,
)
from appproject_governance.windows.sync_window import (
    KIND_ALLOW,
    KIND_DENY,
    SyncWindow,
    SyncWindows,
)

__all__ = [
    "KIND_ALLOW",
    "KIND_DENY",
    "SyncWindow",
    "SyncWindows",
    "WindowSchedule",
    "load_timezone",
    "parse_duration",
    "parse_schedule",
]
