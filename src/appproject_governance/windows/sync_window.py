"""Sync windows: cron-scheduled allow/deny admission control.

A :class:`SyncWindow` opens for ``duration`` every time its cron ``schedule``
fires (evaluated in ``time_zone``).  ``allow`` windows restrict syncs to the
times they are open; ``deny`` windows block syncs while they are open.
:class:`SyncWindows` combines the windows of a project into a single
admission decision via :meth:`SyncWindows.can_sync`.

Precedence
----------
1. An active deny window blocks, unless the sync is manual and every active
   deny window has ``manual_sync`` enabled.
2. Otherwise, when allow windows exist, a sync needs an active allow window,
   or must be manual while every inactive allow window has ``manual_sync``.
3. With no windows at all every sync is admitted.

Example
-------
>>> from datetime import datetime, timezone
>>> deny = SyncWindow.create("deny", "* * * * *", "1h", applications=["*"])
>>> windows = SyncWindows([deny])
>>> windows.can_sync(is_manual=False, now=datetime(2026, 1, 5, 9, tzinfo=timezone.utc))
False
"""
from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Sequence
from datetime import datetime, timezone
from typing import TYPE_CHECKING, overload

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel

from appproject_governance.errors import ProjectValidationError, WindowParseError
from appproject_governance.matching.glob import glob_match
from appproject_governance.windows.schedule import WindowSchedule

if TYPE_CHECKING:
    from appproject_governance.project.schema import Application

logger = logging.getLogger(__name__)

KIND_ALLOW = "allow"
KIND_DENY = "deny"
_VALID_KINDS: frozenset[str] = frozenset({KIND_ALLOW, KIND_DENY})

_FNV64_OFFSET = 0xCBF29CE484222325
_FNV64_PRIME = 0x100000001B3
_UINT64_MASK = 0xFFFFFFFFFFFFFFFF


def _fnv1a_64(data: bytes) -> int:
    value = _FNV64_OFFSET
    for byte in data:
        value ^= byte
        value = (value * _FNV64_PRIME) & _UINT64_MASK
    return value


# ---------------------------------------------------------------------------
# SyncWindow
# ---------------------------------------------------------------------------


class SyncWindow(BaseModel):
    """A single recurring maintenance window.

    Attributes
    ----------
    kind:
        ``"allow"`` or ``"deny"``.
    schedule:
        5-field cron expression marking when the window opens.
    duration:
        Go-style duration the window stays open (``"2h"``, ``"30m"``).
    time_zone:
        IANA timezone the schedule is evaluated in; empty means UTC.
    applications, namespaces, clusters:
        Glob patterns selecting which applications the window governs.  An
        empty list does not constrain that dimension.
    manual_sync:
        Whether manual syncs may bypass this window.
    use_and_operator:
        When ``True`` every non-empty dimension must match an application;
        otherwise any single matching dimension is enough.
    description:
        Free text, for example a change ticket reference.
    """

    model_config = {
        "frozen": True,
        "populate_by_name": True,
        "alias_generator": to_camel,
    }

    kind: str = ""
    schedule: str = ""
    duration: str = ""
    time_zone: str = ""
    applications: tuple[str, ...] = Field(default_factory=tuple)
    namespaces: tuple[str, ...] = Field(default_factory=tuple)
    clusters: tuple[str, ...] = Field(default_factory=tuple)
    manual_sync: bool = False
    use_and_operator: bool = Field(default=False, alias="andOperator")
    description: str = ""

    @classmethod
    def create(
        cls,
        kind: str,
        schedule: str,
        duration: str,
        applications: Iterable[str] = (),
        namespaces: Iterable[str] = (),
        clusters: Iterable[str] = (),
        manual_sync: bool = False,
        time_zone: str = "",
        use_and_operator: bool = False,
        description: str = "",
    ) -> SyncWindow:
        """Build a window and validate it eagerly.

        Raises
        ------
        ProjectValidationError
            If kind, schedule or duration is missing, or the window selects
            no applications, namespaces or clusters.
        WindowParseError
            If the schedule, duration or timezone cannot be parsed.
        """
        if not kind or not schedule or not duration:
            raise ProjectValidationError(
                "cannot create window: require kind, schedule, duration and one "
                "or more of applications, namespaces and clusters"
            )
        window = cls(
            kind=kind,
            schedule=schedule,
            duration=duration,
            time_zone=time_zone,
            applications=tuple(applications),
            namespaces=tuple(namespaces),
            clusters=tuple(clusters),
            manual_sync=manual_sync,
            use_and_operator=use_and_operator,
            description=description,
        )
        if not window.has_selectors():
            raise ProjectValidationError(
                "window requires one of application, cluster or namespace"
            )
        window.validate()
        return window

    # ------------------------------------------------------------------
    # Schedule evaluation
    # ------------------------------------------------------------------

    def parsed_schedule(self) -> WindowSchedule:
        """Parse schedule, duration and timezone (raises ``WindowParseError``)."""
        return WindowSchedule.parse(self.schedule, self.duration, self.time_zone)

    def active(self, now: datetime | None = None) -> bool:
        """Return True if the window is open at *now* (default: current UTC time).

        Raises
        ------
        WindowParseError
            If the schedule, duration or timezone is malformed.
        """
        effective_now = now or datetime.now(tz=timezone.utc)
        return self.parsed_schedule().is_active(effective_now)

    def validate(self) -> None:
        """Check kind, schedule, duration and timezone.

        Raises
        ------
        ProjectValidationError
            If the kind is neither ``allow`` nor ``deny``.
        WindowParseError
            If any of the time fields cannot be parsed.
        """
        if self.kind not in _VALID_KINDS:
            raise ProjectValidationError(
                f"kind '{self.kind}' mismatch: can only be allow or deny"
            )
        self.parsed_schedule()

    def has_selectors(self) -> bool:
        """Return True if the window names at least one application, namespace or cluster."""
        return bool(self.applications or self.namespaces or self.clusters)

    # ------------------------------------------------------------------
    # Application matching
    # ------------------------------------------------------------------

    def matches(self, app: Application) -> bool:
        """Return True if this window governs *app*."""
        checks: list[bool] = []
        if self.applications:
            checks.append(
                any(glob_match(p, app.name, allow_negation=False) for p in self.applications)
            )
        if self.clusters:
            checks.append(any(self._matches_cluster(p, app) for p in self.clusters))
        if self.namespaces:
            namespace = app.destination.namespace
            checks.append(
                any(glob_match(p, namespace, allow_negation=False) for p in self.namespaces)
            )

        if not checks:
            return False
        if self.use_and_operator:
            return all(checks)
        return any(checks)

    @staticmethod
    def _matches_cluster(pattern: str, app: Application) -> bool:
        destination = app.destination
        by_server = bool(destination.server) and glob_match(
            pattern, destination.server, allow_negation=False
        )
        by_name = bool(destination.name) and glob_match(
            pattern, destination.name, allow_negation=False
        )
        return by_server or by_name

    # ------------------------------------------------------------------
    # Identity and updates
    # ------------------------------------------------------------------

    def hash_identity(self) -> int:
        """Return a stable 64-bit hash of the window's identity.

        ``manual_sync`` and ``description`` are not part of the identity, so
        two windows differing only in those fields hash the same.
        """
        identity = {
            "kind": self.kind,
            "schedule": self.schedule,
            "duration": self.duration,
            "timeZone": self.time_zone,
            "applications": list(self.applications),
            "namespaces": list(self.namespaces),
            "clusters": list(self.clusters),
            "useAndOperator": self.use_and_operator,
        }
        payload = json.dumps(identity, sort_keys=True, separators=(",", ":"))
        return _fnv1a_64(payload.encode("utf-8"))

    def update(
        self,
        schedule: str = "",
        duration: str = "",
        applications: Iterable[str] = (),
        namespaces: Iterable[str] = (),
        clusters: Iterable[str] = (),
        time_zone: str = "",
        description: str = "",
    ) -> SyncWindow:
        """Return a copy with every non-empty argument applied.

        Raises
        ------
        ProjectValidationError
            If every argument is empty.
        """
        applications = tuple(applications)
        namespaces = tuple(namespaces)
        clusters = tuple(clusters)
        if not (schedule or duration or applications or namespaces or clusters or description):
            raise ProjectValidationError(
                "cannot update: require one or more of schedule, duration, "
                "application, namespace, cluster or description"
            )

        changes: dict[str, object] = {}
        if schedule:
            changes["schedule"] = schedule
        if duration:
            changes["duration"] = duration
        if applications:
            changes["applications"] = applications
        if namespaces:
            changes["namespaces"] = namespaces
        if clusters:
            changes["clusters"] = clusters
        if time_zone:
            changes["time_zone"] = time_zone
        if description:
            changes["description"] = description
        return self.model_copy(update=changes)


# ---------------------------------------------------------------------------
# SyncWindows
# ---------------------------------------------------------------------------


class SyncWindows(Sequence[SyncWindow]):
    """An immutable, ordered collection of sync windows.

    ``None`` entries are dropped on construction.

    Parameters
    ----------
    windows:
        Windows in configuration order.
    """

    def __init__(self, windows: Iterable[SyncWindow | None] = ()) -> None:
        self._windows: tuple[SyncWindow, ...] = tuple(w for w in windows if w is not None)

    # ------------------------------------------------------------------
    # Sequence protocol
    # ------------------------------------------------------------------

    @overload
    def __getitem__(self, index: int) -> SyncWindow: ...

    @overload
    def __getitem__(self, index: slice) -> SyncWindows: ...

    def __getitem__(self, index: int | slice) -> SyncWindow | SyncWindows:
        if isinstance(index, slice):
            return SyncWindows(self._windows[index])
        return self._windows[index]

    def __len__(self) -> int:
        return len(self._windows)

    def __iter__(self) -> Iterator[SyncWindow]:
        return iter(self._windows)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, SyncWindows):
            return self._windows == other._windows
        if isinstance(other, (list, tuple)):
            return list(self._windows) == list(other)
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self._windows)

    def __repr__(self) -> str:
        return f"SyncWindows({list(self._windows)!r})"

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_windows(self) -> bool:
        """Return True if the collection holds at least one window."""
        return bool(self._windows)

    def active(self, now: datetime | None = None) -> SyncWindows:
        """Return the windows open at *now*.

        Raises
        ------
        WindowParseError
            For the first window whose schedule cannot be parsed.
        """
        effective_now = now or datetime.now(tz=timezone.utc)
        return SyncWindows(w for w in self._windows if w.active(effective_now))

    def inactive_allows(self, now: datetime | None = None) -> SyncWindows:
        """Return the allow windows that are closed at *now*.

        Raises
        ------
        WindowParseError
            For the first allow window whose schedule cannot be parsed.
        """
        effective_now = now or datetime.now(tz=timezone.utc)
        return SyncWindows(
            w for w in self._windows if w.kind == KIND_ALLOW and not w.active(effective_now)
        )

    def has_deny(self) -> tuple[bool, bool]:
        """Return ``(has_deny, manual_enabled)`` for this collection.

        ``manual_enabled`` is True only when every deny window permits manual
        syncs.
        """
        denies = [w for w in self._windows if w.kind == KIND_DENY]
        return bool(denies), bool(denies) and all(w.manual_sync for w in denies)

    def has_allow(self) -> bool:
        """Return True if any allow window is present."""
        return any(w.kind == KIND_ALLOW for w in self._windows)

    def matches(self, app: Application) -> SyncWindows:
        """Return the windows that govern *app*."""
        return SyncWindows(w for w in self._windows if w.matches(app))

    def can_sync(self, is_manual: bool, now: datetime | None = None) -> bool:
        """Decide whether a sync may start at *now*.

        Parameters
        ----------
        is_manual:
            ``True`` for an operator-initiated sync.
        now:
            Evaluation instant; defaults to the current UTC time.

        Returns
        -------
        bool
            Whether the sync is admitted.

        Raises
        ------
        WindowParseError
            If any window is malformed.  Callers must treat this as a denial.
        """
        if not self.has_windows():
            return True

        effective_now = now or datetime.now(tz=timezone.utc)
        try:
            active = self.active(effective_now)
            inactive_allows = self.inactive_allows(effective_now)
        except WindowParseError as exc:
            raise WindowParseError(f"invalid sync windows: {exc}") from exc

        has_active_deny, deny_manual_enabled = active.has_deny()
        if has_active_deny:
            allowed = is_manual and deny_manual_enabled
            logger.debug(
                "Active deny window: manual=%s manual_enabled=%s allowed=%s",
                is_manual,
                deny_manual_enabled,
                allowed,
            )
            return allowed

        if self.has_allow():
            if active.has_allow():
                return True
            allowed = (
                is_manual
                and inactive_allows.has_windows()
                and all(w.manual_sync for w in inactive_allows)
            )
            logger.debug(
                "No active allow window: manual=%s allowed=%s", is_manual, allowed
            )
            return allowed

        return True

    # ------------------------------------------------------------------
    # Copy-on-write edits
    # ------------------------------------------------------------------

    def add_window(
        self,
        kind: str,
        schedule: str,
        duration: str,
        applications: Iterable[str] = (),
        namespaces: Iterable[str] = (),
        clusters: Iterable[str] = (),
        manual_sync: bool = False,
        time_zone: str = "",
        use_and_operator: bool = False,
        description: str = "",
    ) -> SyncWindows:
        """Return a new collection with a validated window appended."""
        window = SyncWindow.create(
            kind,
            schedule,
            duration,
            applications=applications,
            namespaces=namespaces,
            clusters=clusters,
            manual_sync=manual_sync,
            time_zone=time_zone,
            use_and_operator=use_and_operator,
            description=description,
        )
        return SyncWindows((*self._windows, window))

    def delete_window(self, index: int) -> SyncWindows:
        """Return a new collection without the window at *index*.

        Raises
        ------
        IndexError
            If no window exists at *index*.
        """
        if not 0 <= index < len(self._windows):
            raise IndexError(f"window with id '{index}' not found")
        return SyncWindows(self._windows[:index] + self._windows[index + 1 :])

    def replace_window(self, index: int, window: SyncWindow) -> SyncWindows:
        """Return a new collection with the window at *index* replaced."""
        if not 0 <= index < len(self._windows):
            raise IndexError(f"window with id '{index}' not found")
        return SyncWindows(
            self._windows[:index] + (window,) + self._windows[index + 1 :]
        )
