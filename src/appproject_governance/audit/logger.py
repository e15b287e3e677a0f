"""Append-only JSONL audit trail for authorization and admission decisions.

Every decision is written as one JSON object per line.  Each record
carries a UTC ISO-8601 timestamp, a session identifier and the decision
fields supplied by the caller.

Writes and reads are serialised with a ``threading.Lock`` so one logger can
be shared between threads.

Example
-------
>>> from pathlib import Path
>>> audit = DecisionAuditLogger(Path("/tmp/decisions.jsonl"))
>>> audit.log_decision("source", "team-a", "https://github.com/team-a/app", True, "matched")
>>> audit.count()
1
"""
from __future__ import annotations

import json
import logging
import threading
import uuid
from collections.abc import Iterator
from datetime import datetime, timezone
from pathlib import Path

logger = logging.getLogger(__name__)


class DecisionAuditLogger:
    """Append-only JSONL decision log.

    Parameters
    ----------
    log_path:
        Path to the ``.jsonl`` file.  Parent directories are created on
        first write.
    session_id:
        Identifier stamped on every record; a random UUID by default.
    """

    def __init__(
        self,
        log_path: Path,
        session_id: str | None = None,
    ) -> None:
        self._log_path = Path(log_path)
        self._session_id: str = session_id or str(uuid.uuid4())
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Write API
    # ------------------------------------------------------------------

    def log(self, entry: dict[str, object]) -> None:
        """Append an arbitrary event record.

        ``timestamp`` and ``session_id`` are added automatically and cannot
        be overridden by *entry*.
        """
        record: dict[str, object] = {
            **entry,
            "timestamp": datetime.now(tz=timezone.utc).isoformat(),
            "session_id": self._session_id,
        }
        self._write(record)

    def log_decision(
        self,
        check: str,
        project: str,
        subject: str,
        allowed: bool,
        reason: str,
        **extra: object,
    ) -> None:
        """Append one decision record.

        Parameters
        ----------
        check:
            Decision type, e.g. ``source``, ``destination`` or ``sync_window``.
        project:
            Project the decision was made for.
        subject:
            What was decided on (repository URL, destination, application).
        allowed:
            The outcome.
        reason:
            Explanation of the outcome.
        **extra:
            Additional JSON-serialisable fields.
        """
        self.log(
            {
                "event": "decision",
                "check": check,
                "project": project,
                "subject": subject,
                "allowed": allowed,
                "reason": reason,
                **extra,
            }
        )

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def read_all(self) -> list[dict[str, object]]:
        """Return every record in write order (empty if the file is missing)."""
        return list(self._iter_records())

    def query(self, filters: dict[str, object]) -> list[dict[str, object]]:
        """Return records whose top-level fields equal every filter value."""
        return [
            record
            for record in self._iter_records()
            if all(record.get(key) == value for key, value in filters.items())
        ]

    def count(self) -> int:
        return sum(1 for _ in self._iter_records())

    def last_n(self, n: int) -> list[dict[str, object]]:
        """Return the ``n`` most recent records (none when ``n`` is not positive)."""
        records = list(self._iter_records())
        if n <= 0:
            return []
        return records[-n:]

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _write(self, record: dict[str, object]) -> None:
        with self._lock:
            self._log_path.parent.mkdir(parents=True, exist_ok=True)
            with self._log_path.open("a", encoding="utf-8") as fh:
                fh.write(json.dumps(record, default=str) + "\n")

    def _iter_records(self) -> Iterator[dict[str, object]]:
        if not self._log_path.exists():
            return
        with self._lock:
            with self._log_path.open("r", encoding="utf-8") as fh:
                lines = fh.readlines()
        for number, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                logger.warning("Skipping malformed audit line %d in %s", number, self._log_path)

    @property
    def log_path(self) -> Path:
        """The filesystem path of the audit log file."""
        return self._log_path

    @property
    def session_id(self) -> str:
        """The session identifier stamped on every record."""
        return self._session_id
