"""
core/progress.py
----------------
Live, queryable migration progress.

Design Decisions:
    * Every migration gets its own :class:`MigrationProgress` record keyed by
      a migration id, so a status reader never sees two migrations
      interleaved in one record. The most recently started record is also
      reachable as "latest" for callers that only know the single-slot API.
    * The migration engine is the only writer. Readers always receive a copy,
      taken under the tracker lock, so a snapshot is internally consistent.
    * ``finish`` is first-call-wins: ``is_complete`` flips false→true once
      and never reverts, and later writes to a finished record are ignored.
"""
from __future__ import annotations

import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Optional

from config import CONFIG
from logger import get_logger
from shared.utils import calculate_progress_percentage

log = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class MigrationProgress:
    """Point-in-time progress of one migration."""
    migration_id: Optional[str] = None
    source_table: Optional[str] = None
    target_table: Optional[str] = None
    total_records: int = 0
    migrated_records: int = 0
    percentage: int = 0
    is_complete: bool = False
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class ProgressTracker:
    """
    Registry of migration progress records.

    Example::

        tracker = ProgressTracker()
        progress = tracker.start("users", "users")
        tracker.set_total(progress.migration_id, 3)
        tracker.advance(progress.migration_id)
        tracker.finish(progress.migration_id)
        tracker.get(progress.migration_id).percentage   # 33
    """

    def __init__(self, history: int | None = None) -> None:
        self._history = max(1, history or CONFIG.migration.progress_history)
        self._records: OrderedDict[str, MigrationProgress] = OrderedDict()
        self._latest = MigrationProgress()
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def reset(self) -> MigrationProgress:
        """Install a zeroed, not-complete "latest" snapshot."""
        with self._lock:
            self._latest = MigrationProgress()
            return replace(self._latest)

    def start(
        self,
        source_table: str,
        target_table: str,
        migration_id: str | None = None,
    ) -> MigrationProgress:
        """Register a fresh zeroed record and make it "latest"."""
        record = MigrationProgress(
            migration_id=migration_id or uuid.uuid4().hex,
            source_table=source_table,
            target_table=target_table,
            started_at=_utcnow(),
        )
        with self._lock:
            self._records[record.migration_id] = record
            self._records.move_to_end(record.migration_id)
            while len(self._records) > self._history:
                evicted, _ = self._records.popitem(last=False)
                log.debug("Evicted progress record %s", evicted)
            self._latest = record
            return replace(record)

    # ------------------------------------------------------------------
    # Writers (migration engine only)
    # ------------------------------------------------------------------

    def _record(self, migration_id: str) -> MigrationProgress:
        try:
            return self._records[migration_id]
        except KeyError:
            raise KeyError(f"Unknown migration id: {migration_id}") from None

    def set_total(self, migration_id: str, total: int) -> None:
        with self._lock:
            record = self._record(migration_id)
            if record.is_complete:
                return
            record.total_records = max(0, int(total))
            record.percentage = calculate_progress_percentage(
                record.migrated_records, record.total_records
            )

    def advance(self, migration_id: str, count: int = 1) -> MigrationProgress:
        """Add *count* successfully inserted rows and recompute the percentage."""
        with self._lock:
            record = self._record(migration_id)
            if record.is_complete or count <= 0:
                return replace(record)
            migrated = record.migrated_records + count
            # The batch cap never exceeds the counted total, but rows can be
            # deleted from the source between count and fetch.
            if migrated > record.total_records:
                record.total_records = migrated
            record.migrated_records = migrated
            record.percentage = calculate_progress_percentage(migrated, record.total_records)
            return replace(record)

    def finish(self, migration_id: str, error: str | None = None) -> bool:
        """
        Mark a migration complete.

        Returns:
            True if this call completed the record, False if it was already
            complete.
        """
        with self._lock:
            record = self._record(migration_id)
            if record.is_complete:
                return False
            record.is_complete = True
            record.error = error
            record.finished_at = _utcnow()
            return True

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    def get(self, migration_id: str | None = None) -> MigrationProgress:
        """
        Snapshot of *migration_id*, or of the latest record when omitted.

        Raises:
            KeyError: If *migration_id* is unknown (or evicted).
        """
        with self._lock:
            if migration_id is None:
                return replace(self._latest)
            return replace(self._record(migration_id))

    def active(self) -> MigrationProgress | None:
        """Snapshot of the running migration, if any."""
        with self._lock:
            if self._latest.migration_id and not self._latest.is_complete:
                return replace(self._latest)
            return None

    def all(self) -> list[MigrationProgress]:
        """Snapshots of every retained record, oldest first."""
        with self._lock:
            return [replace(r) for r in self._records.values()]
