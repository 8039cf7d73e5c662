"""
core/migrator.py
----------------
Migration engine: copies rows from a source table into a target table.

Design Decisions:
    * The engine is a plain class with injected dependencies
      (ConnectionManager, ProgressTracker, SchemaIntrospector). Progress is
      written to the tracker so any thread can read it while the loop runs.
    * One batch per call: at most ``batch_cap`` rows are fetched; the total
      is counted separately so progress is measured against the whole
      table. ``has_more_data`` tells the caller the cap truncated the read.
    * Target columns come from each row's own keys; there is no mapped
      schema. The target's column types are read once per run so values
      can be coerced to them (e.g. MySQL 0/1 into a Postgres boolean).
    * Fail-fast: the first failed insert stops the loop. There is no
      enclosing transaction, so rows inserted before the failure stay in
      the target and the raised :class:`MigrationAbortedError` reports
      exactly how many there were.
    * Migrations are serialised with a lock; each one also gets its own
      progress record keyed by migration id.
"""
from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Iterator, Mapping, Sequence

from config import CONFIG
from core.connection_manager import ConnectionManager, Slot
from core.engines import DatabaseEngine, Row
from core.errors import (
    MigrationAbortedError,
    MigrationCancelledError,
    MigrationInProgressError,
    NotConnectedError,
    PreconditionError,
    QueryError,
)
from core.introspector import SchemaIntrospector
from core.progress import MigrationProgress, ProgressTracker
from logger import get_logger, migration_logger
from shared.utils import calculate_throughput, format_duration

log = get_logger(__name__)


# ---------------------------------------------------------------------------
# Result type
# ---------------------------------------------------------------------------

@dataclass
class MigrationResult:
    """Outcome of one migrate invocation."""
    migrated_count: int
    total_count: int
    success: bool
    message: str
    migration_id: str | None = None
    elapsed_seconds: float = 0.0

    @property
    def has_more_data(self) -> bool:
        return self.migrated_count < self.total_count

    def __str__(self) -> str:
        status = "OK" if self.success else "FAILED"
        return f"[{status}] {self.migrated_count}/{self.total_count} rows: {self.message}"


# ---------------------------------------------------------------------------
# Insert strategies
# ---------------------------------------------------------------------------

class InsertStrategy(ABC):
    """How fetched rows are grouped into round trips against the target."""

    @abstractmethod
    def chunks(self, rows: Sequence[Row]) -> Iterator[Sequence[Row]]:
        ...

    @abstractmethod
    def write(
        self,
        engine: DatabaseEngine,
        table: str,
        chunk: Sequence[Row],
        column_types: Mapping[str, str] | None = None,
    ) -> None:
        """Insert *chunk*; all of it is committed or none of it."""


class RowByRowInsert(InsertStrategy):
    """One parameterised INSERT per row."""

    def chunks(self, rows: Sequence[Row]) -> Iterator[Sequence[Row]]:
        for row in rows:
            yield (row,)

    def write(
        self,
        engine: DatabaseEngine,
        table: str,
        chunk: Sequence[Row],
        column_types: Mapping[str, str] | None = None,
    ) -> None:
        engine.insert_row(table, chunk[0], column_types)

    def __repr__(self) -> str:
        return "RowByRowInsert()"


class BatchedInsert(InsertStrategy):
    """``size`` rows per ``executemany`` round trip, one transaction each."""

    def __init__(self, size: int) -> None:
        if size < 1:
            raise ValueError("batch size must be >= 1")
        self.size = size

    def chunks(self, rows: Sequence[Row]) -> Iterator[Sequence[Row]]:
        for start in range(0, len(rows), self.size):
            yield rows[start:start + self.size]

    def write(
        self,
        engine: DatabaseEngine,
        table: str,
        chunk: Sequence[Row],
        column_types: Mapping[str, str] | None = None,
    ) -> None:
        engine.insert_rows(table, chunk, column_types)

    def __repr__(self) -> str:
        return f"BatchedInsert(size={self.size})"


def strategy_for(insert_batch_size: int) -> InsertStrategy:
    """Row-at-a-time for 1, batched otherwise."""
    if insert_batch_size <= 1:
        return RowByRowInsert()
    return BatchedInsert(insert_batch_size)


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class MigrationEngine:
    """
    Drives the transfer loop.

    Args:
        manager:          Connection manager owning both handles.
        tracker:          Progress tracker the loop writes to.
        introspector:     Used to check table names before any row is read.
        batch_cap:        Maximum rows fetched per invocation.
        insert_strategy:  Row grouping for inserts (default from config).
        progress_log_interval: Seconds between in-loop progress log lines.

    Example::

        engine = MigrationEngine(manager, tracker)
        result = engine.migrate("customers", "customers")
        print(result)
    """

    def __init__(
        self,
        manager: ConnectionManager,
        tracker: ProgressTracker,
        introspector: SchemaIntrospector | None = None,
        batch_cap: int | None = None,
        insert_strategy: InsertStrategy | None = None,
        progress_log_interval: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._manager = manager
        self._tracker = tracker
        self._introspector = introspector or SchemaIntrospector(manager)
        self._batch_cap = batch_cap or CONFIG.migration.batch_cap
        self._strategy = insert_strategy or strategy_for(CONFIG.migration.insert_batch_size)
        self._log_interval = (
            CONFIG.migration.progress_log_interval
            if progress_log_interval is None
            else progress_log_interval
        )
        self._clock = clock
        self._run_lock = threading.Lock()
        self._cancel_events: dict[str, threading.Event] = {}

    @property
    def is_running(self) -> bool:
        return self._run_lock.locked()

    # ------------------------------------------------------------------
    # Public entry points
    # ------------------------------------------------------------------

    def migrate(
        self,
        source_table: str,
        target_table: str,
        migration_id: str | None = None,
        cancel_event: threading.Event | None = None,
        wait: bool = True,
    ) -> MigrationResult:
        """
        Copy up to ``batch_cap`` rows from *source_table* into *target_table*.

        With ``wait=True`` this blocks until any migration already running
        has finished; with ``wait=False`` it raises
        :class:`MigrationInProgressError` instead.

        Returns:
            :class:`MigrationResult` with ``success=True``.

        Raises:
            PreconditionError: If either handle is missing (nothing is read
                and the tracker is not touched).
            UnknownTableError: If a table name is not in its catalog.
            MigrationInProgressError: With ``wait=False`` while another
                migration holds the lock.
            MigrationAbortedError: If an insert failed or the migration was
                cancelled; ``exc.result`` carries the partial counts.
        """
        source, target = self._require_handles()
        self._check_tables(source, target, source_table, target_table)
        if not self._run_lock.acquire(blocking=wait):
            raise MigrationInProgressError("A migration is already in progress")
        try:
            progress = self._tracker.start(source_table, target_table, migration_id)
            return self._run(source, target, progress, cancel_event or threading.Event())
        finally:
            self._run_lock.release()

    def submit(self, source_table: str, target_table: str) -> str:
        """
        Start a migration on a background thread.

        Returns:
            The migration id; poll :meth:`ProgressTracker.get` with it.

        Raises:
            PreconditionError: If either handle is missing.
            UnknownTableError: If a table name is not in its catalog.
            MigrationInProgressError: If a migration is already running.
        """
        source, target = self._require_handles()
        self._check_tables(source, target, source_table, target_table)
        if not self._run_lock.acquire(blocking=False):
            raise MigrationInProgressError("A migration is already in progress")
        try:
            progress = self._tracker.start(source_table, target_table)
            cancel_event = threading.Event()
            thread = threading.Thread(
                target=self._run_in_background,
                args=(source, target, progress, cancel_event),
                name=f"migration-{progress.migration_id[:8]}",
                daemon=True,
            )
            thread.start()
        except BaseException:
            self._run_lock.release()
            raise
        return progress.migration_id

    def cancel(self, migration_id: str) -> bool:
        """Request cancellation. Returns False if that migration is not running."""
        event = self._cancel_events.get(migration_id)
        if event is None:
            return False
        event.set()
        log.info("Cancellation requested for migration %s", migration_id)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_handles(self) -> tuple[DatabaseEngine, DatabaseEngine]:
        try:
            source = self._manager.get_engine(Slot.SOURCE)
            target = self._manager.get_engine(Slot.TARGET)
        except NotConnectedError as exc:
            raise PreconditionError(
                f"Both databases must be connected for migration ({exc})"
            ) from exc
        return source, target

    def _check_tables(
        self,
        source: DatabaseEngine,
        target: DatabaseEngine,
        source_table: str,
        target_table: str,
    ) -> None:
        self._introspector.require_table(Slot.SOURCE, source_table, source)
        self._introspector.require_table(Slot.TARGET, target_table, target)

    def _run_in_background(
        self,
        source: DatabaseEngine,
        target: DatabaseEngine,
        progress: MigrationProgress,
        cancel_event: threading.Event,
    ) -> None:
        try:
            self._run(source, target, progress, cancel_event)
        except MigrationAbortedError as exc:
            log.error("Background migration %s failed: %s", progress.migration_id, exc)
        except Exception:
            log.error("Background migration %s crashed", progress.migration_id, exc_info=True)
        finally:
            self._run_lock.release()

    def _run(
        self,
        source: DatabaseEngine,
        target: DatabaseEngine,
        progress: MigrationProgress,
        cancel_event: threading.Event,
    ) -> MigrationResult:
        """The transfer loop. Caller holds ``_run_lock``."""
        migration_id = progress.migration_id
        source_table, target_table = progress.source_table, progress.target_table
        started = self._clock()
        last_log = started
        migrated = 0
        total = 0
        error: str | None = None
        mlog = migration_logger(log, migration_id)

        self._cancel_events[migration_id] = cancel_event
        try:
            rows = source.fetch_rows(source_table, self._batch_cap)
            mlog.info("Fetched %d records from %s", len(rows), source_table)

            total = source.count_rows(source_table)
            self._tracker.set_total(migration_id, total)
            column_types = target.column_types(target_table)
            mlog.info(
                "Starting migration of %d records out of total %d (%r)",
                len(rows), total, self._strategy,
            )

            for chunk in self._strategy.chunks(rows):
                if cancel_event.is_set():
                    raise MigrationCancelledError(
                        f"Migration cancelled after {migrated} of {total} records.",
                        self._partial(migration_id, migrated, total, started, "cancelled"),
                    )
                self._strategy.write(target, target_table, chunk, column_types)
                for _ in chunk:
                    self._tracker.advance(migration_id)
                migrated += len(chunk)

                now = self._clock()
                if now - last_log >= self._log_interval:
                    last_log = now
                    snapshot = self._tracker.get(migration_id)
                    mlog.info(
                        "Migration progress: %d records migrated in %s (%d%%)",
                        migrated, format_duration(now - started), snapshot.percentage,
                    )
        except MigrationCancelledError as exc:
            error = str(exc)
            raise
        except QueryError as exc:
            error = str(exc)
            mlog.error(
                "Migration aborted after %d of %d records: %s",
                migrated, total, exc,
            )
            raise MigrationAbortedError(
                f"Migration aborted after {migrated} of {total} records: {exc}. "
                f"Rows already inserted into {target_table} were not rolled back.",
                self._partial(migration_id, migrated, total, started, str(exc)),
            ) from exc
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            raise
        finally:
            self._tracker.finish(migration_id, error=error)
            self._cancel_events.pop(migration_id, None)

        elapsed = self._clock() - started
        mlog.info(
            "Migration completed: %d records migrated in %s (%.2f rows/s)",
            migrated, format_duration(elapsed), calculate_throughput(migrated, elapsed),
        )
        message = (
            f"Data migration completed successfully. "
            f"Migrated {migrated} out of {total} records."
        )
        if migrated < total:
            message += f" {total - migrated} records were beyond the batch cap of {self._batch_cap}."
        return MigrationResult(
            migrated_count=migrated,
            total_count=total,
            success=True,
            message=message,
            migration_id=migration_id,
            elapsed_seconds=elapsed,
        )

    def _partial(
        self,
        migration_id: str,
        migrated: int,
        total: int,
        started: float,
        reason: str,
    ) -> MigrationResult:
        return MigrationResult(
            migrated_count=migrated,
            total_count=total,
            success=False,
            message=f"Migrated {migrated} out of {total} records before the migration stopped: {reason}",
            migration_id=migration_id,
            elapsed_seconds=self._clock() - started,
        )
