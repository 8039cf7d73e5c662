"""
tests/test_migrator.py
-----------------------
Unit tests for core/migrator.py using in-memory engines.
Run with: python -m pytest tests/
"""
from __future__ import annotations

import logging
import threading
import time
from unittest.mock import MagicMock

import pytest

from core.errors import (
    MigrationAbortedError,
    MigrationCancelledError,
    MigrationInProgressError,
    PreconditionError,
    UnknownTableError,
)
from core.migrator import (
    BatchedInsert,
    MigrationEngine,
    MigrationResult,
    RowByRowInsert,
    strategy_for,
)
from core.marshal import to_postgres
from core.progress import ProgressTracker
from fakes import FakeEngine, make_manager, make_rows


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def tracker() -> ProgressTracker:
    return ProgressTracker(history=10)


@pytest.fixture
def engine(manager: MagicMock, tracker: ProgressTracker) -> MigrationEngine:
    return MigrationEngine(manager, tracker, batch_cap=5000, insert_strategy=RowByRowInsert())


def _wait_until_complete(tracker: ProgressTracker, migration_id: str, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not tracker.get(migration_id).is_complete:
        if time.monotonic() > deadline:
            pytest.fail(f"migration {migration_id} did not finish")
        time.sleep(0.01)


# ---------------------------------------------------------------------------
# Successful runs
# ---------------------------------------------------------------------------

class TestMigrate:
    def test_small_table_copied_in_full(
        self, engine: MigrationEngine, tracker: ProgressTracker,
        source_engine: FakeEngine, target_engine: FakeEngine,
    ) -> None:
        result = engine.migrate("users", "users")
        assert result.success
        assert result.migrated_count == 3
        assert result.total_count == 3
        assert result.has_more_data is False
        assert target_engine.tables["users"] == source_engine.tables["users"]

    def test_message_reports_counts(self, engine: MigrationEngine) -> None:
        result = engine.migrate("users", "users")
        assert result.message == (
            "Data migration completed successfully. Migrated 3 out of 3 records."
        )

    def test_final_progress_matches_result(
        self, engine: MigrationEngine, tracker: ProgressTracker
    ) -> None:
        result = engine.migrate("users", "users")
        progress = tracker.get(result.migration_id)
        assert progress.migrated_records == result.migrated_count
        assert progress.total_records == 3
        assert progress.percentage == 100
        assert progress.is_complete
        assert progress.error is None

    def test_latest_progress_is_this_migration(
        self, engine: MigrationEngine, tracker: ProgressTracker
    ) -> None:
        result = engine.migrate("users", "users")
        assert tracker.get().migration_id == result.migration_id

    def test_explicit_migration_id_used(
        self, engine: MigrationEngine, tracker: ProgressTracker
    ) -> None:
        result = engine.migrate("users", "users", migration_id="run-1")
        assert result.migration_id == "run-1"
        assert tracker.get("run-1").is_complete

    def test_columns_come_from_row_keys(
        self, engine: MigrationEngine, target_engine: FakeEngine
    ) -> None:
        engine.migrate("users", "customers")
        assert list(target_engine.tables["customers"][0].keys()) == ["id", "name"]

    def test_target_column_types_coerce_values(self, tracker: ProgressTracker) -> None:
        class PostgresTarget(FakeEngine):
            @staticmethod
            def convert_value(value, column_type=None):
                return to_postgres(value, column_type)

        source = FakeEngine({"flags": [{"id": 1, "active": 1}, {"id": 2, "active": 0}]})
        target = PostgresTarget(
            {"flags": []}, column_types={"flags": {"id": "integer", "active": "boolean"}}
        )
        engine = MigrationEngine(make_manager(source, target), tracker, insert_strategy=RowByRowInsert())
        result = engine.migrate("flags", "flags")
        assert result.migrated_count == 2
        assert target.tables["flags"] == [{"id": 1, "active": True}, {"id": 2, "active": False}]
        assert target.column_type_lookups == ["flags"]

    def test_empty_source_table(
        self, engine: MigrationEngine, tracker: ProgressTracker
    ) -> None:
        result = engine.migrate("orders", "users")
        assert result.success
        assert result.migrated_count == 0
        assert result.total_count == 0
        assert not result.has_more_data
        progress = tracker.get(result.migration_id)
        assert progress.percentage == 0
        assert progress.is_complete

    def test_batch_cap_truncates(self, tracker: ProgressTracker) -> None:
        source = FakeEngine({"events": make_rows(7000)})
        target = FakeEngine({"events": []})
        engine = MigrationEngine(
            make_manager(source, target), tracker,
            batch_cap=5000, insert_strategy=RowByRowInsert(),
        )
        result = engine.migrate("events", "events")
        assert result.migrated_count == 5000
        assert result.total_count == 7000
        assert result.has_more_data
        assert "2000 records were beyond the batch cap of 5000" in result.message
        assert len(target.tables["events"]) == 5000
        assert source.fetch_calls == [("events", 5000)]
        assert tracker.get(result.migration_id).percentage == 71

    def test_progress_observable_during_loop(self, tracker: ProgressTracker) -> None:
        seen: list[int] = []

        class ObservingTarget(FakeEngine):
            def insert_row(self, table, row, column_types=None):
                seen.append(tracker.get().migrated_records)
                super().insert_row(table, row, column_types)

        source = FakeEngine({"users": make_rows(4)})
        target = ObservingTarget({"users": []})
        engine = MigrationEngine(make_manager(source, target), tracker, insert_strategy=RowByRowInsert())
        engine.migrate("users", "users")
        assert seen == [0, 1, 2, 3]

    def test_progress_logged_at_interval(
        self, manager: MagicMock, tracker: ProgressTracker, caplog: pytest.LogCaptureFixture
    ) -> None:
        caplog.set_level(logging.INFO, logger="tablebridge")
        engine = MigrationEngine(
            manager, tracker, insert_strategy=RowByRowInsert(), progress_log_interval=0
        )
        engine.migrate("users", "users")
        assert any("Migration progress" in r.getMessage() for r in caplog.records)


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

class TestMigrateFailures:
    def test_insert_failure_reports_partial_count(self, tracker: ProgressTracker) -> None:
        source = FakeEngine({"users": make_rows(10)})
        target = FakeEngine({"users": []}, fail_on_insert=4)
        engine = MigrationEngine(make_manager(source, target), tracker, insert_strategy=RowByRowInsert())

        with pytest.raises(MigrationAbortedError) as exc_info:
            engine.migrate("users", "users")

        result = exc_info.value.result
        assert not result.success
        assert result.migrated_count == 3
        assert result.total_count == 10
        assert "duplicate key value" in str(exc_info.value)
        assert "not rolled back" in str(exc_info.value)
        assert len(target.tables["users"]) == 3

        progress = tracker.get(result.migration_id)
        assert progress.migrated_records == 3
        assert progress.is_complete
        assert "duplicate key value" in progress.error

    def test_missing_source_connection(
        self, tracker: ProgressTracker, target_engine: FakeEngine
    ) -> None:
        engine = MigrationEngine(make_manager(None, target_engine), tracker)
        with pytest.raises(PreconditionError, match="Both databases must be connected"):
            engine.migrate("users", "users")
        assert tracker.get().migration_id is None
        assert tracker.all() == []

    def test_missing_target_connection(
        self, tracker: ProgressTracker, source_engine: FakeEngine
    ) -> None:
        engine = MigrationEngine(make_manager(source_engine, None), tracker)
        with pytest.raises(PreconditionError):
            engine.migrate("users", "users")
        assert source_engine.fetch_calls == []

    def test_unknown_source_table(
        self, engine: MigrationEngine, tracker: ProgressTracker, source_engine: FakeEngine
    ) -> None:
        with pytest.raises(UnknownTableError):
            engine.migrate("users; DROP TABLE users", "users")
        assert source_engine.fetch_calls == []
        assert tracker.all() == []

    def test_unknown_target_table(self, engine: MigrationEngine) -> None:
        with pytest.raises(UnknownTableError, match="target"):
            engine.migrate("users", "nope")

    def test_unexpected_error_still_completes_progress(self, tracker: ProgressTracker) -> None:
        source = FakeEngine({"users": make_rows(2)})
        source.count_rows = MagicMock(side_effect=RuntimeError("boom"))
        engine = MigrationEngine(make_manager(source, FakeEngine({"users": []})), tracker)
        with pytest.raises(RuntimeError):
            engine.migrate("users", "users")
        progress = tracker.get()
        assert progress.is_complete
        assert progress.error == "boom"

    def test_lock_released_after_failure(self, tracker: ProgressTracker) -> None:
        source = FakeEngine({"users": make_rows(3)})
        target = FakeEngine({"users": []}, fail_on_insert=1)
        engine = MigrationEngine(make_manager(source, target), tracker, insert_strategy=RowByRowInsert())
        with pytest.raises(MigrationAbortedError):
            engine.migrate("users", "users")
        assert not engine.is_running


# ---------------------------------------------------------------------------
# Insert strategies
# ---------------------------------------------------------------------------

class TestInsertStrategies:
    def test_strategy_for(self) -> None:
        assert isinstance(strategy_for(1), RowByRowInsert)
        batched = strategy_for(250)
        assert isinstance(batched, BatchedInsert)
        assert batched.size == 250

    def test_batch_size_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            BatchedInsert(0)

    def test_batched_chunks(self) -> None:
        chunks = list(BatchedInsert(2).chunks(make_rows(5)))
        assert [len(c) for c in chunks] == [2, 2, 1]

    def test_batched_migration(self, tracker: ProgressTracker) -> None:
        source = FakeEngine({"users": make_rows(5)})
        target = FakeEngine({"users": []})
        engine = MigrationEngine(make_manager(source, target), tracker, insert_strategy=BatchedInsert(2))
        result = engine.migrate("users", "users")
        assert result.migrated_count == 5
        assert len(target.tables["users"]) == 5
        assert tracker.get(result.migration_id).percentage == 100

    def test_batched_failure_counts_only_committed_chunks(self, tracker: ProgressTracker) -> None:
        source = FakeEngine({"users": make_rows(6)})
        target = FakeEngine({"users": []}, fail_on_insert=3)
        engine = MigrationEngine(make_manager(source, target), tracker, insert_strategy=BatchedInsert(2))
        with pytest.raises(MigrationAbortedError) as exc_info:
            engine.migrate("users", "users")
        assert exc_info.value.result.migrated_count == 2
        assert len(target.tables["users"]) == 2


# ---------------------------------------------------------------------------
# Concurrency and cancellation
# ---------------------------------------------------------------------------

class TestConcurrency:
    def test_in_progress_rejected_without_wait(self, engine: MigrationEngine) -> None:
        engine._run_lock.acquire()
        try:
            assert engine.is_running
            with pytest.raises(MigrationInProgressError):
                engine.migrate("users", "users", wait=False)
            with pytest.raises(MigrationInProgressError):
                engine.submit("users", "users")
        finally:
            engine._run_lock.release()

    def test_submit_runs_in_background(
        self, engine: MigrationEngine, tracker: ProgressTracker, target_engine: FakeEngine
    ) -> None:
        migration_id = engine.submit("users", "users")
        _wait_until_complete(tracker, migration_id)
        progress = tracker.get(migration_id)
        assert progress.migrated_records == 3
        assert progress.error is None
        assert len(target_engine.tables["users"]) == 3

    def test_submit_checks_handles_first(self, tracker: ProgressTracker) -> None:
        engine = MigrationEngine(make_manager(None, None), tracker)
        with pytest.raises(PreconditionError):
            engine.submit("users", "users")
        assert not engine.is_running

    def test_cancel_stops_before_next_insert(self, tracker: ProgressTracker) -> None:
        cancel = threading.Event()

        class CancellingTarget(FakeEngine):
            def insert_row(self, table, row, column_types=None):
                super().insert_row(table, row, column_types)
                if len(self.tables[table]) == 2:
                    cancel.set()

        source = FakeEngine({"users": make_rows(5)})
        target = CancellingTarget({"users": []})
        engine = MigrationEngine(make_manager(source, target), tracker, insert_strategy=RowByRowInsert())

        with pytest.raises(MigrationCancelledError) as exc_info:
            engine.migrate("users", "users", cancel_event=cancel)

        assert exc_info.value.result.migrated_count == 2
        assert len(target.tables["users"]) == 2
        progress = tracker.get()
        assert progress.is_complete
        assert "cancelled" in progress.error

    def test_cancel_unknown_migration(self, engine: MigrationEngine) -> None:
        assert engine.cancel("does-not-exist") is False


# ---------------------------------------------------------------------------
# MigrationResult dataclass
# ---------------------------------------------------------------------------

class TestMigrationResult:
    def test_has_more_data(self) -> None:
        assert MigrationResult(5000, 7000, True, "ok").has_more_data
        assert not MigrationResult(3, 3, True, "ok").has_more_data

    def test_str(self) -> None:
        result = MigrationResult(3, 10, False, "insert failed")
        assert str(result) == "[FAILED] 3/10 rows: insert failed"
