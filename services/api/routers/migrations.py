"""
Migration routes for the API.
"""
from fastapi import APIRouter, Depends, HTTPException

from core.migrator import MigrationEngine
from core.progress import ProgressTracker
from logger import get_logger
from services.api.dependencies import get_migration_engine, get_tracker
from services.api.schemas import (
    CancelMigrationResponse,
    MigrateRequest,
    MigrationProgressResponse,
    MigrationResultResponse,
    StartMigrationResponse,
)

log = get_logger(__name__)
router = APIRouter(tags=["migrations"])


@router.post("/migrate", response_model=MigrationResultResponse)
def migrate_data(
    request: MigrateRequest,
    engine: MigrationEngine = Depends(get_migration_engine),
):
    """
    Copy one batch of rows from the source table into the target table.

    Blocks until the batch is done. Answers 409 if another migration is
    already running and 500 with the partial counts if an insert failed.
    """
    result = engine.migrate(request.source_table, request.target_table, wait=False)
    return MigrationResultResponse.model_validate(result)


@router.post("/migrations", response_model=StartMigrationResponse, status_code=202)
def start_migration(
    request: MigrateRequest,
    engine: MigrationEngine = Depends(get_migration_engine),
):
    """Start a migration in the background; poll its progress by id."""
    migration_id = engine.submit(request.source_table, request.target_table)
    log.info(
        "Started background migration %s (%s -> %s)",
        migration_id, request.source_table, request.target_table,
    )
    return StartMigrationResponse(
        migration_id=migration_id,
        message="Migration started",
    )


@router.post("/migrations/{migration_id}/cancel", response_model=CancelMigrationResponse)
def cancel_migration(
    migration_id: str,
    engine: MigrationEngine = Depends(get_migration_engine),
    tracker: ProgressTracker = Depends(get_tracker),
):
    """Request cancellation; the loop stops before its next insert."""
    try:
        progress = tracker.get(migration_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Migration {migration_id} not found")
    if progress.is_complete or not engine.cancel(migration_id):
        raise HTTPException(status_code=409, detail=f"Migration {migration_id} is not running")
    return CancelMigrationResponse(success=True, message="Cancellation requested")


@router.get("/migration-progress", response_model=MigrationProgressResponse)
def get_latest_progress(tracker: ProgressTracker = Depends(get_tracker)):
    """Progress of the most recently started migration."""
    return MigrationProgressResponse.model_validate(tracker.get())


@router.get("/migration-progress/{migration_id}", response_model=MigrationProgressResponse)
def get_migration_progress(
    migration_id: str,
    tracker: ProgressTracker = Depends(get_tracker),
):
    """Progress of one migration."""
    try:
        progress = tracker.get(migration_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Migration {migration_id} not found")
    return MigrationProgressResponse.model_validate(progress)
