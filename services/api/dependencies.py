"""
FastAPI dependency providers.

The service objects are process-wide singletons; tests swap them out with
``app.dependency_overrides``.
"""
import threading
from typing import Optional

from core.connection_manager import ConnectionManager, Slot, get_connection_manager
from core.errors import InvalidArgumentError
from core.introspector import SchemaIntrospector
from core.migrator import MigrationEngine
from core.progress import ProgressTracker

# Path aliases for the two slots
SLOT_ALIASES = {
    "retool": Slot.SOURCE,
    "supabase": Slot.TARGET,
    "source": Slot.SOURCE,
    "target": Slot.TARGET,
}

_tracker: Optional[ProgressTracker] = None
_introspector: Optional[SchemaIntrospector] = None
_migration_engine: Optional[MigrationEngine] = None
_lock = threading.Lock()


def get_manager() -> ConnectionManager:
    """Dependency: the connection manager."""
    return get_connection_manager()


def get_tracker() -> ProgressTracker:
    """Dependency: the progress tracker."""
    global _tracker
    with _lock:
        if _tracker is None:
            _tracker = ProgressTracker()
    return _tracker


def get_introspector() -> SchemaIntrospector:
    """Dependency: the schema introspector."""
    global _introspector
    manager = get_manager()
    with _lock:
        if _introspector is None:
            _introspector = SchemaIntrospector(manager)
    return _introspector


def get_migration_engine() -> MigrationEngine:
    """Dependency: the migration engine, sharing the tracker above."""
    global _migration_engine
    manager, tracker, introspector = get_manager(), get_tracker(), get_introspector()
    with _lock:
        if _migration_engine is None:
            _migration_engine = MigrationEngine(manager, tracker, introspector)
    return _migration_engine


def resolve_slot(db_type: str) -> Slot:
    """
    Map a ``dbType`` path segment onto a slot.

    Raises:
        InvalidArgumentError: For anything but retool/supabase/source/target.
    """
    try:
        return SLOT_ALIASES[db_type.lower()]
    except KeyError:
        raise InvalidArgumentError(
            f"Unknown database type '{db_type}'. Use 'retool' or 'supabase'."
        ) from None
