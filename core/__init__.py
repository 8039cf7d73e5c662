"""core/__init__.py"""
from core.connection_manager import (
    ConnectionManager,
    ConnectionStatus,
    Slot,
    get_connection_manager,
)
from core.engines import (
    DatabaseEngine,
    EngineKind,
    MySQLEngine,
    PostgresEngine,
    TLSPolicy,
    create_engine,
    detect_engine_kind,
    parse_connection_string,
)
from core.errors import (
    BridgeError,
    ConnectionFailedError,
    ConnectionFailure,
    InvalidArgumentError,
    MigrationAbortedError,
    MigrationCancelledError,
    MigrationInProgressError,
    NotConnectedError,
    PreconditionError,
    QueryError,
    UnknownTableError,
)
from core.introspector import SchemaIntrospector
from core.migrator import (
    BatchedInsert,
    InsertStrategy,
    MigrationEngine,
    MigrationResult,
    RowByRowInsert,
)
from core.progress import MigrationProgress, ProgressTracker

__all__ = [
    "ConnectionManager",
    "ConnectionStatus",
    "Slot",
    "get_connection_manager",
    "DatabaseEngine",
    "EngineKind",
    "MySQLEngine",
    "PostgresEngine",
    "TLSPolicy",
    "create_engine",
    "detect_engine_kind",
    "parse_connection_string",
    "BridgeError",
    "ConnectionFailedError",
    "ConnectionFailure",
    "InvalidArgumentError",
    "MigrationAbortedError",
    "MigrationCancelledError",
    "MigrationInProgressError",
    "NotConnectedError",
    "PreconditionError",
    "QueryError",
    "UnknownTableError",
    "SchemaIntrospector",
    "BatchedInsert",
    "InsertStrategy",
    "MigrationEngine",
    "MigrationResult",
    "RowByRowInsert",
    "MigrationProgress",
    "ProgressTracker",
]
