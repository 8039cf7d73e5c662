"""
core/errors.py
--------------
Exception taxonomy shared by the connection manager, the introspector and
the migration engine. The HTTP layer maps these onto status codes.
"""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
    from core.migrator import MigrationResult


class BridgeError(Exception):
    """Base class for every error raised by tablebridge."""


class ConnectionFailure(str, Enum):
    """Which infrastructure layer a connect attempt failed in."""
    UNREACHABLE_NETWORK = "unreachable-network"
    TIMEOUT = "timeout"
    DNS_FAILURE = "dns-failure"
    AUTH_FAILURE = "auth-failure"
    MISSING_DATABASE = "missing-database"
    GENERIC = "generic"


class ConnectionFailedError(BridgeError):
    """Raised when a connect attempt or its liveness probe fails."""

    def __init__(
        self,
        category: ConnectionFailure,
        message: str,
        host: Optional[str] = None,
        port: Optional[int] = None,
        database: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.host = host
        self.port = port
        self.database = database


class NotConnectedError(BridgeError):
    """Raised when an operation targets a slot with no live handle."""

    def __init__(self, slot: str) -> None:
        super().__init__(f"{slot} database not connected")
        self.slot = slot


class PreconditionError(BridgeError):
    """Raised when migrate is invoked without both handles present."""


class QueryError(BridgeError):
    """Wraps a failed SQL execution; the driver message is kept verbatim."""

    def __init__(self, message: str, sql: Optional[str] = None) -> None:
        super().__init__(message)
        self.sql = sql


class UnknownTableError(QueryError):
    """Raised when a table name is not in the introspected table list."""

    def __init__(self, table: str, slot: str) -> None:
        super().__init__(f"Table '{table}' does not exist in the {slot} database")
        self.table = table
        self.slot = slot


class MigrationAbortedError(BridgeError):
    """
    Raised when the row loop stops before every fetched row was inserted.

    ``result`` carries the partial counts; rows inserted before the
    failure stay in the target table.
    """

    def __init__(self, message: str, result: "MigrationResult") -> None:
        super().__init__(message)
        self.result = result


class MigrationCancelledError(MigrationAbortedError):
    """Raised when a caller cancelled an in-flight migration."""


class MigrationInProgressError(BridgeError):
    """Raised when a migration is requested while another one is running."""


class InvalidArgumentError(BridgeError):
    """Raised for caller-supplied values outside the accepted range."""
