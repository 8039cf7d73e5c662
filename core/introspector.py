"""
core/introspector.py
--------------------
Table listing and row previews for either handle.

Table names are checked against the engine's own catalog before they are
spliced into SQL, and are always identifier-quoted by the engine.
"""
from __future__ import annotations

from config import CONFIG
from core.connection_manager import ConnectionManager, Slot
from core.engines import DatabaseEngine, Row
from core.errors import InvalidArgumentError, UnknownTableError
from logger import get_logger

log = get_logger(__name__)


class SchemaIntrospector:
    """
    Catalog queries normalised across engines.

    Args:
        manager:         Connection manager owning the handles.
        validate_names:  Check table names against ``list_tables`` before use.
    """

    def __init__(
        self,
        manager: ConnectionManager,
        validate_names: bool | None = None,
    ) -> None:
        self._manager = manager
        self._validate = (
            CONFIG.migration.validate_table_names if validate_names is None else validate_names
        )

    def list_tables(self, slot: Slot) -> list[str]:
        """
        Table names for *slot*, in catalog order.

        Raises:
            NotConnectedError: If the slot is empty.
            QueryError: If the catalog query fails.
        """
        engine = self._manager.get_engine(slot)
        tables = engine.list_tables()
        log.debug("Listed %d table(s) in %s database", len(tables), slot.value)
        return tables

    def require_table(self, slot: Slot, table_name: str, engine: DatabaseEngine | None = None) -> str:
        """
        Return *table_name* if it exists in *slot*.

        Raises:
            UnknownTableError: If it is not in the catalog.
        """
        if not table_name or not table_name.strip():
            raise UnknownTableError(table_name or "", slot.value)
        if not self._validate:
            return table_name
        engine = engine or self._manager.get_engine(slot)
        if table_name not in engine.list_tables():
            raise UnknownTableError(table_name, slot.value)
        return table_name

    def preview_rows(self, slot: Slot, table_name: str, limit: int | None = None) -> list[Row]:
        """
        Fetch at most *limit* rows from *table_name*, unfiltered.

        Raises:
            NotConnectedError: If the slot is empty.
            UnknownTableError: If the table is not in the catalog.
            InvalidArgumentError: If *limit* is out of range.
            QueryError: On SQL failure.
        """
        if limit is None:
            limit = CONFIG.migration.preview_limit
        if limit < 1 or limit > CONFIG.migration.preview_max_limit:
            raise InvalidArgumentError(
                f"limit must be between 1 and {CONFIG.migration.preview_max_limit}"
            )
        engine = self._manager.get_engine(slot)
        self.require_table(slot, table_name, engine)
        return engine.fetch_rows(table_name, limit)
