"""
Connection, table listing and preview routes.

"retool" is the source slot, "supabase" the target slot.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query

from core.connection_manager import ConnectionManager, Slot
from core.introspector import SchemaIntrospector
from logger import get_logger
from services.api.dependencies import get_introspector, get_manager, resolve_slot
from services.api.schemas import (
    ConnectRequest,
    ConnectResponse,
    ConnectionsResponse,
    DisconnectResponse,
    PreviewResponse,
    SlotStatus,
    TablesResponse,
)
from shared.utils import jsonable_rows

log = get_logger(__name__)
router = APIRouter(tags=["connections"])


def _connect(manager: ConnectionManager, slot: Slot, request: ConnectRequest) -> ConnectResponse:
    status = manager.connect(slot, request.connection_string)
    return ConnectResponse(
        success=status.success,
        message=status.message,
        engine=status.engine.value if status.engine else None,
        failure=status.failure.value if status.failure else None,
    )


# ===== Connect =====

@router.post("/connect/retool", response_model=ConnectResponse)
def connect_retool(
    request: ConnectRequest,
    manager: ConnectionManager = Depends(get_manager),
):
    """
    Connect the source database.

    A failed attempt still answers 200 with ``success: false`` and a
    message naming the layer that failed.
    """
    return _connect(manager, Slot.SOURCE, request)


@router.post("/connect/supabase", response_model=ConnectResponse)
def connect_supabase(
    request: ConnectRequest,
    manager: ConnectionManager = Depends(get_manager),
):
    """Connect the target database."""
    return _connect(manager, Slot.TARGET, request)


@router.delete("/connect/{db_type}", response_model=DisconnectResponse)
def disconnect(
    db_type: str,
    manager: ConnectionManager = Depends(get_manager),
):
    """Close one slot's handle."""
    slot = resolve_slot(db_type)
    if manager.disconnect(slot):
        return DisconnectResponse(success=True, message=f"Disconnected {slot.value} database")
    return DisconnectResponse(success=False, message=f"{slot.value} database was not connected")


@router.get("/connections", response_model=ConnectionsResponse)
def list_connections(manager: ConnectionManager = Depends(get_manager)):
    """Per-slot connection status; credentials are never included."""
    status = manager.status()
    return ConnectionsResponse(
        source=SlotStatus.model_validate(status[Slot.SOURCE.value]),
        target=SlotStatus.model_validate(status[Slot.TARGET.value]),
    )


# ===== Tables =====

@router.get("/tables/retool", response_model=TablesResponse)
def get_retool_tables(introspector: SchemaIntrospector = Depends(get_introspector)):
    """List source tables."""
    return TablesResponse(tables=introspector.list_tables(Slot.SOURCE))


@router.get("/tables/supabase", response_model=TablesResponse)
def get_supabase_tables(introspector: SchemaIntrospector = Depends(get_introspector)):
    """List target tables."""
    return TablesResponse(tables=introspector.list_tables(Slot.TARGET))


@router.get("/preview/{db_type}/{table_name}", response_model=PreviewResponse)
def get_table_preview(
    db_type: str,
    table_name: str,
    limit: Optional[int] = Query(default=None),
    introspector: SchemaIntrospector = Depends(get_introspector),
):
    """First ``limit`` rows of a table (default 10), shaped for JSON."""
    slot = resolve_slot(db_type)
    rows = introspector.preview_rows(slot, table_name, limit)
    log.debug("Previewed %d row(s) of %s.%s", len(rows), slot.value, table_name)
    return PreviewResponse(data=jsonable_rows(rows))
