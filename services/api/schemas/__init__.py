"""Pydantic schemas for API request/response models."""
from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

__all__ = [
    'ConnectRequest',
    'ConnectResponse',
    'DisconnectResponse',
    'SlotStatus',
    'ConnectionsResponse',
    'TablesResponse',
    'PreviewResponse',
    'MigrateRequest',
    'MigrationResultResponse',
    'MigrationProgressResponse',
    'StartMigrationResponse',
    'CancelMigrationResponse',
    'ErrorResponse',
    'HealthResponse',
]


class CamelModel(BaseModel):
    """Base model: snake_case attributes, camelCase JSON."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


# ===== Connections =====

class ConnectRequest(CamelModel):
    """Body of POST /connect/{retool,supabase}."""
    connection_string: str = Field(min_length=1)


class ConnectResponse(CamelModel):
    """Outcome of a connect attempt."""
    success: bool
    message: str
    engine: Optional[str] = None
    failure: Optional[str] = None


class DisconnectResponse(CamelModel):
    success: bool
    message: str


class SlotStatus(CamelModel):
    """One slot as reported by GET /connections."""
    connected: bool
    engine: Optional[str] = None
    host: Optional[str] = None
    port: Optional[int] = None
    database: Optional[str] = None
    pool_size: Optional[int] = None
    tls: Optional[str] = None


class ConnectionsResponse(CamelModel):
    source: SlotStatus
    target: SlotStatus


# ===== Introspection =====

class TablesResponse(CamelModel):
    success: bool = True
    tables: List[str]


class PreviewResponse(CamelModel):
    success: bool = True
    data: List[Dict[str, Any]]


# ===== Migration =====

class MigrateRequest(CamelModel):
    """Body of POST /migrate and POST /migrations."""
    source_table: str = Field(min_length=1)
    target_table: str = Field(min_length=1)


class MigrationResultResponse(CamelModel):
    """Result of one migrate invocation."""
    success: bool
    message: str
    migrated_count: int
    total_count: int
    has_more_data: bool
    migration_id: Optional[str] = None
    elapsed_seconds: float = 0.0


class MigrationProgressResponse(CamelModel):
    """Point-in-time progress snapshot."""
    migration_id: Optional[str] = None
    source_table: Optional[str] = None
    target_table: Optional[str] = None
    total_records: int = 0
    migrated_records: int = 0
    percentage: int = Field(default=0, ge=0, le=100)
    is_complete: bool = False
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class StartMigrationResponse(CamelModel):
    """Response after starting a background migration."""
    success: bool = True
    migration_id: str
    message: str


class CancelMigrationResponse(CamelModel):
    success: bool
    message: str


class ErrorResponse(CamelModel):
    """Body of every non-2xx response."""
    success: bool = False
    message: str
    result: Optional[MigrationResultResponse] = None


# ===== Health =====

class HealthResponse(CamelModel):
    """Health check response."""
    status: str
    timestamp: datetime
    version: str
    source_connected: bool
    target_connected: bool
    migration_running: bool
