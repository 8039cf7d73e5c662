"""
FastAPI application for tablebridge.
"""
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import CONFIG
from core.connection_manager import ConnectionManager, Slot, get_connection_manager
from core.errors import (
    BridgeError,
    InvalidArgumentError,
    MigrationAbortedError,
    MigrationInProgressError,
    NotConnectedError,
    PreconditionError,
    UnknownTableError,
)
from core.migrator import MigrationEngine
from logger import get_logger
from services.api.dependencies import get_manager, get_migration_engine
from services.api.routers import connections, migrations
from services.api.schemas import ErrorResponse, HealthResponse, MigrationResultResponse

log = get_logger(__name__)

# Checked in order; UnknownTableError must precede its QueryError base.
_STATUS_CODES = (
    ((PreconditionError, NotConnectedError, UnknownTableError, InvalidArgumentError), 400),
    ((MigrationInProgressError,), 409),
)


def status_code_for(exc: BridgeError) -> int:
    """HTTP status for a domain error; backend failures are 500."""
    for types, code in _STATUS_CODES:
        if isinstance(exc, types):
            return code
    return 500


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Both database handles are closed on shutdown.
    """
    log.info("Starting %s API v%s", CONFIG.app_name, CONFIG.app_version)
    yield
    log.info("Shutting down %s API...", CONFIG.app_name)
    get_connection_manager().close_all()
    log.info("Connections closed successfully")


# Create FastAPI application
app = FastAPI(
    title="tablebridge API",
    description="Copy table rows between PostgreSQL and MySQL databases",
    version=CONFIG.app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=list(CONFIG.api.cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(connections.router)
app.include_router(migrations.router)


# ---------------------------------------------------------------------------
# Error responses: always {success: false, message}
# ---------------------------------------------------------------------------

def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(mode="json", by_alias=True, exclude_none=True),
    )


@app.exception_handler(BridgeError)
async def bridge_error_handler(request: Request, exc: BridgeError) -> JSONResponse:
    code = status_code_for(exc)
    if code >= 500:
        log.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        log.warning("%s %s rejected: %s", request.method, request.url.path, exc)
    body = ErrorResponse(message=str(exc))
    if isinstance(exc, MigrationAbortedError):
        body.result = MigrationResultResponse.model_validate(exc.result)
    return _error(code, body)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    first = exc.errors()[0] if exc.errors() else {}
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = first.get("msg", "Invalid request")
    return _error(400, ErrorResponse(message=f"{field}: {message}" if field else message))


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return _error(exc.status_code, ErrorResponse(message=str(exc.detail)))


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    log.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return _error(500, ErrorResponse(message="Internal server error"))


# ---------------------------------------------------------------------------
# Root and health
# ---------------------------------------------------------------------------

@app.get("/", tags=["root"])
async def root():
    """Root endpoint."""
    return {
        "service": CONFIG.app_name,
        "version": CONFIG.app_version,
        "status": "operational",
    }


@app.get("/health", response_model=HealthResponse, tags=["health"])
def health_check(
    manager: ConnectionManager = Depends(get_manager),
    engine: MigrationEngine = Depends(get_migration_engine),
):
    """Liveness plus which slots are connected."""
    return HealthResponse(
        status="healthy",
        timestamp=datetime.now(timezone.utc),
        version=CONFIG.app_version,
        source_connected=manager.is_connected(Slot.SOURCE),
        target_connected=manager.is_connected(Slot.TARGET),
        migration_running=engine.is_running,
    )
