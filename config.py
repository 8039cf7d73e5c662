"""
config.py
---------
Centralised configuration management for tablebridge.

Loads settings from environment variables (with .env file support via
python-dotenv). Provides typed settings as frozen dataclasses so
configuration is immutable at runtime.

Design Decision:
    Using dataclasses with env-backed defaults means the service works
    "out of the box" without any .env file, while still allowing
    environment-based overrides for production deployments.

    Source and target handles get separate settings blocks because the
    target is typically a hosted database reached over a slower network
    path (longer timeouts, bigger pool, TLS required).
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

_env_path = Path(__file__).parent / ".env"
if _env_path.exists():
    load_dotenv(dotenv_path=_env_path)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


@dataclass(frozen=True)
class DBConnectionConfig:
    """
    Pool and timeout settings for one connection slot.

    All timeouts are in seconds. ``tls_mode`` is one of ``disable``,
    ``prefer`` or ``require``; only ``require`` verifies the server
    certificate, and it is the default for both slots.
    """
    pool_size: int = 10
    connect_timeout: int = 10
    query_timeout: int = 10
    statement_timeout: int = 10
    idle_in_transaction_timeout: int = 10
    tls_mode: str = "require"

    @classmethod
    def from_env(cls, prefix: str, **defaults) -> "DBConnectionConfig":
        """Build a config block from ``<prefix>_*`` env vars."""
        base = cls(**defaults)
        return cls(
            pool_size=_env_int(f"{prefix}_POOL_SIZE", str(base.pool_size)),
            connect_timeout=_env_int(f"{prefix}_CONNECT_TIMEOUT", str(base.connect_timeout)),
            query_timeout=_env_int(f"{prefix}_QUERY_TIMEOUT", str(base.query_timeout)),
            statement_timeout=_env_int(f"{prefix}_STATEMENT_TIMEOUT", str(base.statement_timeout)),
            idle_in_transaction_timeout=_env_int(
                f"{prefix}_IDLE_IN_TRANSACTION_TIMEOUT", str(base.idle_in_transaction_timeout)
            ),
            tls_mode=os.getenv(f"{prefix}_TLS_MODE", base.tls_mode).lower(),
        )


@dataclass(frozen=True)
class TLSConfig:
    """TLS verification knobs shared by both slots."""
    # Turning verification off must be an explicit operator decision.
    insecure: bool = field(default_factory=lambda: _env_bool("DB_TLS_INSECURE", "false"))
    ca_file: str | None = field(default_factory=lambda: os.getenv("DB_TLS_CA"))


@dataclass(frozen=True)
class MigrationConfig:
    """Migration engine settings."""
    batch_cap: int = field(
        default_factory=lambda: _env_int("MIGRATION_BATCH_CAP", "5000")
    )
    insert_batch_size: int = field(
        default_factory=lambda: _env_int("MIGRATION_INSERT_BATCH_SIZE", "1")
    )
    progress_log_interval: float = field(
        default_factory=lambda: float(os.getenv("PROGRESS_LOG_INTERVAL", "30"))
    )
    progress_history: int = field(
        default_factory=lambda: _env_int("PROGRESS_HISTORY", "50")
    )
    preview_limit: int = field(
        default_factory=lambda: _env_int("PREVIEW_LIMIT", "10")
    )
    preview_max_limit: int = field(
        default_factory=lambda: _env_int("PREVIEW_MAX_LIMIT", "1000")
    )
    validate_table_names: bool = field(
        default_factory=lambda: _env_bool("VALIDATE_TABLE_NAMES", "true")
    )
    pg_schema: str = field(
        default_factory=lambda: os.getenv("PG_SCHEMA", "public")
    )
    log_level: str = field(
        default_factory=lambda: os.getenv("LOG_LEVEL", "INFO").upper()
    )
    log_file: str | None = field(
        default_factory=lambda: os.getenv("LOG_FILE")  # None → log to stderr only
    )


@dataclass(frozen=True)
class APIConfig:
    """HTTP surface settings."""
    host: str = field(default_factory=lambda: os.getenv("API_HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: _env_int("API_PORT", "8000"))
    cors_origins: tuple[str, ...] = field(
        default_factory=lambda: tuple(
            o.strip() for o in os.getenv("API_CORS_ORIGINS", "*").split(",") if o.strip()
        )
    )


@dataclass(frozen=True)
class AppConfig:
    """Root application configuration."""
    source: DBConnectionConfig = field(
        default_factory=lambda: DBConnectionConfig.from_env("SOURCE_DB")
    )
    target: DBConnectionConfig = field(
        default_factory=lambda: DBConnectionConfig.from_env(
            "TARGET_DB",
            pool_size=20,
            connect_timeout=20,
            query_timeout=20,
            statement_timeout=20,
            idle_in_transaction_timeout=20,
            tls_mode="require",
        )
    )
    tls: TLSConfig = field(default_factory=TLSConfig)
    migration: MigrationConfig = field(default_factory=MigrationConfig)
    api: APIConfig = field(default_factory=APIConfig)
    app_name: str = "tablebridge"
    app_version: str = "1.0.0"


def load_config() -> AppConfig:
    """
    Build and return the application configuration.

    Returns:
        AppConfig: Fully populated (and frozen) configuration object.

    Example::

        cfg = load_config()
        print(cfg.target.connect_timeout)   # 20
        print(cfg.migration.batch_cap)      # 5000
    """
    return AppConfig()


# Module-level singleton used throughout the application
CONFIG: AppConfig = load_config()


def get_log_level() -> int:
    """Convert string log level from config to logging module constant."""
    level = getattr(logging, CONFIG.migration.log_level, None)
    if not isinstance(level, int):
        return logging.INFO
    return level
