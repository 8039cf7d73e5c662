"""
logger.py
---------
Logging setup for tablebridge.

Design Decisions:
    * Everything logs under the "tablebridge" logger, configured once on
      import from ``CONFIG.migration.log_level`` / ``log_file``; modules
      call ``get_logger(__name__)``.
    * Every handler carries :class:`DSNRedactingFilter`, so a database URI
      that slips into a message or an exception text is printed with its
      password masked.
    * Driver loggers (mysql.connector) are capped at WARNING; their DEBUG
      output includes packet dumps.
    * Lines belonging to one migration are tagged with its id through
      :class:`MigrationLogAdapter`.
"""
from __future__ import annotations

import logging
import re
import sys
from pathlib import Path
from typing import Any, MutableMapping

from config import CONFIG, get_log_level

_ROOT_LOGGER_NAME = "tablebridge"
_CONSOLE_FORMAT = "%(asctime)s [%(levelname)-8s] %(name)s: %(message)s"
_FILE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s"
_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S"
_QUIET_LOGGERS = ("mysql.connector",)

# scheme://user:password@  →  scheme://user:***@
_DSN_PASSWORD = re.compile(r"(?P<prefix>[a-zA-Z][\w+.-]*://[^:/@\s]*:)[^@\s]+@")

_configured = False


def redact_text(text: str) -> str:
    """Mask the password of every URI in *text*."""
    return _DSN_PASSWORD.sub(r"\g<prefix>***@", text)


class DSNRedactingFilter(logging.Filter):
    """Rewrites the formatted message with URI passwords masked."""

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = redact_text(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


class MigrationLogAdapter(logging.LoggerAdapter):
    """Prefixes each message with ``[migration <id>]``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:
        return f"[migration {self.extra['migration_id']}] {msg}", kwargs


def _handler(handler: logging.Handler, level: int, fmt: str) -> logging.Handler:
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(fmt=fmt, datefmt=_DATE_FORMAT))
    handler.addFilter(DSNRedactingFilter())
    return handler


def _configure_root_logger() -> None:
    global _configured
    if _configured:
        return
    _configured = True

    level = get_log_level()
    root = logging.getLogger(_ROOT_LOGGER_NAME)
    root.setLevel(level)
    root.addHandler(_handler(logging.StreamHandler(sys.stderr), level, _CONSOLE_FORMAT))

    if CONFIG.migration.log_file:
        log_path = Path(CONFIG.migration.log_file)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            root.addHandler(
                _handler(logging.FileHandler(log_path, encoding="utf-8"), logging.DEBUG, _FILE_FORMAT)
            )
        except OSError as exc:
            root.warning("Could not create log file '%s': %s", log_path, exc)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))


_configure_root_logger()


def get_logger(name: str) -> logging.Logger:
    """
    Return a child logger scoped to the given name.

    Example::

        log = get_logger(__name__)
        log.info("Fetched %d rows from %s", len(rows), table)
    """
    return logging.getLogger(f"{_ROOT_LOGGER_NAME}.{name}")


def migration_logger(logger: logging.Logger, migration_id: str) -> MigrationLogAdapter:
    """Wrap *logger* so every line names *migration_id*."""
    return MigrationLogAdapter(logger, {"migration_id": migration_id})
