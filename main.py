"""
main.py
-------
Entry point: serve the tablebridge HTTP API with uvicorn.

Usage:
    python main.py
    API_PORT=9000 LOG_LEVEL=DEBUG python main.py
"""
from __future__ import annotations

import uvicorn

from config import CONFIG
from logger import get_logger

log = get_logger(__name__)


def main() -> None:
    log.info("Serving %s on %s:%d", CONFIG.app_name, CONFIG.api.host, CONFIG.api.port)
    uvicorn.run(
        "services.api.main:app",
        host=CONFIG.api.host,
        port=CONFIG.api.port,
        log_level=CONFIG.migration.log_level.lower(),
    )


if __name__ == "__main__":
    main()
