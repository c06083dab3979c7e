"""
Logging setup for the capture service.

One root configuration shared by the API server, the headless snapshot mode
and camera reader threads. The log file rotates since the service is meant to
stay up for days on a kiosk or phone-tethered host.
"""

from __future__ import annotations

import logging
import logging.handlers
import os

LOG_FORMAT = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"
MAX_LOG_BYTES = 5 * 1024 * 1024
BACKUP_COUNT = 3

# Per-request chatter from the HTTP stack
QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def setup_logging(log_path: str, log_level: str) -> logging.Logger:
    log_dir = os.path.dirname(log_path)
    if log_dir and not os.path.exists(log_dir):
        os.makedirs(log_dir)

    file_handler = logging.handlers.RotatingFileHandler(
        log_path, maxBytes=MAX_LOG_BYTES, backupCount=BACKUP_COUNT
    )
    logging.basicConfig(
        level=getattr(logging, log_level.upper(), logging.INFO),
        format=LOG_FORMAT,
        handlers=[file_handler, logging.StreamHandler()],
        force=True,
    )

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    return logging.getLogger()
