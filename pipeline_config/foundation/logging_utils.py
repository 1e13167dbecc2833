"""Logging helpers that avoid heavy dependencies."""

from __future__ import annotations

import logging
import os

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def setup_operational_logger(
    name: str = "pipeline_config",
    *,
    level: int = logging.INFO,
    log_file: str | None = None,
) -> logging.Logger:
    """
    Configure the package logger: stderr at `level`, plus an optional UTF-8 file
    capturing everything from DEBUG up.
    """

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.handlers.clear()

    formatter = logging.Formatter(LOG_FORMAT)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(formatter)
    logger.addHandler(stream_handler)

    if log_file:
        directory = os.path.dirname(os.path.abspath(log_file))
        os.makedirs(directory, exist_ok=True)
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(logging.DEBUG)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.propagate = False
    logger.debug("Operational logging initialized (level=%s)", logging.getLevelName(level))
    return logger
