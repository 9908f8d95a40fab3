# SPDX-License-Identifier: Apache-2.0
# Copyright (C) 2026 The certtrust Authors

"""Logging setup for processes embedding certtrust."""

import logging
from typing import Optional

from pythonjsonlogger import jsonlogger

from .config import settings

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
JSON_FIELDS = "%(asctime)s %(name)s %(levelname)s %(message)s"
JSON_RENAMES = {"asctime": "time", "name": "logger", "levelname": "level"}


def _formatter(log_format: str) -> logging.Formatter:
    if log_format == "json":
        return jsonlogger.JsonFormatter(JSON_FIELDS, rename_fields=JSON_RENAMES)
    return logging.Formatter(TEXT_FORMAT)


def configure_logging(level: Optional[str] = None, log_format: Optional[str] = None) -> None:
    """
    Configure root logging from settings.

    Args:
        level: Log level name (defaults to settings.log_level)
        log_format: "text" or "json" (defaults to settings.log_format)
    """
    level = (level or settings.log_level).upper()
    log_format = log_format or settings.log_format

    handler = logging.StreamHandler()
    handler.setFormatter(_formatter(log_format))

    logging.basicConfig(level=level, handlers=[handler], force=True)
    logging.getLogger(__name__).debug(f"Logging configured: level={level}, format={log_format}")
