"""Logging setup for the console.

Diagnostics go to stderr, either as one JSON object per record (for log
shipping) or as plain text. Operator-facing output (tables, prompts) is
printed to stdout by the CLI and never goes through logging.
"""

from __future__ import annotations

import json
import logging
import socket
import sys
from datetime import datetime, timezone

from nexus_fleet.config import settings

SERVICE_NAME = "nexus-fleet"

# Attributes every LogRecord has; anything else was passed via extra=
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord("", 0, "", 0, "", (), None)).keys()
) | {"message", "asctime"}


def _extra_fields(record: logging.LogRecord) -> dict:
    return {k: v for k, v in record.__dict__.items() if k not in _RESERVED_ATTRS}


class FleetJSONFormatter(logging.Formatter):
    """Format records as single-line JSON."""

    def __init__(self, host: str | None = None):
        super().__init__()
        self.host = host or socket.gethostname()

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "service": SERVICE_NAME,
            "host": self.host,
        }
        extra = _extra_fields(record)
        if extra:
            payload["extra"] = extra
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


class FleetTextFormatter(logging.Formatter):
    """Human-readable format: time, level, host, logger, message."""

    def __init__(self, host: str | None = None):
        super().__init__(
            fmt="%(asctime)s %(levelname)-7s [%(host)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        # Short host name keeps lines compact
        self.host = (host or socket.gethostname()).split(".")[0][:16]

    def format(self, record: logging.LogRecord) -> str:
        record.host = self.host
        return super().format(record)


class _FleetHandler(logging.StreamHandler):
    """Marker class so setup_logging() can replace its own handler."""


def setup_logging(level: str | None = None, fmt: str | None = None) -> logging.Handler:
    """Install the console's stderr handler on the root logger.

    Args:
        level: Log level name (defaults to settings.log_level)
        fmt: "json" or "text" (defaults to settings.log_format)

    Returns:
        The installed handler
    """
    level = (level or settings.log_level).upper()
    fmt = (fmt or settings.log_format).lower()

    handler = _FleetHandler(sys.stderr)
    if fmt == "json":
        handler.setFormatter(FleetJSONFormatter())
    else:
        handler.setFormatter(FleetTextFormatter())

    root = logging.getLogger()
    for existing in list(root.handlers):
        if isinstance(existing, _FleetHandler):
            root.removeHandler(existing)
    root.addHandler(handler)
    root.setLevel(level)

    # The Docker SDK's HTTP stack is noisy at DEBUG
    logging.getLogger("urllib3").setLevel(max(logging.getLevelName(level), logging.INFO))
    return handler
