"""Centralized naming conventions for node containers, logs and cleanup entries.

All console components that construct container names, log paths or schedule
entry names MUST use these functions so that the node registry (which is
derived from container names) stays consistent with what was created.
"""

import re
from pathlib import Path

from nexus_fleet.config import settings
from nexus_fleet.errors import InvalidNodeId

# Prefix of cleanup schedule entry names
SCHEDULE_ENTRY_PREFIX = "cleanup"

# Container label carrying the node id
NODE_ID_LABEL = "nexus-fleet.node_id"

MAX_NODE_ID_LEN = 64

_STRICT_NODE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_-]{0,63}$")
_FORBIDDEN_CHARS = ("/", "\\", "\x00")


def validate_node_id(node_id: str | None, strict: bool = True) -> str:
    """Validate an operator-supplied node id and return it stripped.

    Empty or whitespace-only ids are always rejected, as are path separators
    (the id ends up in host file paths). In strict mode the id must also be
    a short token of letters, digits, ``_`` and ``-`` (the characters
    cron honours in cron.d file names).
    """
    value = (node_id or "").strip()
    if not value:
        raise InvalidNodeId("Node id cannot be empty")
    if any(c in value for c in _FORBIDDEN_CHARS):
        raise InvalidNodeId(f"Invalid node id {value!r}: path separators are not allowed")
    if strict and not _STRICT_NODE_ID.match(value):
        raise InvalidNodeId(
            f"Invalid node id {value!r}: use up to {MAX_NODE_ID_LEN} letters, "
            "digits, '_' or '-'"
        )
    return value


def container_name(node_id: str, prefix: str | None = None) -> str:
    """Generate the container name for a node.

    Format: {prefix}-{node_id}
    """
    return f"{prefix or settings.container_prefix}-{node_id}"


def node_id_from_container(name: str, prefix: str | None = None) -> str | None:
    """Inverse of container_name(); None if the name is not a node container."""
    head = f"{prefix or settings.container_prefix}-"
    if not name.startswith(head) or len(name) == len(head):
        return None
    return name[len(head):]


def log_path(log_dir: str | Path, node_id: str, log_file_prefix: str | None = None) -> Path:
    """Host path of a node's log file.

    Format: {log_dir}/{log_file_prefix}-{node_id}.log
    """
    return Path(log_dir) / f"{log_file_prefix or settings.log_file_prefix}-{node_id}.log"


def schedule_entry_name(node_id: str) -> str:
    """Name of the node's log cleanup schedule entry."""
    return f"{SCHEDULE_ENTRY_PREFIX}-{node_id}"


def node_id_from_schedule_entry(entry_name: str) -> str | None:
    head = f"{SCHEDULE_ENTRY_PREFIX}-"
    if not entry_name.startswith(head) or len(entry_name) == len(head):
        return None
    return entry_name[len(head):]
