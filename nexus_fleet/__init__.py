"""Nexus Fleet: run and supervise Nexus prover nodes in Docker containers.

Each node is one container named ``{prefix}-{node_id}``, a host log file
bind-mounted into it, and a daily cron entry that deletes that log file.
The set of nodes is never stored; it is derived from the container engine's
listing on every query.
"""

from nexus_fleet.version import __version__

__all__ = ["__version__"]
