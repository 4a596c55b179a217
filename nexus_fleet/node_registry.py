"""Node registry derived from the container engine's own listing.

There is no local store: the set of nodes is whatever containers
currently carry the node name prefix, so the registry can never disagree with
the engine.
"""

from __future__ import annotations

from nexus_fleet.config import settings
from nexus_fleet.naming import container_name, node_id_from_container
from nexus_fleet.providers.base import RuntimeClient


class NodeRegistry:
    """Query view over node containers."""

    def __init__(self, runtime: RuntimeClient, prefix: str | None = None):
        self._runtime = runtime
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix or settings.container_prefix

    def list_node_ids(self) -> list[str]:
        """Ids of all nodes, in the order the engine lists their containers."""
        ids = []
        for name in self._runtime.list_container_names(f"{self.prefix}-"):
            node_id = node_id_from_container(name, self.prefix)
            if node_id is not None:
                ids.append(node_id)
        return ids

    def exists(self, node_id: str) -> bool:
        return container_name(node_id, self.prefix) in self._runtime.list_container_names(f"{self.prefix}-")
