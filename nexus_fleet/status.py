"""Node status reporting and log following."""

from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass, field

from nexus_fleet.config import Settings, settings as default_settings
from nexus_fleet.errors import FleetError
from nexus_fleet.naming import container_name, validate_node_id
from nexus_fleet.node_registry import NodeRegistry
from nexus_fleet.providers.base import UNAVAILABLE, NodeState, ResourceUsage, RuntimeClient

logger = logging.getLogger(__name__)


@dataclass
class NodeStatus:
    """Live status of one node."""
    index: int  # 1-based position in the listing
    node_id: str
    container_name: str
    state: NodeState
    usage: ResourceUsage = UNAVAILABLE
    error: str | None = None


@dataclass
class StatusReport:
    """Status of all nodes plus the ids whose container has exited."""
    nodes: list[NodeStatus] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class StatusReporter:
    """Classifies every registered node by querying the runtime live."""

    def __init__(self, runtime: RuntimeClient, settings: Settings | None = None):
        self._runtime = runtime
        self._settings = settings or default_settings
        self._registry = NodeRegistry(runtime, prefix=self._settings.container_prefix)

    def list_all(self) -> StatusReport:
        """Query every node's state and, when running, its resource usage.

        A failure for one node is recorded on that node (state UNKNOWN) and
        does not abort the listing. Only a failure to enumerate the registry
        itself propagates.
        """
        report = StatusReport()
        for index, node_id in enumerate(self._registry.list_node_ids(), start=1):
            status = self._node_status(index, node_id)
            report.nodes.append(status)
            if status.state == NodeState.EXITED:
                report.failed.append(node_id)
        return report

    def get(self, node_id: str) -> NodeStatus:
        node_id = validate_node_id(node_id, strict=False)
        return self._node_status(1, node_id)

    def _node_status(self, index: int, node_id: str) -> NodeStatus:
        name = container_name(node_id, self._settings.container_prefix)
        status = NodeStatus(index=index, node_id=node_id, container_name=name, state=NodeState.UNKNOWN)
        try:
            status.state = self._runtime.inspect_status(name)
        except FleetError as e:
            logger.warning(f"Failed to inspect node {node_id}: {e}")
            status.error = str(e)
            return status

        if status.state == NodeState.RUNNING:
            try:
                status.usage = self._runtime.sample_resource_usage(name)
            except FleetError as e:
                logger.warning(f"Failed to sample usage of node {node_id}: {e}")
        return status

    def stream_logs(self, node_id: str, follow: bool = True, tail: int | str = "all") -> Iterator[str]:
        """Stream a node's container output until the stream ends or is interrupted.

        Each call starts a fresh stream; nothing is resumed.
        """
        node_id = validate_node_id(node_id, strict=False)
        return self._runtime.stream_logs(
            container_name(node_id, self._settings.container_prefix),
            follow=follow,
            tail=tail,
        )
