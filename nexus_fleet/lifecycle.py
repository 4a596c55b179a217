"""Node lifecycle management.

A node is one container plus two host-side artifacts: its log file
(bind-mounted into the container) and a daily cleanup schedule entry that
deletes that log file. The lifecycle manager creates and tears down those
three together:

    create:   scheduler check -> image -> remove old container -> log file -> container -> schedule entry
    teardown: container -> log file -> schedule entry

Creation is ordered infrastructure-first, so a container that fails to start
never leaves a cleanup entry behind. Teardown tolerates every missing piece
(each step reports REMOVED or ABSENT) and therefore can be repeated, or run
against half-created nodes. Neither operation rolls back partial progress.
"""

from __future__ import annotations

import logging
import shlex
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator

from nexus_fleet.config import Settings, settings as default_settings
from nexus_fleet.errors import FleetError, NotFoundError
from nexus_fleet.metrics import node_operation_duration, node_operation_errors, timed
from nexus_fleet.naming import (
    NODE_ID_LABEL,
    container_name,
    log_path,
    node_id_from_schedule_entry,
    schedule_entry_name,
    validate_node_id,
)
from nexus_fleet.node_registry import NodeRegistry
from nexus_fleet.providers.base import BindMount, ImageSpec, NodeState, RuntimeClient, StepOutcome
from nexus_fleet.scheduling.base import SchedulerClient

logger = logging.getLogger(__name__)


@dataclass
class NodeInfo:
    """A node as created or restarted."""
    node_id: str
    container_name: str
    log_path: Path
    container_id: str
    image: str
    state: NodeState


@dataclass
class TeardownResult:
    """What teardown found and removed for one node."""
    node_id: str
    container: StepOutcome
    log_file: StepOutcome
    schedule_entry: StepOutcome

    @property
    def success(self) -> bool:
        return True


@dataclass
class NodeOutcome:
    """Per-node outcome of a batch operation."""
    node_id: str
    result: TeardownResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class BatchTeardownResult:
    """Outcomes of a batch teardown, one per requested id, in request order."""
    outcomes: list[NodeOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> list[str]:
        return [o.node_id for o in self.outcomes if o.ok]

    @property
    def failed(self) -> list[str]:
        return [o.node_id for o in self.outcomes if not o.ok]

    @property
    def success(self) -> bool:
        return not self.failed


class LifecycleManager:
    """Creates, restarts and tears down nodes on the given runtime and scheduler."""

    def __init__(
        self,
        runtime: RuntimeClient,
        scheduler: SchedulerClient,
        settings: Settings | None = None,
    ):
        self._runtime = runtime
        self._scheduler = scheduler
        self._settings = settings or default_settings
        self._registry = NodeRegistry(runtime, prefix=self._settings.container_prefix)

    @property
    def registry(self) -> NodeRegistry:
        return self._registry

    def image_spec(self) -> ImageSpec:
        s = self._settings
        return ImageSpec(
            tag=s.image_name,
            base_image=s.base_image,
            installer_url=s.installer_url,
            credential_env_var=s.credential_env_var,
            container_log_path=s.container_log_path,
        )

    def build_image(self, force: bool = False) -> str:
        """Build the node image ahead of time (or rebuild it with ``force``)."""
        with self._operation("build", self._settings.image_name):
            return self._runtime.ensure_image_built(self.image_spec(), force=force)

    def _container_name(self, node_id: str) -> str:
        return container_name(node_id, self._settings.container_prefix)

    def _log_path(self, node_id: str) -> Path:
        return log_path(self._settings.log_dir, node_id, self._settings.log_file_prefix)

    @contextmanager
    def _operation(self, operation: str, node_id: str) -> Iterator[None]:
        try:
            with timed(node_operation_duration, operation):
                yield
        except FleetError as e:
            node_operation_errors.labels(operation=operation).inc()
            logger.error(f"{operation} failed for node {node_id}: {e}")
            raise

    # =========================================================================
    # Create / restart
    # =========================================================================

    def create(self, node_id: str, rebuild: bool = False) -> NodeInfo:
        """Create (or replace) the node and start its container.

        Raises:
            InvalidNodeId: Before any engine call, for an empty or malformed id
            BuildError: If the image cannot be built; nothing is created
            ContainerRuntimeError: If the container cannot be started; no
                schedule entry is installed
            SchedulerError: Before any engine call if the scheduling facility
                is missing; after the start if the cleanup entry cannot be
                written, in which case the container keeps running
        """
        node_id = validate_node_id(node_id, strict=self._settings.strict_node_ids)
        with self._operation("create", node_id):
            node = self._start(node_id, rebuild=rebuild)
        logger.info(f"Node {node_id} created ({node.state.value})")
        return node

    def restart(self, node_id: str) -> NodeInfo:
        """Replace an existing node's container in place, keeping its id and log.

        Raises:
            NotFoundError: If the node has no container
        """
        node_id = validate_node_id(node_id, strict=False)
        with self._operation("restart", node_id):
            if not self._registry.exists(node_id):
                raise NotFoundError(f"Node {node_id} does not exist")
            node = self._start(node_id, rebuild=False)
        logger.info(f"Node {node_id} restarted ({node.state.value})")
        return node

    def _start(self, node_id: str, rebuild: bool) -> NodeInfo:
        self._scheduler.ensure_available()
        image = self._runtime.ensure_image_built(self.image_spec(), force=rebuild)

        name = self._container_name(node_id)
        if self._runtime.force_remove(name) == StepOutcome.REMOVED:
            logger.info(f"Removed previous container {name}")

        path = self._prepare_log_file(node_id)
        handle = self._runtime.create_and_start(
            name,
            image,
            env={self._settings.credential_env_var: node_id},
            mounts=[BindMount(source=str(path), target=self._settings.container_log_path)],
            labels={NODE_ID_LABEL: node_id},
        )

        self._install_cleanup(node_id, path)

        return NodeInfo(
            node_id=node_id,
            container_name=name,
            log_path=path,
            container_id=handle.container_id,
            image=image,
            state=self._runtime.inspect_status(name),
        )

    def _prepare_log_file(self, node_id: str) -> Path:
        """Create the node's log file so Docker bind-mounts a file, not a directory."""
        path = self._log_path(node_id)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.touch(exist_ok=True)
            path.chmod(self._settings.log_file_mode)
        except OSError as e:
            raise FleetError(f"Cannot prepare log file {path}: {e}") from e
        return path

    def _install_cleanup(self, node_id: str, path: Path) -> None:
        self._scheduler.install_recurring(
            schedule_entry_name(node_id),
            self._settings.cleanup_schedule,
            f"rm -f {shlex.quote(str(path))}",
        )

    # =========================================================================
    # Teardown
    # =========================================================================

    def teardown(self, node_id: str) -> TeardownResult:
        """Remove the node's container, log file and schedule entry.

        Missing pieces are reported as ABSENT, not as errors.
        """
        node_id = validate_node_id(node_id, strict=False)
        with self._operation("teardown", node_id):
            result = TeardownResult(
                node_id=node_id,
                container=self._runtime.force_remove(self._container_name(node_id)),
                log_file=self._remove_log_file(node_id),
                schedule_entry=self._scheduler.remove_entry(schedule_entry_name(node_id)),
            )
        logger.info(
            f"Node {node_id} removed (container={result.container.value}, "
            f"log={result.log_file.value}, schedule={result.schedule_entry.value})"
        )
        return result

    def _remove_log_file(self, node_id: str) -> StepOutcome:
        path = self._log_path(node_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return StepOutcome.ABSENT
        except OSError as e:
            raise FleetError(f"Cannot remove log file {path}: {e}") from e
        return StepOutcome.REMOVED

    def batch_teardown(self, node_ids: Iterable[str]) -> BatchTeardownResult:
        """Tear down each node independently; failures don't stop the rest."""
        batch = BatchTeardownResult()
        for node_id in node_ids:
            try:
                batch.outcomes.append(NodeOutcome(node_id=node_id, result=self.teardown(node_id)))
            except FleetError as e:
                logger.warning(f"Teardown of node {node_id!r} failed: {e}")
                batch.outcomes.append(NodeOutcome(node_id=node_id, error=str(e)))
        return batch

    def teardown_all(self) -> BatchTeardownResult:
        """Tear down every node in the registry.

        Callers are expected to have confirmed this with the operator.
        """
        return self.batch_teardown(self._registry.list_node_ids())

    def prune_schedules(self) -> list[str]:
        """Remove cleanup entries whose node no longer has a container."""
        live = set(self._registry.list_node_ids())
        pruned = []
        for entry in self._scheduler.list_entries():
            node_id = node_id_from_schedule_entry(entry)
            if node_id is None or node_id in live:
                continue
            if self._scheduler.remove_entry(entry) == StepOutcome.REMOVED:
                logger.info(f"Pruned orphan schedule entry {entry}")
                pruned.append(entry)
        return pruned
