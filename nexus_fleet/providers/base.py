"""Base runtime client interface for node containers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from nexus_fleet.errors import NotFoundError


class NodeState(str, Enum):
    """Observed state of a node's container."""
    ABSENT = "absent"
    STARTING = "starting"
    RUNNING = "running"
    EXITED = "exited"
    UNKNOWN = "unknown"


class StepOutcome(str, Enum):
    """Outcome of a NotFound-tolerant removal step."""
    REMOVED = "removed"
    ABSENT = "absent"


@dataclass(frozen=True)
class ResourceUsage:
    """One resource usage sample of a running container."""
    cpu_percent: float | None = None
    memory_used: int | None = None  # bytes

    @property
    def available(self) -> bool:
        return self.cpu_percent is not None and self.memory_used is not None


# Sentinel for "no sample could be taken"
UNAVAILABLE = ResourceUsage()


@dataclass(frozen=True)
class BindMount:
    """Host file or directory bind-mounted into a container."""
    source: str
    target: str
    read_only: bool = False


@dataclass(frozen=True)
class ImageSpec:
    """What the node image is built from."""
    tag: str
    base_image: str
    installer_url: str
    credential_env_var: str
    container_log_path: str


@dataclass
class ContainerHandle:
    """A container created by the runtime client."""
    name: str
    container_id: str
    image: str


class RuntimeClient(ABC):
    """Abstract container engine facade used by the lifecycle manager."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Runtime name (e.g., 'docker')."""
        ...

    @abstractmethod
    def ensure_image_built(self, spec: ImageSpec, force: bool = False) -> str:
        """Build the node image unless it already exists.

        Returns:
            Image reference usable by create_and_start()

        Raises:
            BuildError: If the build fails
        """
        ...

    @abstractmethod
    def create_and_start(
        self,
        name: str,
        image: str,
        env: dict[str, str],
        mounts: list[BindMount],
        labels: dict[str, str] | None = None,
    ) -> ContainerHandle:
        """Create and start a detached container.

        A container named ``name`` must not exist; this call never replaces one.

        Raises:
            ContainerRuntimeError: If the engine call fails
        """
        ...

    @abstractmethod
    def remove_container(self, name: str) -> None:
        """Force-remove a container.

        Raises:
            NotFoundError: If no container is named ``name``
            ContainerRuntimeError: If the engine call fails
        """
        ...

    @abstractmethod
    def inspect_status(self, name: str) -> NodeState:
        """Current state of the container (ABSENT if it does not exist)."""
        ...

    @abstractmethod
    def sample_resource_usage(self, name: str) -> ResourceUsage:
        """One usage sample; UNAVAILABLE unless the container is running."""
        ...

    @abstractmethod
    def stream_logs(self, name: str, follow: bool = True, tail: int | str = "all") -> Iterator[str]:
        """Yield the container's log lines, blocking for new ones when following."""
        ...

    @abstractmethod
    def list_container_names(self, prefix: str) -> list[str]:
        """Names of all containers (any state) starting with ``prefix``, in engine order."""
        ...

    def force_remove(self, name: str) -> StepOutcome:
        """Remove a container, treating a missing one as already removed."""
        try:
            self.remove_container(name)
        except NotFoundError:
            return StepOutcome.ABSENT
        return StepOutcome.REMOVED
