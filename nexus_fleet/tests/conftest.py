from __future__ import annotations

import logging
from collections.abc import Iterator

import pytest

from nexus_fleet.config import settings
from nexus_fleet.errors import BuildError, ContainerRuntimeError, NotFoundError, SchedulerError
from nexus_fleet.lifecycle import LifecycleManager
from nexus_fleet.logging_config import _FleetHandler
from nexus_fleet.providers.base import (
    UNAVAILABLE,
    BindMount,
    ContainerHandle,
    ImageSpec,
    NodeState,
    ResourceUsage,
    RuntimeClient,
)
from nexus_fleet.scheduling.base import SchedulerClient
from nexus_fleet.status import StatusReporter


@pytest.fixture(autouse=True)
def _isolate_host_paths(monkeypatch, tmp_path):
    """Redirect log and cron directories into a temp directory.

    Unit tests must never touch /root/nexus_logs or /etc/cron.d.
    """
    cron_dir = tmp_path / "cron.d"
    cron_dir.mkdir()
    monkeypatch.setattr(settings, "log_dir", str(tmp_path / "logs"))
    monkeypatch.setattr(settings, "cron_dir", str(cron_dir))
    monkeypatch.setattr(settings, "metrics_textfile", "")
    monkeypatch.setattr(settings, "strict_node_ids", True)
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, _FleetHandler):
            root.removeHandler(handler)


class FakeRuntime(RuntimeClient):
    """In-memory container engine.

    Mirrors the engine behaviours the lifecycle relies on: creating a
    container whose name is taken is a conflict, and removing a missing
    container is NotFound.
    """

    def __init__(self):
        self.containers: dict[str, dict] = {}
        self.images: set[str] = set()
        self.logs: dict[str, list[str]] = {}
        self.calls: list[str] = []
        self.builds = 0
        self.build_error: BuildError | None = None
        self.start_error: ContainerRuntimeError | None = None
        self.start_state = NodeState.RUNNING
        self.fail_remove: set[str] = set()
        self.fail_inspect: set[str] = set()
        self.fail_stats: set[str] = set()
        self.usage = ResourceUsage(cpu_percent=1.5, memory_used=64 * 1024 * 1024)
        self._next_id = 0

    @property
    def name(self) -> str:
        return "fake"

    def ensure_image_built(self, spec: ImageSpec, force: bool = False) -> str:
        self.calls.append("ensure_image_built")
        if spec.tag in self.images and not force:
            return spec.tag
        if self.build_error is not None:
            raise self.build_error
        self.builds += 1
        self.images.add(spec.tag)
        return spec.tag

    def create_and_start(
        self,
        name: str,
        image: str,
        env: dict[str, str],
        mounts: list[BindMount],
        labels: dict[str, str] | None = None,
    ) -> ContainerHandle:
        self.calls.append("create_and_start")
        if self.start_error is not None:
            raise self.start_error
        if name in self.containers:
            raise ContainerRuntimeError(f"Conflict. The container name {name} is already in use")
        self._next_id += 1
        container_id = f"{self._next_id:064x}"
        self.containers[name] = {
            "id": container_id,
            "image": image,
            "env": dict(env),
            "mounts": list(mounts),
            "labels": dict(labels or {}),
            "state": self.start_state,
        }
        return ContainerHandle(name=name, container_id=container_id, image=image)

    def remove_container(self, name: str) -> None:
        self.calls.append("remove_container")
        if name in self.fail_remove:
            raise ContainerRuntimeError("Cannot connect to the Docker daemon")
        if name not in self.containers:
            raise NotFoundError(f"Container {name} not found")
        del self.containers[name]

    def inspect_status(self, name: str) -> NodeState:
        self.calls.append("inspect_status")
        if name in self.fail_inspect:
            raise ContainerRuntimeError("Cannot connect to the Docker daemon")
        if name not in self.containers:
            return NodeState.ABSENT
        return self.containers[name]["state"]

    def sample_resource_usage(self, name: str) -> ResourceUsage:
        self.calls.append("sample_resource_usage")
        if name in self.fail_stats:
            raise ContainerRuntimeError("stats unavailable")
        if self.containers.get(name, {}).get("state") != NodeState.RUNNING:
            return UNAVAILABLE
        return self.usage

    def stream_logs(self, name: str, follow: bool = True, tail: int | str = "all") -> Iterator[str]:
        self.calls.append("stream_logs")
        if name not in self.containers:
            raise NotFoundError(f"Container {name} not found")
        lines = self.logs.get(name, [])
        if tail != "all":
            lines = lines[-tail:] if tail else []
        return iter(lines)

    def list_container_names(self, prefix: str) -> list[str]:
        self.calls.append("list_container_names")
        return [n for n in self.containers if n.startswith(prefix)]

    def add_container(self, name: str, state: NodeState = NodeState.RUNNING) -> None:
        """Register a container created outside the lifecycle manager."""
        self._next_id += 1
        self.containers[name] = {
            "id": f"{self._next_id:064x}",
            "image": "external",
            "env": {},
            "mounts": [],
            "labels": {},
            "state": state,
        }


class FakeScheduler(SchedulerClient):
    """In-memory scheduling facility."""

    def __init__(self):
        self.entries: dict[str, tuple[str, str]] = {}
        self.available = True
        self.availability_checks = 0
        self.install_error: SchedulerError | None = None

    def ensure_available(self) -> None:
        self.availability_checks += 1
        if not self.available:
            raise SchedulerError("cron is not installed")

    def install_recurring(self, entry_name: str, schedule: str, command: str) -> None:
        if self.install_error is not None:
            raise self.install_error
        self.entries[entry_name] = (schedule, command)

    def delete_entry(self, entry_name: str) -> None:
        if entry_name not in self.entries:
            raise NotFoundError(f"Schedule entry {entry_name} not found")
        del self.entries[entry_name]

    def list_entries(self) -> list[str]:
        return sorted(self.entries)


@pytest.fixture
def runtime() -> FakeRuntime:
    return FakeRuntime()


@pytest.fixture
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture
def lifecycle(runtime, scheduler) -> LifecycleManager:
    return LifecycleManager(runtime, scheduler)


@pytest.fixture
def reporter(runtime) -> StatusReporter:
    return StatusReporter(runtime)
