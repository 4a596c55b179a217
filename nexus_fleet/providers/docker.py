"""Docker runtime client for node containers.

Talks to the local Docker daemon through the Docker SDK. Every SDK exception
is translated into the console's error taxonomy here, so callers never need
to import ``docker.errors``:

- missing container          -> NotFoundError (strict calls) / ABSENT (queries)
- failed or broken image build -> BuildError with the tail of the build log
- any other engine failure   -> ContainerRuntimeError with the engine's text
"""

from __future__ import annotations

import codecs
import logging
import tempfile
from collections.abc import Iterator
from pathlib import Path
from typing import Any

import docker
from docker.errors import APIError, BuildError as DockerBuildError, DockerException, ImageNotFound, NotFound

from nexus_fleet.config import settings
from nexus_fleet.errors import BuildError, ContainerRuntimeError, NotFoundError
from nexus_fleet.metrics import docker_api_duration, timed
from nexus_fleet.providers.base import (
    UNAVAILABLE,
    BindMount,
    ContainerHandle,
    ImageSpec,
    NodeState,
    ResourceUsage,
    RuntimeClient,
)
from nexus_fleet.providers.image import write_build_context


logger = logging.getLogger(__name__)

# Label keys for container metadata
LABEL_MANAGED = "nexus-fleet.managed"

# Number of build log lines kept on BuildError
BUILD_LOG_TAIL = 20


def _build_log_lines(build_log: Any) -> list[str]:
    """Flatten Docker SDK build log chunks into text lines."""
    lines: list[str] = []
    for chunk in build_log or []:
        if isinstance(chunk, dict):
            text = chunk.get("stream") or chunk.get("error") or chunk.get("status") or ""
        else:
            text = str(chunk)
        lines.extend(line for line in text.splitlines() if line.strip())
    return lines


class DockerRuntime(RuntimeClient):
    """Native Docker runtime client.

    The Docker client is created lazily so that constructing the runtime (and
    e.g. printing --help) never needs a reachable daemon.
    """

    def __init__(self, client: docker.DockerClient | None = None):
        self._docker: docker.DockerClient | None = client

    @property
    def name(self) -> str:
        return "docker"

    @property
    def docker(self) -> docker.DockerClient:
        """Lazy-initialize the Docker client."""
        if self._docker is None:
            try:
                if settings.docker_socket:
                    self._docker = docker.DockerClient(
                        base_url=settings.docker_socket,
                        timeout=settings.docker_client_timeout,
                    )
                else:
                    self._docker = docker.from_env(timeout=settings.docker_client_timeout)
            except DockerException as e:
                raise ContainerRuntimeError(f"Cannot connect to Docker: {e}") from e
        return self._docker

    # =========================================================================
    # Images
    # =========================================================================

    def ensure_image_built(self, spec: ImageSpec, force: bool = False) -> str:
        if not force:
            try:
                with timed(docker_api_duration, "image_get"):
                    self.docker.images.get(spec.tag)
                logger.debug(f"Image {spec.tag} already present")
                return spec.tag
            except ImageNotFound:
                pass
            except DockerException as e:
                raise ContainerRuntimeError(f"Failed to look up image {spec.tag}: {e}") from e

        logger.info(f"Building image {spec.tag} from {spec.base_image}")
        with tempfile.TemporaryDirectory(prefix="nexus-fleet-build-") as workdir:
            context = write_build_context(spec, Path(workdir))
            try:
                with timed(docker_api_duration, "image_build"):
                    _image, build_log = self.docker.images.build(
                        path=str(context),
                        tag=spec.tag,
                        rm=True,
                        forcerm=True,
                        labels={LABEL_MANAGED: "true"},
                    )
                for line in _build_log_lines(build_log):
                    logger.debug(f"[build] {line}")
            except DockerBuildError as e:
                tail = "\n".join(_build_log_lines(e.build_log)[-BUILD_LOG_TAIL:])
                logger.error(f"Build of {spec.tag} failed: {e.msg}")
                raise BuildError(f"Failed to build image {spec.tag}: {e.msg}", build_log=tail) from e
            except APIError as e:
                logger.error(f"Build of {spec.tag} failed: {e}")
                raise BuildError(f"Failed to build image {spec.tag}: {e}", build_log=str(e)) from e
            except DockerException as e:
                raise ContainerRuntimeError(f"Failed to build image {spec.tag}: {e}") from e

        logger.info(f"Built image {spec.tag}")
        return spec.tag

    # =========================================================================
    # Containers
    # =========================================================================

    def create_and_start(
        self,
        name: str,
        image: str,
        env: dict[str, str],
        mounts: list[BindMount],
        labels: dict[str, str] | None = None,
    ) -> ContainerHandle:
        volumes = {
            m.source: {"bind": m.target, "mode": "ro" if m.read_only else "rw"}
            for m in mounts
        }
        all_labels = {LABEL_MANAGED: "true", **(labels or {})}

        try:
            with timed(docker_api_duration, "container_run"):
                container = self.docker.containers.run(
                    image,
                    name=name,
                    detach=True,
                    environment=dict(env),
                    volumes=volumes,
                    labels=all_labels,
                )
        except DockerException as e:
            logger.error(f"Failed to start container {name}: {e}")
            raise ContainerRuntimeError(f"Failed to start container {name}: {e}") from e

        logger.info(f"Started container {name} ({container.short_id})")
        return ContainerHandle(
            name=name,
            container_id=container.id,
            image=image,
        )

    def remove_container(self, name: str) -> None:
        try:
            with timed(docker_api_duration, "container_remove"):
                container = self.docker.containers.get(name)
                container.remove(force=True)
        except NotFound as e:
            raise NotFoundError(f"Container {name} not found") from e
        except DockerException as e:
            raise ContainerRuntimeError(f"Failed to remove container {name}: {e}") from e
        logger.info(f"Removed container {name}")

    def _get_container_state(self, container) -> NodeState:
        """Map Docker container status to NodeState."""
        status = (container.status or "").lower()
        if status == "running":
            return NodeState.RUNNING
        elif status in ("created", "restarting"):
            return NodeState.STARTING
        elif status in ("exited", "dead"):
            return NodeState.EXITED
        else:
            return NodeState.UNKNOWN

    def inspect_status(self, name: str) -> NodeState:
        try:
            with timed(docker_api_duration, "container_get"):
                container = self.docker.containers.get(name)
        except NotFound:
            return NodeState.ABSENT
        except DockerException as e:
            raise ContainerRuntimeError(f"Failed to inspect container {name}: {e}") from e
        return self._get_container_state(container)

    def sample_resource_usage(self, name: str) -> ResourceUsage:
        try:
            with timed(docker_api_duration, "container_stats"):
                container = self.docker.containers.get(name)
                if container.status != "running":
                    return UNAVAILABLE
                stats = container.stats(stream=False)
        except NotFound:
            return UNAVAILABLE
        except DockerException as e:
            raise ContainerRuntimeError(f"Failed to sample stats for {name}: {e}") from e
        return parse_stats(stats)

    def stream_logs(self, name: str, follow: bool = True, tail: int | str = "all") -> Iterator[str]:
        try:
            container = self.docker.containers.get(name)
            chunks = container.logs(stream=True, follow=follow, tail=tail)
        except NotFound as e:
            raise NotFoundError(f"Container {name} not found") from e
        except DockerException as e:
            raise ContainerRuntimeError(f"Failed to read logs of {name}: {e}") from e
        return _iter_lines(chunks)

    def list_container_names(self, prefix: str) -> list[str]:
        try:
            with timed(docker_api_duration, "container_list"):
                containers = self.docker.containers.list(all=True, filters={"name": prefix})
        except DockerException as e:
            raise ContainerRuntimeError(f"Failed to list containers: {e}") from e
        # The engine's name filter is a substring match
        return [c.name for c in containers if c.name and c.name.startswith(prefix)]


def _iter_lines(chunks) -> Iterator[str]:
    """Re-split a stream of byte chunks on newlines.

    Chunk boundaries may fall inside a multi-byte UTF-8 sequence, so bytes
    are decoded incrementally across chunks.
    """
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    buffer = ""
    for chunk in chunks:
        if isinstance(chunk, bytes):
            chunk = decoder.decode(chunk)
        buffer += chunk
        while "\n" in buffer:
            line, buffer = buffer.split("\n", 1)
            yield line.rstrip("\r")
    buffer += decoder.decode(b"", final=True)
    if buffer:
        yield buffer


def parse_stats(stats: dict) -> ResourceUsage:
    """Compute CPU % and used memory the way ``docker stats`` does."""
    try:
        cpu_stats = stats["cpu_stats"]
        precpu_stats = stats.get("precpu_stats", {})
        cpu_delta = cpu_stats["cpu_usage"]["total_usage"] - precpu_stats.get("cpu_usage", {}).get("total_usage", 0)
        system_delta = cpu_stats.get("system_cpu_usage", 0) - precpu_stats.get("system_cpu_usage", 0)
        online_cpus = cpu_stats.get("online_cpus") or len(cpu_stats["cpu_usage"].get("percpu_usage") or []) or 1
        cpu_percent = (cpu_delta / system_delta) * online_cpus * 100.0 if system_delta > 0 else 0.0

        memory_stats = stats["memory_stats"]
        usage = memory_stats["usage"]
        detail = memory_stats.get("stats", {})
        # cgroup v1 reports page cache as "cache", v2 as "inactive_file"
        cache = detail.get("cache", detail.get("inactive_file", 0))
        memory_used = max(usage - cache, 0)
    except (KeyError, TypeError):
        return UNAVAILABLE
    return ResourceUsage(cpu_percent=round(cpu_percent, 2), memory_used=int(memory_used))
