"""Container runtime clients for the console."""

from nexus_fleet.providers.base import (
    UNAVAILABLE,
    BindMount,
    ContainerHandle,
    ImageSpec,
    NodeState,
    ResourceUsage,
    RuntimeClient,
    StepOutcome,
)
from nexus_fleet.providers.docker import DockerRuntime

__all__ = [
    # Base classes and types
    "RuntimeClient",
    "BindMount",
    "ContainerHandle",
    "ImageSpec",
    "NodeState",
    "ResourceUsage",
    "StepOutcome",
    "UNAVAILABLE",
    # Runtime implementations
    "DockerRuntime",
]
