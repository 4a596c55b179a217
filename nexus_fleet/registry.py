"""Lazy singletons for the default runtime and scheduler clients."""

from __future__ import annotations

from typing import Callable, Generic, TypeVar

from nexus_fleet.providers.base import RuntimeClient
from nexus_fleet.providers.docker import DockerRuntime
from nexus_fleet.scheduling.base import SchedulerClient
from nexus_fleet.scheduling.cron import CronScheduler

T = TypeVar("T")


class LazySingleton(Generic[T]):
    """Create a singleton lazily from a factory function."""

    def __init__(self, factory: Callable[[], T]):
        self._factory = factory
        self._instance: T | None = None

    def get(self) -> T:
        if self._instance is None:
            self._instance = self._factory()
        return self._instance

    def reset(self) -> None:
        self._instance = None


_runtime: LazySingleton[RuntimeClient] = LazySingleton(DockerRuntime)
_scheduler: LazySingleton[SchedulerClient] = LazySingleton(CronScheduler)


def get_runtime() -> RuntimeClient:
    """Process-wide Docker runtime client."""
    return _runtime.get()


def get_scheduler() -> SchedulerClient:
    """Process-wide cron scheduler client."""
    return _scheduler.get()
