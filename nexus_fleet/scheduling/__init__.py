"""Periodic-task scheduler clients for the console."""

from nexus_fleet.scheduling.base import SchedulerClient
from nexus_fleet.scheduling.cron import CronScheduler

__all__ = [
    "SchedulerClient",
    "CronScheduler",
]
