"""Base scheduler client interface for recurring housekeeping entries."""

from __future__ import annotations

from abc import ABC, abstractmethod

from nexus_fleet.errors import NotFoundError
from nexus_fleet.providers.base import StepOutcome


class SchedulerClient(ABC):
    """Abstract facade over the host's periodic-task facility."""

    @abstractmethod
    def ensure_available(self) -> None:
        """Check once that the scheduling facility is present.

        Raises:
            SchedulerError: If it is not
        """
        ...

    @abstractmethod
    def install_recurring(self, entry_name: str, schedule: str, command: str) -> None:
        """Install an entry, overwriting any previous entry of the same name."""
        ...

    @abstractmethod
    def delete_entry(self, entry_name: str) -> None:
        """Delete an entry.

        Raises:
            NotFoundError: If no entry has this name
        """
        ...

    @abstractmethod
    def list_entries(self) -> list[str]:
        """Names of the entries managed by this client."""
        ...

    def remove_entry(self, entry_name: str) -> StepOutcome:
        """Delete an entry, treating a missing one as already removed."""
        try:
            self.delete_entry(entry_name)
        except NotFoundError:
            return StepOutcome.ABSENT
        return StepOutcome.REMOVED
