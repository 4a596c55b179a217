"""cron.d scheduler client.

Each entry is one file in the cron drop-in directory (``/etc/cron.d`` by
default), named ``{cron_file_prefix}-{entry_name}``. cron.d files carry a
user field, so an entry line reads::

    0 0 * * * root rm -f '/root/nexus_logs/nexus-abc.log'
"""

from __future__ import annotations

import logging
import os
import re
import shutil
import tempfile
from pathlib import Path

from nexus_fleet.config import settings
from nexus_fleet.errors import NotFoundError, SchedulerError
from nexus_fleet.scheduling.base import SchedulerClient

logger = logging.getLogger(__name__)

# Executables that indicate a running cron implementation
CRON_BINARIES = ("cron", "crond")

# cron ignores files in cron.d whose names contain anything else
_CRON_FILE_NAME = re.compile(r"^[A-Za-z0-9_-]+$")

HEADER = "# Managed by nexus-fleet. Do not edit.\n"


class CronScheduler(SchedulerClient):
    """Scheduler client writing one cron.d file per entry."""

    def __init__(
        self,
        cron_dir: str | None = None,
        file_prefix: str | None = None,
        user: str | None = None,
    ):
        self._cron_dir = Path(cron_dir or settings.cron_dir)
        self._file_prefix = file_prefix or settings.cron_file_prefix
        self._user = user or settings.cron_user
        self._available = False

    @property
    def cron_dir(self) -> Path:
        return self._cron_dir

    def entry_path(self, entry_name: str) -> Path | None:
        """Path of the entry's file; None if cron would ignore such a name."""
        file_name = f"{self._file_prefix}-{entry_name}"
        if not _CRON_FILE_NAME.match(file_name):
            return None
        return self._cron_dir / file_name

    def ensure_available(self) -> None:
        if self._available:
            return
        if not self._cron_dir.is_dir():
            raise SchedulerError(f"cron directory {self._cron_dir} does not exist; is cron installed?")
        if not any(shutil.which(binary) for binary in CRON_BINARIES):
            raise SchedulerError("cron is not installed (no cron or crond on PATH)")
        self._available = True

    def install_recurring(self, entry_name: str, schedule: str, command: str) -> None:
        path = self.entry_path(entry_name)
        if path is None:
            raise SchedulerError(
                f"Schedule entry {entry_name!r} cannot be stored in cron.d "
                "(only letters, digits, '_' and '-' are honoured by cron)"
            )
        content = f"{HEADER}{schedule} {self._user} {command}\n"
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self._cron_dir, prefix=".tmp-")
            try:
                with os.fdopen(fd, "w") as f:
                    f.write(content)
                os.chmod(tmp_name, 0o644)
                os.replace(tmp_name, path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise SchedulerError(f"Failed to write schedule entry {path}: {e}") from e
        logger.info(f"Installed schedule entry {path.name} ({schedule})")

    def delete_entry(self, entry_name: str) -> None:
        path = self.entry_path(entry_name)
        if path is None:
            raise NotFoundError(f"Schedule entry {entry_name!r} not found")
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise NotFoundError(f"Schedule entry {path.name} not found") from e
        except OSError as e:
            raise SchedulerError(f"Failed to remove schedule entry {path}: {e}") from e
        logger.info(f"Removed schedule entry {path.name}")

    def list_entries(self) -> list[str]:
        head = f"{self._file_prefix}-"
        if not self._cron_dir.is_dir():
            return []
        return sorted(
            p.name[len(head):]
            for p in self._cron_dir.iterdir()
            if p.is_file() and p.name.startswith(head)
        )
