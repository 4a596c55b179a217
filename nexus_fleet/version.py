"""Version information for the console.

Read from the VERSION file shipped with the package, with the latest git tag
as a fallback for source checkouts.
"""

import subprocess
from pathlib import Path


def get_version() -> str:
    """Get the console version (e.g., "0.1.0")."""
    version_file = Path(__file__).parent / "VERSION"
    if version_file.exists():
        try:
            version = version_file.read_text().strip()
            if version:
                return version
        except OSError:
            pass

    try:
        result = subprocess.run(
            ["git", "describe", "--tags", "--abbrev=0"],
            capture_output=True,
            text=True,
            timeout=5,
            cwd=Path(__file__).parent,
        )
        if result.returncode == 0:
            tag = result.stdout.strip()
            if tag.startswith("v"):
                tag = tag[1:]
            return tag
    except (OSError, subprocess.SubprocessError):
        pass

    return "0.0.0"


__version__ = get_version()
