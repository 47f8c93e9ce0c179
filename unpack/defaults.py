import os
import platform
from typing import Final

DEFAULT_SNAPSHOTTER_ENV: Final[str] = "UNPACK_DEFAULT_SNAPSHOTTER"

# The snapshotter used when nothing else is configured, by operating system
DEFAULT_SNAPSHOTTERS: Final[dict[str, str]] = {
    "linux": "overlayfs",
    "windows": "windows",
    "darwin": "native",
    "freebsd": "zfs",
}

FALLBACK_SNAPSHOTTER: Final[str] = "overlayfs"


def default_snapshotter(os_name: str | None = None) -> str:
    """
    Returns the default snapshotter key for the process.  The environment
    variable takes precedence, then the table entry for the given operating
    system (the host's, if not given)
    """
    if configured := os.getenv(DEFAULT_SNAPSHOTTER_ENV):
        return configured
    if os_name is None:
        os_name = platform.system()
    return DEFAULT_SNAPSHOTTERS.get(os_name.lower(), FALLBACK_SNAPSHOTTER)
