"""
guards.py — Pre-recording checks for duplicate captures and free disk space
"""

import logging
import re
import shutil
from pathlib import Path
from typing import Optional

from utils import GIB

logger = logging.getLogger("live_watcher")

# yt-dlp leaves these behind while a download is still running
IN_PROGRESS_SUFFIXES = (".part", ".ytdl", ".temp", ".tmp")
# Fragment files are named <file>-Frag<N>, with or without .part
FRAGMENT_PATTERN = re.compile(r"-Frag\d+")


def is_in_flight_artifact(path: Path) -> bool:
    name = path.name
    return name.endswith(IN_PROGRESS_SUFFIXES) or FRAGMENT_PATTERN.search(name) is not None


def has_in_flight_artifacts(channel_dir: Path) -> bool:
    """Check whether a channel directory holds files of an unfinished download.

    The filesystem is the only state consulted, which keeps the answer valid
    across watcher restarts while an earlier capture is still writing.

    Args:
        channel_dir: The channel's output directory

    Returns:
        bool: True if any in-progress artifact is present, False otherwise
    """
    channel_dir = Path(channel_dir)
    if not channel_dir.is_dir():
        return False
    return any(
        item.is_file() and is_in_flight_artifact(item) for item in channel_dir.iterdir()
    )


def free_space_gb(path: Path) -> Optional[float]:
    """Free space in GiB on the volume holding ``path``, or None if unknown."""
    try:
        usage = shutil.disk_usage(str(path))
    except OSError as e:
        logger.warning(f"Could not determine free disk space for {path}: {e}")
        return None
    return usage.free / GIB
