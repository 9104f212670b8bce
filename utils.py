"""
utils.py — Utility functions for live_watcher
"""

import logging
from pathlib import Path
from typing import Optional

DEFAULT_TAG = "WATCHER"
LOG_FORMAT = "[%(asctime)s] [%(channel)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

VIDEO_EXTENSIONS = (".mp4", ".mkv", ".webm", ".ts", ".flv", ".m4a")

GIB = 1024**3
MIB = 1024**2


class ChannelTagFilter(logging.Filter):
    """Give every record a ``channel`` attribute so the shared format never fails."""

    def __init__(self, default: str = DEFAULT_TAG):
        super().__init__()
        self.default = default

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "channel"):
            record.channel = self.default
        return True


def channel_logger(logger: logging.Logger, tag: str) -> logging.LoggerAdapter:
    """Wrap a logger so that its records carry ``tag`` in the channel column."""
    return logging.LoggerAdapter(logger, {"channel": tag})


def human_size(size_bytes: int) -> str:
    """Format a byte count as GB when at least one GiB, otherwise as MB.

    Args:
        size_bytes: The size to format

    Returns:
        A string like "1.50 GB" or "734.21 MB"
    """
    if size_bytes >= GIB:
        return f"{size_bytes / GIB:.2f} GB"
    return f"{size_bytes / MIB:.2f} MB"


def latest_video_file(directory: Path) -> Optional[Path]:
    """Return the most recently modified video file in ``directory``.

    Only files with a known video container extension are considered so that
    chat logs and metadata sidecars are never reported as the recording.
    """
    if not directory.is_dir():
        return None
    newest = None
    newest_mtime = -1.0
    for item in directory.iterdir():
        if not item.is_file() or item.suffix.lower() not in VIDEO_EXTENSIONS:
            continue
        try:
            mtime = item.stat().st_mtime
        except OSError:
            continue
        if mtime > newest_mtime:
            newest, newest_mtime = item, mtime
    return newest
