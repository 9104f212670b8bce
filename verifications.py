"""
verifications.py — Startup verification functions for live_watcher
"""

import logging
import os
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Optional

from config import WatchConfig

# Setup logger
logger = logging.getLogger("live_watcher")

INSTALL_TIPS = {
    "yt-dlp": "Install with 'pip install yt-dlp' or from github.com/yt-dlp/yt-dlp",
    "ffmpeg": "Download from ffmpeg.org or use apt/yum install ffmpeg",
}


def resolve_tool(exe_name: str, configured: str = "") -> Optional[str]:
    """Resolve a tool from its configured path, falling back to PATH.

    Args:
        exe_name: Executable name to look up on PATH
        configured: Explicit path from the configuration, may be empty

    Returns:
        str or None: The usable executable path, None if it cannot be found
    """
    if configured:
        path = Path(os.path.expandvars(os.path.expanduser(configured)))
        if path.exists():
            return str(path)
        logger.error(f"Configured path for {exe_name} not found: {path}")
        return None
    return shutil.which(exe_name)


def _verify_tool(exe_name: str, configured: str, version_flag: str) -> Optional[str]:
    """Check that a required tool can be found and runs."""
    is_win = sys.platform.startswith("win")
    exe = resolve_tool(exe_name, configured)
    if exe is None:
        tip = INSTALL_TIPS.get(exe_name, "")
        logger.error(f"{exe_name} not found. {tip}".strip())
        return None
    try:
        result = subprocess.run(
            [exe, version_flag],
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            creationflags=subprocess.CREATE_NO_WINDOW if is_win else 0,
        )
    except OSError as e:
        logger.error(f"{exe_name} error: {e}")
        return None

    if result.returncode != 0:
        logger.error(f"{exe_name} check failed")
        return None
    version = (result.stdout or "").strip().splitlines()
    logger.info(f"{exe_name} found: {version[0] if version else exe}")
    return exe


def verify_tools(config: WatchConfig) -> Optional[str]:
    """Verify that yt-dlp and ffmpeg are both available.

    ffmpeg is never called directly but yt-dlp needs it to merge the video
    and audio streams of a live capture.

    Returns:
        str or None: The yt-dlp executable to use, None if either tool is missing
    """
    ytdlp = _verify_tool("yt-dlp", config.ytdlp_path, "--version")
    ffmpeg = _verify_tool("ffmpeg", config.ffmpeg_path, "-version")
    if ytdlp is None or ffmpeg is None:
        return None
    return ytdlp


def verify_paths(config: WatchConfig) -> bool:
    """Verify the output root exists and is writable, creating it if needed.

    Returns:
        bool: True if recordings can be written, False otherwise
    """
    root = config.output_root
    if not root.exists():
        try:
            root.mkdir(parents=True, exist_ok=True)
            logger.info(f"Created output directory at {root}")
        except OSError as e:
            logger.error(f"Cannot create output directory at {root}: {e}")
            return False

    test_file = root / ".write_test"
    try:
        test_file.write_text("test")
        test_file.unlink()
    except OSError as e:
        logger.error(f"No write permission for output directory at {root}: {e}")
        return False

    if config.cookies_file and not config.cookies_file.is_file():
        logger.warning(f"Cookies file {config.cookies_file} not found, yt-dlp may fail")
    return True
