"""
Root pytest fixtures for live_watcher tests.

Provides a temporary output root, a channel target, a configuration and a
mocked notifier. Fakes for yt-dlp and sleeping live in tests/mocks.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from api import Notifier
from config import ChannelTarget, WatchConfig


@pytest.fixture
def output_root(tmp_path) -> Path:
    root = tmp_path / "streams"
    root.mkdir()
    return root


@pytest.fixture
def target(output_root) -> ChannelTarget:
    return ChannelTarget.from_url("https://www.youtube.com/@TestChannel", output_root)


@pytest.fixture
def watch_config(output_root, target) -> WatchConfig:
    return WatchConfig(
        output_root=output_root,
        channels=(target,),
        check_interval=45,
        min_free_disk_gb=1.0,
        save_metadata=True,
        notifications_enabled=False,
        auto_update=False,
    )


@pytest.fixture
def notifier():
    """Notifier whose public methods are AsyncMocks."""
    mock = MagicMock(spec=Notifier)
    mock.stream_detected = AsyncMock(return_value=True)
    mock.low_disk = AsyncMock(return_value=True)
    mock.stream_saved = AsyncMock(return_value=True)
    mock.notify = AsyncMock(return_value=True)
    return mock
