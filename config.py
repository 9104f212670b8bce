"""
config.py — Typed configuration for live_watcher built from env.py
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
from urllib.parse import urlparse

MIN_CHECK_INTERVAL = 30
# YouTube path prefixes that precede the actual channel id or handle
CHANNEL_PATH_PREFIXES = ("channel", "c", "user")


def channel_name_from_url(url: str) -> str:
    """Derive a channel's folder name from its URL.

    The name is the first path segment after the host with any leading "@"
    removed, so ``https://example.com/@Name/extra`` becomes ``Name``. When that
    segment is one of the YouTube prefixes ``channel``, ``c`` or ``user`` the
    segment after it is used instead, so ``/channel/UCabc`` becomes ``UCabc``.

    Args:
        url: Channel URL as written in the configuration

    Returns:
        The derived channel name

    Raises:
        ValueError: If the URL has no usable path segment
    """
    path = urlparse(url.strip()).path
    segments = [s.strip() for s in path.split("/") if s.strip()]
    if len(segments) > 1 and segments[0].lower() in CHANNEL_PATH_PREFIXES:
        segments = segments[1:]
    if segments:
        name = segments[0].lstrip("@")
        if name:
            return name
    raise ValueError(f"Cannot derive a channel name from {url!r}")


@dataclass(frozen=True)
class ChannelTarget:
    channel_url: str
    name: str
    live_url: str
    output_dir: Path

    @classmethod
    def from_url(cls, url: str, output_root: Path) -> "ChannelTarget":
        url = url.strip().rstrip("/")
        name = channel_name_from_url(url)
        return cls(
            channel_url=url,
            name=name,
            live_url=f"{url}/live",
            output_dir=Path(output_root) / name,
        )


@dataclass(frozen=True)
class WatchConfig:
    output_root: Path
    channels: Tuple[ChannelTarget, ...] = ()
    check_interval: int = 60
    min_free_disk_gb: float = 10.0
    save_metadata: bool = True
    notifications_enabled: bool = True
    auto_update: bool = True
    probe_timeout: float = 20.0
    cookies_file: Optional[Path] = None
    ytdlp_path: str = ""
    ffmpeg_path: str = ""
    discord_webhook_url: str = field(default="", repr=False)

    @property
    def log_path(self) -> Path:
        return self.output_root / "watcher.log"


def _resolve_path(p: str) -> Path:
    return Path(os.path.expandvars(os.path.expanduser(p)))


def load_config(settings=None) -> WatchConfig:
    """Build a WatchConfig from the embedded env.py settings.

    Intervals are clamped to their minimum, repeated channel URLs are dropped
    (first occurrence wins) and every channel URL is parsed up front so a bad
    entry fails at startup rather than inside a running loop. Two different
    URLs that map to the same folder name are rejected.

    Args:
        settings: Module or object exposing the env.py names. Defaults to env.

    Returns:
        WatchConfig: The normalised configuration

    Raises:
        ValueError: If env.py is missing, a channel URL is unusable or two
            channels share a name
    """
    if settings is None:
        try:
            import env as settings
        except ModuleNotFoundError as e:
            if e.name != "env":
                raise
            raise ValueError("env.py not found, copy NAME_MEenv.py to env.py and fill it in") from e

    output_root = _resolve_path(str(settings.OUTPUT_ROOT))

    channels = []
    seen_urls = set()
    names = {}
    for url in settings.CHANNELS:
        if not url or not str(url).strip() or str(url).strip().startswith("#"):
            continue
        target = ChannelTarget.from_url(str(url), output_root)
        if target.channel_url in seen_urls:
            continue
        other = names.get(target.name.lower())
        if other is not None:
            raise ValueError(
                f"Channels {other!r} and {target.channel_url!r} both record into "
                f"folder {target.name!r}"
            )
        seen_urls.add(target.channel_url)
        names[target.name.lower()] = target.channel_url
        channels.append(target)

    cookies = str(getattr(settings, "COOKIES_FILE", "") or "").strip()

    return WatchConfig(
        output_root=output_root,
        channels=tuple(channels),
        check_interval=max(MIN_CHECK_INTERVAL, int(settings.CHECK_INTERVAL)),
        min_free_disk_gb=float(settings.MIN_FREE_DISK_GB),
        save_metadata=bool(getattr(settings, "SAVE_METADATA", True)),
        notifications_enabled=bool(getattr(settings, "NOTIFICATIONS_ENABLED", True)),
        auto_update=bool(getattr(settings, "AUTO_UPDATE", True)),
        probe_timeout=float(getattr(settings, "PROBE_TIMEOUT", 20)),
        cookies_file=_resolve_path(cookies) if cookies else None,
        ytdlp_path=str(getattr(settings, "YTDLP_PATH", "") or "").strip(),
        ffmpeg_path=str(getattr(settings, "FFMPEG_PATH", "") or "").strip(),
        discord_webhook_url=str(getattr(settings, "DISCORD_WEBHOOK_URL", "") or "").strip(),
    )
