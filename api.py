"""
api.py — Discord webhook notifications for live_watcher
"""

import datetime as dt
import logging

import aiohttp

logger = logging.getLogger("live_watcher")

COLOR_LIVE = 0xFF0000
COLOR_WARNING = 0xFFCC00
COLOR_SAVED = 0x2ECC71
REQUEST_TIMEOUT = 15


class Notifier:
    """Posts short status embeds to a Discord webhook.

    Notifications are best effort: a missing webhook, a disabled toggle or a
    failed request never interrupts a watch loop.
    """

    def __init__(self, webhook_url: str = "", enabled: bool = True):
        self.webhook_url = webhook_url.strip()
        self.enabled = enabled

    @property
    def active(self) -> bool:
        return self.enabled and bool(self.webhook_url)

    async def notify(self, title: str, message: str, color: int = COLOR_LIVE) -> bool:
        """Send one notification.

        Args:
            title: Embed title, usually the channel name and event
            message: Embed body
            color: Embed side color

        Returns:
            bool: True if Discord accepted the webhook call, False otherwise
        """
        if not self.active:
            logger.debug(f"Notifications inactive, skipping: {title} - {message}")
            return False

        payload = {
            "embeds": [
                {
                    "title": title,
                    "description": message,
                    "color": color,
                    "timestamp": dt.datetime.now().astimezone().isoformat(),
                }
            ]
        }

        try:
            timeout = aiohttp.ClientTimeout(total=REQUEST_TIMEOUT)
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(self.webhook_url, json=payload) as response:
                    if 200 <= response.status < 300:
                        logger.debug(f"Discord notification sent: {title}")
                        return True
                    logger.warning(
                        f"Failed to send Discord notification '{title}': {response.status} {await response.text()}"
                    )
        except Exception as e:
            logger.error(f"Error sending Discord notification '{title}': {e}")
        return False

    async def stream_detected(self, channel: str, live_url: str) -> bool:
        return await self.notify(f"🔴 {channel} is live", f"Recording started: {live_url}")

    async def low_disk(self, channel: str, free_gb: float, min_gb: float) -> bool:
        return await self.notify(
            f"⚠️ Low disk space ({channel})",
            f"{free_gb:.1f} GB free, {min_gb:g} GB required. Recording skipped.",
            COLOR_WARNING,
        )

    async def stream_saved(self, channel: str, summary: str) -> bool:
        return await self.notify(f"✅ {channel} stream saved", summary, COLOR_SAVED)
