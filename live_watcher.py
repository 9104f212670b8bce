#!/usr/bin/env python3
"""
live_watcher.py — 24/7 live stream watcher that captures video and chat with yt-dlp
"""

import asyncio
import contextlib
import logging
import sys
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Tuple

from api import Notifier
from config import ChannelTarget, WatchConfig, load_config
from fetcher import CaptureJob, ExternalFetcherClient, JobKind
from guards import free_space_gb, has_in_flight_artifacts
from utils import (
    LOG_DATEFMT,
    LOG_FORMAT,
    ChannelTagFilter,
    channel_logger,
    human_size,
    latest_video_file,
)
from verifications import verify_paths, verify_tools

# ───── timings ───── #
LOW_DISK_BACKOFF = 300
POST_STREAM_COOLDOWN = 30
OUTPUT_RELAY_INTERVAL = 5
STAGGER_SECONDS = 5

logger = logging.getLogger("live_watcher")

Sleeper = Callable[[float], Awaitable[None]]


# ───── logging setup ───── #
def setup_logging(log_path: Optional[Path] = None) -> logging.Logger:
    """Send watcher logs to the console and, if possible, to an append-only file.

    Both handlers share one format, ``[YYYY-MM-DD HH:MM:SS] [tag] message``.
    Handler locks keep lines from concurrent channel loops intact.
    """
    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT)

    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    ch.addFilter(ChannelTagFilter())
    logger.addHandler(ch)

    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(str(log_path), mode="a", encoding="utf-8")
        except OSError as e:
            logger.error(f"Cannot open log file {log_path}: {e}")
        else:
            file_handler.setFormatter(formatter)
            file_handler.addFilter(ChannelTagFilter())
            logger.addHandler(file_handler)
    return logger


# ───── ChannelWatchLoop ───── #
class ChannelWatchLoop:
    """Watches one channel and records each live stream it finds.

    Every cycle probes the channel's /live URL. When the channel is live and
    both guards pass, a video capture and a chat capture are started together
    and the loop waits for both before it reports the saved file and cools
    down. Errors inside a cycle are logged and the next cycle starts after the
    normal check interval.
    """

    def __init__(
        self,
        target: ChannelTarget,
        config: WatchConfig,
        client: ExternalFetcherClient,
        notifier: Notifier,
        sleep: Sleeper = asyncio.sleep,
        start_delay: float = 0,
    ):
        self.target = target
        self.config = config
        self.client = client
        self.notifier = notifier
        self.start_delay = start_delay
        self._sleep = sleep
        self.log = channel_logger(logger, target.name)
        self.jobs: Tuple[CaptureJob, ...] = ()

    async def run(self):
        """Cycle forever. Only cancellation ends the loop."""
        if self.start_delay:
            await self._sleep(self.start_delay)
        self.log.info(f"Watching {self.target.live_url}")
        while True:
            try:
                delay = await self.step()
            except asyncio.CancelledError:
                raise
            except Exception:
                self.log.exception("Unexpected error, retrying after the check interval")
                delay = self.config.check_interval
            await self._sleep(delay)

    async def step(self) -> float:
        """Run one probe/guard/capture cycle.

        Returns:
            float: Seconds to wait before the next cycle
        """
        interval = self.config.check_interval
        resolved = await self.client.probe_live(self.target.live_url)
        if not resolved:
            self.log.info(f"Not live, next check in {interval}s")
            return interval

        self.log.info("Stream is LIVE")
        self.target.output_dir.mkdir(parents=True, exist_ok=True)

        if has_in_flight_artifacts(self.target.output_dir):
            self.log.info(
                f"Download already in progress in {self.target.output_dir}, skipping"
            )
            return interval

        free = free_space_gb(self.target.output_dir)
        if free is None:
            self.log.warning("Free disk space unknown, recording anyway")
        elif free < self.config.min_free_disk_gb:
            self.log.warning(
                f"Low disk space: {free:.1f} GB free, {self.config.min_free_disk_gb:g} GB required. "
                f"Retrying in {LOW_DISK_BACKOFF}s"
            )
            await self.notifier.low_disk(self.target.name, free, self.config.min_free_disk_gb)
            return LOW_DISK_BACKOFF

        await self.notifier.stream_detected(self.target.name, self.target.live_url)
        jobs = await self._capture()
        await self._report(jobs)
        self.log.info(f"Cooling down for {POST_STREAM_COOLDOWN}s")
        return POST_STREAM_COOLDOWN

    async def _capture(self) -> Tuple[CaptureJob, ...]:
        """Start the video and chat captures and wait for both to finish.

        Output is relayed every OUTPUT_RELAY_INTERVAL seconds while waiting.
        A capture that fails has no effect on its sibling.
        """
        self.log.info(f"START capture → {self.client.output_template(self.target)}")
        results = await asyncio.gather(
            self.client.download_video(self.target),
            self.client.download_chat(self.target),
            return_exceptions=True,
        )
        jobs = []
        for kind, result in zip((JobKind.VIDEO, JobKind.CHAT), results):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                result = CaptureJob(
                    kind=kind, channel=self.target, argv=(), returncode=-1, error=str(result)
                )
            jobs.append(result)
        self.jobs = tuple(jobs)
        for job in self.jobs:
            if not job.started:
                self.log.error(f"[{job.kind.value}] Could not start yt-dlp: {job.error}")

        waiters = {asyncio.ensure_future(job.wait()): job for job in self.jobs}
        pending = set(waiters)
        try:
            while pending:
                _, pending = await asyncio.wait(pending, timeout=OUTPUT_RELAY_INTERVAL)
                self._relay_output()
        finally:
            # Stops waiting only; the yt-dlp processes keep running
            for waiter in pending:
                waiter.cancel()

        for waiter, job in waiters.items():
            error = waiter.exception()
            if error is not None:
                self.log.error(f"[{job.kind.value}] Error while waiting for capture: {error}")
        self._relay_output()

        jobs, self.jobs = self.jobs, ()
        return jobs

    def _relay_output(self):
        for job in self.jobs:
            for line in job.drain():
                self.log.info(f"[{job.kind.value}] {line}")

    async def _report(self, jobs: Tuple[CaptureJob, ...]):
        for job in jobs:
            if not job.started:
                continue
            if job.returncode == 0:
                self.log.info(f"[{job.kind.value}] Finished successfully")
            else:
                self.log.warning(f"[{job.kind.value}] yt-dlp exited with code {job.returncode}")

        video = latest_video_file(self.target.output_dir)
        if video is None:
            self.log.warning("Stream ended but no video file was found")
            return
        summary = f"{video.name} ({human_size(video.stat().st_size)})"
        self.log.info(f"Stream saved: {summary}")
        await self.notifier.stream_saved(self.target.name, summary)


# ───── MultiChannelScheduler ───── #
class MultiChannelScheduler:
    """Runs one ChannelWatchLoop per configured channel."""

    def __init__(
        self,
        config: WatchConfig,
        client: ExternalFetcherClient,
        notifier: Notifier,
        sleep: Sleeper = asyncio.sleep,
    ):
        self.config = config
        self.loops: List[ChannelWatchLoop] = [
            ChannelWatchLoop(
                target,
                config,
                client,
                notifier,
                sleep=sleep,
                start_delay=idx * STAGGER_SECONDS,
            )
            for idx, target in enumerate(config.channels)
        ]

    async def run(self):
        """Run every loop until cancelled.

        A single channel runs directly in this task. Several channels each get
        their own task so a slow probe or a long capture never holds up the
        others.
        """
        if not self.loops:
            raise ValueError("No channels configured")
        if len(self.loops) == 1:
            await self.loops[0].run()
            return

        tasks = [
            asyncio.create_task(loop.run(), name=f"watch:{loop.target.name}")
            for loop in self.loops
        ]
        try:
            await asyncio.gather(*tasks)
        finally:
            for task in tasks:
                task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await asyncio.gather(*tasks, return_exceptions=True)


async def _run(config: WatchConfig, client: ExternalFetcherClient, notifier: Notifier):
    if config.auto_update:
        await client.self_update()
    await MultiChannelScheduler(config, client, notifier).run()


def main():
    """Application entry point.

    Loads the embedded configuration, verifies the required tools and output
    directory, then watches every channel until the process is stopped. Any
    startup failure exits with status 1.
    """
    try:
        config = load_config()
    except ValueError as e:
        setup_logging(None)
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)
    setup_logging(config.log_path)
    logger.info(f"Live watcher starting with {len(config.channels)} channel(s)")

    if not config.channels:
        logger.error("No channels configured in env.py, exiting.")
        sys.exit(1)

    ytdlp = verify_tools(config)
    if ytdlp is None:
        logger.error("Exiting because required tools are missing.")
        sys.exit(1)

    if not verify_paths(config):
        logger.error("Exiting due to output directory errors.")
        sys.exit(1)

    client = ExternalFetcherClient(config, ytdlp)
    notifier = Notifier(config.discord_webhook_url, config.notifications_enabled)
    try:
        asyncio.run(_run(config, client, notifier))
    except KeyboardInterrupt:
        logger.info("Keyboard interrupt received, running captures are left to finish")


if __name__ == "__main__":
    main()
