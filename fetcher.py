"""
fetcher.py — yt-dlp invocation for live checks, video capture and chat capture
"""

import asyncio
import codecs
import enum
import logging
import re
import subprocess
from collections import deque
from dataclasses import dataclass, field
from typing import Deque, List, Optional, Tuple

from tenacity import (
    AsyncRetrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from config import ChannelTarget, WatchConfig

logger = logging.getLogger("live_watcher")

OUTPUT_TEMPLATE = "%(upload_date)s_%(title)s.%(ext)s"
CAPTURE_RETRIES = 10
FRAGMENT_RETRIES = 10
RETRY_SLEEP = 5
PROBE_ATTEMPTS = 2
PROBE_RETRY_WAIT = 2
READ_CHUNK = 4096

_LINE_SPLIT = re.compile(r"[\r\n]+")


class JobKind(enum.Enum):
    VIDEO = "VIDEO"
    CHAT = "CHAT"


def _is_progress_line(line: str) -> bool:
    return line.startswith("[download]") and "%" in line


@dataclass
class CaptureJob:
    """One yt-dlp capture process and the output it has produced so far."""

    kind: JobKind
    channel: ChannelTarget
    argv: Tuple[str, ...]
    process: Optional[asyncio.subprocess.Process] = None
    returncode: Optional[int] = None
    error: Optional[str] = None
    lines: Deque[str] = field(default_factory=deque)
    reader: Optional[asyncio.Task] = None

    @property
    def started(self) -> bool:
        return self.error is None

    @property
    def done(self) -> bool:
        return self.returncode is not None

    def drain(self) -> List[str]:
        """Take every buffered line, keeping only the newest progress update.

        yt-dlp redraws its progress bar many times per second; relaying each
        redraw would bury the lines that matter.
        """
        pending = []
        while self.lines:
            pending.append(self.lines.popleft())
        last_progress = None
        for idx, line in enumerate(pending):
            if _is_progress_line(line):
                last_progress = idx
        return [
            line
            for idx, line in enumerate(pending)
            if not _is_progress_line(line) or idx == last_progress
        ]

    async def wait(self) -> int:
        """Wait for the process and its output reader to finish."""
        if self.process is None:
            return self.returncode if self.returncode is not None else -1
        if self.reader is not None:
            await self.reader
        self.returncode = await self.process.wait()
        return self.returncode


async def _buffer_output(stream: asyncio.StreamReader, lines: Deque[str]):
    # Chunked reads because progress output is separated by \r, not \n.
    # The incremental decoder holds back characters split across chunks.
    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    partial = ""
    while True:
        chunk = await stream.read(READ_CHUNK)
        if not chunk:
            break
        partial += decoder.decode(chunk)
        *complete, partial = _LINE_SPLIT.split(partial)
        lines.extend(line.rstrip() for line in complete if line.strip())
    partial += decoder.decode(b"", final=True)
    if partial.strip():
        lines.append(partial.rstrip())


class ExternalFetcherClient:
    """Builds yt-dlp command lines and runs them as subprocesses.

    Capture processes are never terminated from here: stopping the watcher
    leaves yt-dlp to finish or exit on its own, and its partial output is kept.
    """

    def __init__(self, config: WatchConfig, ytdlp: str = "yt-dlp"):
        self.config = config
        self.ytdlp = ytdlp
        self.probe_attempts = PROBE_ATTEMPTS
        self.probe_retry_wait = PROBE_RETRY_WAIT

    # ───── argument builders ───── #
    def _common_args(self) -> List[str]:
        if self.config.cookies_file:
            return ["--cookies", str(self.config.cookies_file)]
        return []

    def output_template(self, target: ChannelTarget) -> str:
        return str(self.config.output_root / target.name / OUTPUT_TEMPLATE)

    def build_probe_args(self, live_url: str) -> Tuple[str, ...]:
        return (
            self.ytdlp,
            "--quiet",
            "--no-warnings",
            *self._common_args(),
            "--get-url",
            live_url,
        )

    def build_video_args(self, target: ChannelTarget) -> Tuple[str, ...]:
        cmd = [
            self.ytdlp,
            target.live_url,
            "-o",
            self.output_template(target),
            "--merge-output-format",
            "mp4",
            "--live-from-start",
            "--no-part",
            "--retries",
            str(CAPTURE_RETRIES),
            "--fragment-retries",
            str(FRAGMENT_RETRIES),
            "--retry-sleep",
            str(RETRY_SLEEP),
            "--retry-sleep",
            f"fragment:{RETRY_SLEEP}",
            "--no-update",
        ]
        if self.config.save_metadata:
            cmd += ["--write-thumbnail", "--write-description", "--write-info-json"]
        cmd += self._common_args()
        return tuple(cmd)

    def build_chat_args(self, target: ChannelTarget) -> Tuple[str, ...]:
        cmd = [
            self.ytdlp,
            target.live_url,
            "-o",
            self.output_template(target),
            "--skip-download",
            "--write-subs",
            "--sub-langs",
            "live_chat",
            "--live-from-start",
            "--no-update",
        ]
        cmd += self._common_args()
        return tuple(cmd)

    def build_args(self, kind: JobKind, target: ChannelTarget) -> Tuple[str, ...]:
        if kind is JobKind.VIDEO:
            return self.build_video_args(target)
        return self.build_chat_args(target)

    # ───── process operations ───── #
    async def _run_quiet(self, argv, timeout: float) -> Tuple[str, int]:
        proc = await asyncio.create_subprocess_exec(
            *argv, stdout=asyncio.subprocess.PIPE, stderr=asyncio.subprocess.DEVNULL
        )
        try:
            out, _ = await asyncio.wait_for(proc.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            # Only the short-lived probe is ever killed here
            proc.kill()
            await proc.wait()
            raise
        return out.decode(errors="replace"), proc.returncode

    async def probe_live(self, live_url: str) -> Optional[str]:
        """Ask yt-dlp for a playable URL of the channel's live stream.

        Args:
            live_url: The channel's /live URL

        Returns:
            str or None: The first resolved media URL if the channel is live,
            None if it is not live or the check failed
        """
        argv = self.build_probe_args(live_url)
        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.probe_attempts),
                wait=wait_fixed(self.probe_retry_wait),
                retry=retry_if_exception_type(asyncio.TimeoutError),
                reraise=True,
            ):
                with attempt:
                    out, returncode = await self._run_quiet(
                        argv, timeout=self.config.probe_timeout
                    )
        except asyncio.TimeoutError:
            logger.warning(f"Live check for {live_url} timed out")
            return None
        except OSError as e:
            logger.warning(f"Live check for {live_url} could not run: {e}")
            return None

        if returncode != 0:
            return None
        for line in out.splitlines():
            if line.strip():
                return line.strip()
        return None

    async def start_capture(self, kind: JobKind, target: ChannelTarget) -> CaptureJob:
        """Launch a video or chat capture and start buffering its output.

        A process that cannot be started is returned as a finished job with
        ``error`` set, so the caller can retire it like any failed capture.
        """
        job = CaptureJob(kind=kind, channel=target, argv=self.build_args(kind, target))
        try:
            job.process = await asyncio.create_subprocess_exec(
                *job.argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.STDOUT,
                stdin=asyncio.subprocess.DEVNULL,
            )
        except OSError as e:
            job.error = str(e)
            job.returncode = -1
            return job
        job.reader = asyncio.create_task(_buffer_output(job.process.stdout, job.lines))
        return job

    async def download_video(self, target: ChannelTarget) -> CaptureJob:
        return await self.start_capture(JobKind.VIDEO, target)

    async def download_chat(self, target: ChannelTarget) -> CaptureJob:
        return await self.start_capture(JobKind.CHAT, target)

    async def self_update(self) -> bool:
        """Run ``yt-dlp -U`` once. Failures are logged and otherwise ignored."""
        logger.info("Checking for yt-dlp updates...")
        try:
            proc = await asyncio.create_subprocess_exec(
                self.ytdlp,
                "-U",
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
            )
            out, _ = await proc.communicate()
        except Exception as e:
            logger.warning(f"yt-dlp self-update failed: {e}")
            return False

        for line in out.decode(errors="replace").splitlines():
            if line.strip():
                logger.info(f"yt-dlp: {line.strip()}")
        if proc.returncode != 0:
            logger.warning(
                f"yt-dlp self-update exited with {proc.returncode}, continuing with installed version"
            )
            return False
        return True
