#!/usr/bin/env python3
"""
live_watchdog.py — Keeps live_watcher running by relaunching it whenever it exits
"""

import logging
import subprocess
import sys
import time
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from utils import LOG_DATEFMT

logger = logging.getLogger("live_watchdog")


def setup_logging(log_path: Optional[Path] = None) -> logging.Logger:
    """Log to the console and an append-only file with a fixed WATCHDOG tag."""
    logger.setLevel(logging.INFO)
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter("[%(asctime)s] [WATCHDOG] %(message)s", datefmt=LOG_DATEFMT)

    ch = logging.StreamHandler()
    ch.setFormatter(formatter)
    logger.addHandler(ch)

    if log_path is not None:
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(str(log_path), mode="a", encoding="utf-8")
        except OSError as e:
            logger.error(f"Cannot open log file {log_path}: {e}")
        else:
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
    return logger


def default_command() -> List[str]:
    return [sys.executable, "-m", "live_watcher"]


class Supervisor:
    """Relaunches the watcher process every time it exits.

    The watcher is meant to run forever, so every exit counts as a crash,
    including exit code 0. The supervisor itself only stops on an operator
    interrupt.
    """

    def __init__(
        self,
        command: Optional[Sequence[str]] = None,
        restart_delay: float = 10,
        sleep: Callable[[float], None] = time.sleep,
        cwd: Optional[Path] = None,
    ):
        self.command = list(command) if command else default_command()
        self.restart_delay = restart_delay
        self.cwd = cwd
        self._sleep = sleep
        self.restart_count = 0
        self.last_pid: Optional[int] = None
        self.last_exit_code: Optional[int] = None

    def run_once(self) -> Optional[int]:
        """Launch the watcher, wait for it to exit, log it, then sleep.

        Returns:
            int or None: The watcher's exit code, None if it could not be launched
        """
        logger.info(f"Starting watcher: {' '.join(self.command)}")
        try:
            proc = subprocess.Popen(self.command, cwd=str(self.cwd) if self.cwd else None)
        except OSError as e:
            self.restart_count += 1
            self.last_pid = None
            self.last_exit_code = None
            logger.error(
                f"Failed to start watcher: {e} (restart #{self.restart_count}), retrying in {self.restart_delay}s"
            )
            self._sleep(self.restart_delay)
            return None

        self.last_pid = proc.pid
        logger.info(f"Watcher running with PID {proc.pid}")
        exit_code = proc.wait()

        self.restart_count += 1
        self.last_exit_code = exit_code
        if exit_code == 0:
            logger.warning(
                f"Watcher exited with code 0, possibly unintentional (restart #{self.restart_count})"
            )
        else:
            logger.error(f"Watcher crashed with exit code {exit_code} (restart #{self.restart_count})")
        logger.info(f"Restarting in {self.restart_delay}s...")
        self._sleep(self.restart_delay)
        return exit_code

    def run(self):
        """Relaunch the watcher forever."""
        logger.info("Watchdog started")
        while True:
            self.run_once()


def main():
    """Watchdog entry point, configured by env.py."""
    try:
        import env
    except ModuleNotFoundError as e:
        if e.name != "env":
            raise
        sys.exit("env.py not found, copy NAME_MEenv.py to env.py and fill it in")

    command = list(getattr(env, "WATCHER_COMMAND", []) or []) or default_command()
    setup_logging(Path(env.WATCHDOG_LOG).expanduser())
    supervisor = Supervisor(
        command=command,
        restart_delay=getattr(env, "RESTART_DELAY", 10),
        cwd=Path(__file__).parent.resolve(),
    )
    try:
        supervisor.run()
    except KeyboardInterrupt:
        logger.info(f"Watchdog stopped by operator after {supervisor.restart_count} restart(s)")


if __name__ == "__main__":
    main()
