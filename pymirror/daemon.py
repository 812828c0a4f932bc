"""Background daemon that runs sync cycles on a timer.

The daemon alternates between sleeping and syncing::

    Sleeping -> Woken (timer expiry | wake request) -> Syncing -> Sleeping

Cycles are strictly serial: the next one starts only after the previous
one returned and a wait elapsed (or was cut short by ``wake()``).
SIGUSR1 requests an early wake-up, SIGTERM and SIGINT stop the loop.

Wake requests go through a non-blocking pipe that the sleep selects on.
Writing to it takes no lock, so ``wake()`` and ``stop()`` are safe to
call from signal handlers.
"""

import logging
import os
import select
import signal
import sys
from pathlib import Path
from typing import Optional, Union

from .output import OutputFormatter
from .sync.engine import SyncEngine
from .sync.roots import SyncRoots
from .utils import DEFAULT_SLEEP_TIME

logger = logging.getLogger(__name__)


class MirrorDaemon:
    """Runs the sync engine periodically for one pair of roots."""

    def __init__(
        self,
        roots: SyncRoots,
        sleep_time: int = DEFAULT_SLEEP_TIME,
        engine: Optional[SyncEngine] = None,
    ):
        """Initialize mirror daemon.

        Args:
            roots: Source/destination roots and options
            sleep_time: Seconds to wait between cycles
            engine: Sync engine (default: a quiet SyncEngine)
        """
        self.roots = roots
        self.sleep_time = sleep_time
        self.engine = engine or SyncEngine(output=OutputFormatter(quiet=True))
        self._wake_read, self._wake_write = os.pipe()
        os.set_blocking(self._wake_read, False)
        os.set_blocking(self._wake_write, False)
        self._running = False
        self._stop_signal: Optional[int] = None
        self.cycles = 0

    @property
    def running(self) -> bool:
        return self._running

    def close(self) -> None:
        """Release the wake pipe."""
        for fd in (self._wake_read, self._wake_write):
            if fd >= 0:
                os.close(fd)
        self._wake_read = self._wake_write = -1

    def wake(self) -> None:
        """Cut the current wait short and start the next cycle."""
        try:
            os.write(self._wake_write, b"\0")
        except BlockingIOError:
            # Pipe full: a wake-up is already pending
            pass

    def stop(self) -> None:
        """Stop the loop after the current cycle."""
        self._running = False
        self.wake()

    def _drain_wake_pipe(self) -> bool:
        """Consume pending wake requests.

        Returns:
            True if at least one request was pending
        """
        woken = False
        while True:
            try:
                data = os.read(self._wake_read, 4096)
            except BlockingIOError:
                return woken
            if not data:
                return woken
            woken = True

    def run_cycle(self) -> Optional[dict]:
        """Run a single sync cycle.

        Failures never escape: they are logged and the daemon survives
        until the next wake event.

        Returns:
            Sync statistics, or None if the cycle failed
        """
        logger.info("woke up")
        self.cycles += 1
        try:
            return self.engine.sync(self.roots)
        except Exception:
            logger.exception(f"Sync cycle {self.cycles} failed")
            return None

    def wait(self) -> bool:
        """Sleep until the timer expires or a wake request arrives.

        Returns:
            True if the wait was cut short by wake() or stop()
        """
        logger.info(f"sleeping for {self.sleep_time} seconds")
        select.select([self._wake_read], [], [], self.sleep_time)
        woken = self._drain_wake_pipe()
        if woken and self._running:
            logger.info("received wake signal")
        return woken

    def run_forever(self, max_cycles: Optional[int] = None) -> None:
        """Alternate between syncing and sleeping until stopped.

        Args:
            max_cycles: Stop after this many cycles (None: run until stop())
        """
        self._running = True
        logger.info(f"Daemon started: {self.roots}, sleep time {self.sleep_time}s")
        try:
            while self._running:
                self.run_cycle()
                if max_cycles is not None and self.cycles >= max_cycles:
                    break
                if not self._running:
                    break
                self.wait()
        finally:
            self._running = False
            if self._stop_signal is not None:
                logger.info(f"Received signal {self._stop_signal}, shutting down...")
            logger.info("Daemon stopped")

    def install_signal_handlers(self) -> None:
        """Route SIGUSR1 to wake() and SIGTERM/SIGINT to stop().

        The handlers only write to the wake pipe and set flags.
        """

        def wake_handler(signum, frame):
            self.wake()

        def stop_handler(signum, frame):
            self._stop_signal = signum
            self.stop()

        signal.signal(signal.SIGUSR1, wake_handler)
        signal.signal(signal.SIGTERM, stop_handler)
        signal.signal(signal.SIGINT, stop_handler)


def daemonize() -> int:
    """Detach the current process into the background.

    The parent prints the daemon's PID and exits; only the child returns.

    Returns:
        PID of the daemon process

    Raises:
        OSError: If fork() or setsid() fails
    """
    pid = os.fork()
    if pid > 0:
        print(f"daemon PID: {pid}")
        sys.stdout.flush()
        os._exit(0)

    os.setsid()
    os.umask(0)

    sys.stdout.flush()
    sys.stderr.flush()
    devnull = os.open(os.devnull, os.O_RDWR)
    for fd in (0, 1, 2):
        os.dup2(devnull, fd)
    if devnull > 2:
        os.close(devnull)

    return os.getpid()


def write_pid_file(path: Union[str, Path], pid: Optional[int] = None) -> Path:
    """Write a PID to a file.

    Args:
        path: PID file path
        pid: PID to write (default: current process)

    Returns:
        Path of the written file
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(f"{pid if pid is not None else os.getpid()}\n", encoding="utf-8")
    return path


def read_pid_file(path: Union[str, Path]) -> int:
    """Read a PID from a file.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: If the file does not hold a PID
    """
    text = Path(path).read_text(encoding="utf-8").strip()
    try:
        return int(text)
    except ValueError as e:
        raise ValueError(f"Invalid PID file {path}: {text!r}") from e


def send_wake_signal(pid: int) -> None:
    """Ask a running daemon to start its next cycle now.

    Raises:
        ProcessLookupError: If no process has that PID
        PermissionError: If the process belongs to another user
    """
    os.kill(pid, signal.SIGUSR1)
