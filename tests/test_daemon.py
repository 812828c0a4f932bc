"""Unit tests for the mirror daemon."""

import logging
import os
import signal
import threading
import time
from unittest.mock import MagicMock, patch

import pytest

from pymirror.daemon import (
    MirrorDaemon,
    read_pid_file,
    send_wake_signal,
    write_pid_file,
)
from pymirror.sync import SyncEngine, SyncRoots


@pytest.fixture
def roots(tmp_path):
    (tmp_path / "src").mkdir()
    return SyncRoots(tmp_path / "src", tmp_path / "dest")


@pytest.fixture
def engine():
    engine = MagicMock(spec=SyncEngine)
    engine.sync.return_value = {"copies": 0, "errors": 0}
    return engine


@pytest.fixture
def make_daemon():
    """Build daemons and release their wake pipes afterwards."""
    daemons = []

    def factory(*args, **kwargs):
        daemon = MirrorDaemon(*args, **kwargs)
        daemons.append(daemon)
        return daemon

    yield factory
    for daemon in daemons:
        daemon.close()


class TestMirrorDaemon:
    """Tests for MirrorDaemon class."""

    def test_defaults(self, make_daemon, roots):
        daemon = make_daemon(roots)

        assert daemon.sleep_time == 300
        assert daemon.engine.output.quiet is True
        assert not daemon.running
        assert daemon.cycles == 0

    def test_run_cycle(self, make_daemon, roots, engine, caplog):
        daemon = make_daemon(roots, engine=engine)

        with caplog.at_level(logging.INFO, logger="pymirror"):
            stats = daemon.run_cycle()

        assert stats == {"copies": 0, "errors": 0}
        engine.sync.assert_called_once_with(roots)
        assert daemon.cycles == 1
        assert "woke up" in caplog.text

    def test_run_cycle_survives_exceptions(self, make_daemon, roots, engine, caplog):
        engine.sync.side_effect = RuntimeError("disk on fire")
        daemon = make_daemon(roots, engine=engine)

        with caplog.at_level(logging.ERROR, logger="pymirror"):
            assert daemon.run_cycle() is None

        assert "Sync cycle 1 failed" in caplog.text
        assert "disk on fire" in caplog.text

    def test_real_cycle_mirrors_files(self, make_daemon, roots):
        (roots.source / "a.txt").write_text("hello")
        daemon = make_daemon(roots)

        stats = daemon.run_cycle()

        assert stats["copies"] == 1
        assert (roots.destination / "a.txt").read_text() == "hello"

    def test_run_forever_max_cycles(self, make_daemon, roots, engine, caplog):
        daemon = make_daemon(roots, sleep_time=0, engine=engine)

        with caplog.at_level(logging.INFO, logger="pymirror"):
            daemon.run_forever(max_cycles=3)

        assert engine.sync.call_count == 3
        assert not daemon.running
        assert caplog.text.count("sleeping for 0 seconds") == 2
        assert "Daemon stopped" in caplog.text

    def test_failed_cycle_does_not_stop_loop(self, make_daemon, roots, engine):
        engine.sync.side_effect = [OSError("gone"), {"copies": 1, "errors": 0}]
        daemon = make_daemon(roots, sleep_time=0, engine=engine)

        daemon.run_forever(max_cycles=2)

        assert daemon.cycles == 2

    def test_stop_during_cycle(self, make_daemon, roots, engine):
        daemon = make_daemon(roots, sleep_time=3600, engine=engine)
        engine.sync.side_effect = lambda r: daemon.stop()

        daemon.run_forever()

        assert daemon.cycles == 1
        assert not daemon.running

    def test_wake_cuts_wait_short(self, make_daemon, roots, engine, caplog):
        daemon = make_daemon(roots, sleep_time=3600, engine=engine)
        daemon._running = True
        daemon.wake()

        with caplog.at_level(logging.INFO, logger="pymirror"):
            assert daemon.wait() is True

        assert "received wake signal" in caplog.text

    def test_wake_request_is_consumed(self, make_daemon, roots, engine):
        daemon = make_daemon(roots, sleep_time=0, engine=engine)
        daemon.wake()

        assert daemon.wait() is True
        assert daemon.wait() is False

    def test_wake_from_other_thread(self, make_daemon, roots, engine):
        daemon = make_daemon(roots, sleep_time=3600, engine=engine)
        timer = threading.Timer(0.05, daemon.wake)
        timer.start()
        try:
            assert daemon.wait() is True
        finally:
            timer.cancel()

    def test_stop_from_other_thread(self, make_daemon, roots, engine):
        daemon = make_daemon(roots, sleep_time=3600, engine=engine)
        timer = threading.Timer(0.05, daemon.stop)
        timer.start()
        try:
            daemon.run_forever()
        finally:
            timer.cancel()

        assert daemon.cycles == 1

    def test_install_signal_handlers(self, make_daemon, roots, engine):
        daemon = make_daemon(roots, engine=engine)

        with patch("pymirror.daemon.signal.signal") as mock_signal:
            daemon.install_signal_handlers()

        handlers = {c.args[0]: c.args[1] for c in mock_signal.call_args_list}
        assert set(handlers) == {signal.SIGUSR1, signal.SIGTERM, signal.SIGINT}

        daemon._running = True
        handlers[signal.SIGUSR1](signal.SIGUSR1, None)
        assert daemon.running
        assert daemon.wait() is True

        handlers[signal.SIGTERM](signal.SIGTERM, None)
        assert not daemon.running

    def test_repeated_wakes_do_not_block(self, make_daemon, roots, engine):
        daemon = make_daemon(roots, sleep_time=0, engine=engine)

        for _ in range(100_000):
            daemon.wake()

        assert daemon.wait() is True
        assert daemon.wait() is False

    def test_close_is_idempotent(self, make_daemon, roots, engine):
        daemon = make_daemon(roots, engine=engine)

        daemon.close()
        daemon.close()


class TestSignalDelivery:
    """Real signals delivered to the running test process."""

    @pytest.fixture(autouse=True)
    def restore_signals(self):
        saved = {
            signum: signal.getsignal(signum)
            for signum in (signal.SIGUSR1, signal.SIGTERM, signal.SIGINT)
        }
        yield
        for signum, handler in saved.items():
            signal.signal(signum, handler)

    def _send_later(self, signum):
        timer = threading.Timer(0.05, os.kill, (os.getpid(), signum))
        timer.start()
        return timer

    def test_sigusr1_cuts_wait_short(self, make_daemon, roots, engine):
        daemon = make_daemon(roots, sleep_time=30, engine=engine)
        daemon.install_signal_handlers()

        timer = self._send_later(signal.SIGUSR1)
        started = time.monotonic()
        try:
            assert daemon.wait() is True
        finally:
            timer.cancel()

        assert time.monotonic() - started < 10

    def test_signal_while_draining_wake_requests(self, make_daemon, roots, engine):
        """A wake signal arriving while pending requests are consumed."""
        daemon = make_daemon(roots, sleep_time=0, engine=engine)
        daemon.install_signal_handlers()
        daemon.wake()
        real_read = os.read
        sent = []

        def read_and_signal(fd, n):
            if not sent:
                sent.append(True)
                os.kill(os.getpid(), signal.SIGUSR1)
            return real_read(fd, n)

        with patch("pymirror.daemon.os.read", side_effect=read_and_signal):
            assert daemon.wait() is True

        assert sent

    def test_sigterm_stops_loop(self, make_daemon, roots, engine, caplog):
        daemon = make_daemon(roots, sleep_time=30, engine=engine)
        daemon.install_signal_handlers()

        timer = self._send_later(signal.SIGTERM)
        try:
            with caplog.at_level(logging.INFO, logger="pymirror"):
                daemon.run_forever()
        finally:
            timer.cancel()

        assert daemon.cycles == 1
        assert not daemon.running
        assert f"Received signal {int(signal.SIGTERM)}" in caplog.text


class TestPidFiles:
    """Tests for PID file helpers."""

    def test_write_and_read(self, tmp_path):
        path = write_pid_file(tmp_path / "run" / "pymirror.pid", pid=4242)

        assert path.read_text() == "4242\n"
        assert read_pid_file(path) == 4242

    def test_write_current_pid(self, tmp_path):
        with patch("pymirror.daemon.os.getpid", return_value=99):
            path = write_pid_file(tmp_path / "pymirror.pid")

        assert read_pid_file(path) == 99

    def test_read_invalid(self, tmp_path):
        path = tmp_path / "pymirror.pid"
        path.write_text("not a pid")

        with pytest.raises(ValueError, match="Invalid PID file"):
            read_pid_file(path)

    def test_read_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            read_pid_file(tmp_path / "missing.pid")


class TestSendWakeSignal:
    """Tests for send_wake_signal."""

    def test_sends_sigusr1(self):
        with patch("pymirror.daemon.os.kill") as mock_kill:
            send_wake_signal(1234)

        mock_kill.assert_called_once_with(1234, signal.SIGUSR1)

    def test_missing_process(self):
        with patch("pymirror.daemon.os.kill", side_effect=ProcessLookupError):
            with pytest.raises(ProcessLookupError):
                send_wake_signal(1234)
