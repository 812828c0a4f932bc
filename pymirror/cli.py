"""CLI interface for pymirror."""

import logging
import logging.handlers
from pathlib import Path
from typing import Any, Optional

import click

from .config import config
from .daemon import (
    MirrorDaemon,
    daemonize,
    read_pid_file,
    send_wake_signal,
    write_pid_file,
)
from .exceptions import MirrorConfigError
from .output import OutputFormatter
from .sync import SyncEngine, SyncRoots
from .utils import format_size, parse_size

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
SYSLOG_FORMAT = "pymirror[%(process)d]: %(message)s"


class SizeParamType(click.ParamType):
    """Byte count accepting K/M/G suffixes."""

    name = "size"

    def convert(self, value: Any, param: Any, ctx: Any) -> int:
        if isinstance(value, int):
            return value
        try:
            return parse_size(value)
        except ValueError as e:
            self.fail(str(e), param, ctx)


SIZE = SizeParamType()


def _configure_daemon_logging(
    verbose: bool, log_file: Optional[Path], use_syslog: bool
) -> None:
    """Set up logging for a long-running daemon.

    The daemon always reports its actions at INFO level.
    """
    root = logging.getLogger("pymirror")
    root.setLevel(logging.DEBUG if verbose else logging.INFO)

    if log_file is not None:
        handler: logging.Handler = logging.FileHandler(log_file, encoding="utf-8")
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%H:%M:%S"))
        root.addHandler(handler)

    if use_syslog:
        address = "/dev/log" if Path("/dev/log").exists() else ("localhost", 514)
        syslog_handler = logging.handlers.SysLogHandler(
            address=address, facility=logging.handlers.SysLogHandler.LOG_USER
        )
        syslog_handler.setFormatter(logging.Formatter(SYSLOG_FORMAT))
        root.addHandler(syslog_handler)


def _build_roots(
    out: OutputFormatter,
    ctx: Any,
    source: str,
    destination: str,
    recursive: Optional[bool],
    copy_threshold: Optional[int],
) -> SyncRoots:
    """Combine CLI options with configured defaults and validate the roots."""
    try:
        roots = SyncRoots(
            source=Path(source),
            destination=Path(destination),
            recursive=config.recursive if recursive is None else recursive,
            copy_threshold=(
                config.copy_threshold if copy_threshold is None else copy_threshold
            ),
        )
        roots.validate()
    except MirrorConfigError as e:
        out.error(str(e))
        ctx.exit(2)
    return roots


@click.group()
@click.option("--quiet", "-q", is_flag=True, help="Suppress non-essential output")
@click.option("--json", is_flag=True, help="Output in JSON format")
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    help="Enable verbose/debug logging output",
)
@click.version_option(package_name="pymirror")
@click.pass_context
def main(ctx: Any, quiet: bool, json: bool, verbose: bool) -> None:
    """PyMirror - Mirror a directory tree into another, periodically."""
    ctx.ensure_object(dict)
    ctx.obj["out"] = OutputFormatter(json_output=json, quiet=quiet)
    ctx.obj["verbose"] = verbose

    if verbose:
        logging.basicConfig(level=logging.DEBUG, format=LOG_FORMAT, datefmt="%H:%M:%S")
        logging.getLogger("pymirror").setLevel(logging.DEBUG)
    else:
        logging.basicConfig(level=logging.WARNING)


@main.command()
@click.argument("source", type=click.Path())
@click.argument("destination", type=click.Path())
@click.option(
    "-R",
    "--recursive/--no-recursive",
    default=None,
    help="Sync subdirectories recursively",
)
@click.option(
    "--mmap-min-size",
    "-m",
    type=SIZE,
    default=None,
    help="Minimal file size for mmap-based copy (bytes, K/M/G suffixes allowed)",
)
@click.pass_context
def sync(
    ctx: Any,
    source: str,
    destination: str,
    recursive: Optional[bool],
    mmap_min_size: Optional[int],
) -> None:
    """Mirror SOURCE into DESTINATION once.

    Files that are new or newer in SOURCE are copied, entries that only
    exist in DESTINATION are removed.
    """
    out: OutputFormatter = ctx.obj["out"]
    roots = _build_roots(out, ctx, source, destination, recursive, mmap_min_size)

    out.info(f"Syncing: {roots.source} -> {roots.destination}")
    out.info(f"Recursive: {'yes' if roots.recursive else 'no'}")
    out.info(f"mmap threshold: {format_size(roots.copy_threshold)}")

    engine = SyncEngine(output=out)
    stats = engine.sync(roots)

    if out.json_output:
        out.output_json(stats)

    if stats["errors"]:
        ctx.exit(1)


@main.command()
@click.argument("source", type=click.Path())
@click.argument("destination", type=click.Path())
@click.option(
    "-R",
    "--recursive/--no-recursive",
    default=None,
    help="Sync subdirectories recursively",
)
@click.option(
    "--sleep-time",
    "-s",
    type=click.IntRange(min=0),
    default=None,
    help="Seconds the daemon sleeps between syncs (default: 300)",
)
@click.option(
    "--mmap-min-size",
    "-m",
    type=SIZE,
    default=None,
    help="Minimal file size for mmap-based copy (default: 8M)",
)
@click.option(
    "--foreground",
    "-f",
    is_flag=True,
    help="Do not detach from the terminal",
)
@click.option(
    "--pid-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write the daemon PID to this file",
)
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Append log lines to this file",
)
@click.option(
    "--syslog/--no-syslog",
    default=None,
    help="Send log lines to syslog (default: on unless --foreground)",
)
@click.pass_context
def run(
    ctx: Any,
    source: str,
    destination: str,
    recursive: Optional[bool],
    sleep_time: Optional[int],
    mmap_min_size: Optional[int],
    foreground: bool,
    pid_file: Optional[Path],
    log_file: Optional[Path],
    syslog: Optional[bool],
) -> None:
    """Run the mirror daemon for SOURCE and DESTINATION.

    Syncs immediately, then again every --sleep-time seconds. Send
    SIGUSR1 (see 'pymirror wake') to trigger a sync early.
    """
    out: OutputFormatter = ctx.obj["out"]
    roots = _build_roots(out, ctx, source, destination, recursive, mmap_min_size)

    try:
        interval = config.sleep_time if sleep_time is None else sleep_time
        pid_file = pid_file or config.pid_file
        log_file = log_file or config.log_file
    except MirrorConfigError as e:
        out.error(str(e))
        ctx.exit(2)

    if not foreground:
        try:
            daemonize()
        except OSError as e:
            out.error(f"Could not start daemon: {e}")
            ctx.exit(4)
        # stdio is gone from here on
        out = OutputFormatter(quiet=True)
    else:
        out.info(f"Mirroring {roots} every {interval}s (Ctrl+C to stop)")

    use_syslog = not foreground if syslog is None else syslog
    _configure_daemon_logging(ctx.obj["verbose"], log_file, use_syslog)

    if pid_file is not None:
        write_pid_file(pid_file)

    daemon = MirrorDaemon(roots, sleep_time=interval, engine=SyncEngine(output=out))
    daemon.install_signal_handlers()
    try:
        daemon.run_forever()
    finally:
        daemon.close()
        if pid_file is not None:
            pid_file.unlink(missing_ok=True)


@main.command()
@click.argument("pid", type=int, required=False)
@click.option(
    "--pid-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Read the daemon PID from this file",
)
@click.pass_context
def wake(ctx: Any, pid: Optional[int], pid_file: Optional[Path]) -> None:
    """Make a running daemon sync now instead of after its sleep."""
    out: OutputFormatter = ctx.obj["out"]

    if pid is None:
        pid_file = pid_file or config.pid_file
        if pid_file is None:
            out.error("Give a PID or --pid-file")
            ctx.exit(1)
        try:
            pid = read_pid_file(pid_file)
        except (OSError, ValueError) as e:
            out.error(f"Cannot read PID file: {e}")
            ctx.exit(1)

    try:
        send_wake_signal(pid)
    except ProcessLookupError:
        out.error(f"No process with PID {pid}")
        ctx.exit(1)
    except PermissionError:
        out.error(f"Not allowed to signal PID {pid}")
        ctx.exit(1)

    out.success(f"Sent wake signal to {pid}")


@main.command("config")
@click.option("--sleep-time", type=click.IntRange(min=0), default=None)
@click.option("--copy-threshold", type=SIZE, default=None)
@click.option("--recursive/--no-recursive", default=None)
@click.option("--log-file", type=click.Path(dir_okay=False), default=None)
@click.option("--pid-file", type=click.Path(dir_okay=False), default=None)
@click.pass_context
def config_command(
    ctx: Any,
    sleep_time: Optional[int],
    copy_threshold: Optional[int],
    recursive: Optional[bool],
    log_file: Optional[str],
    pid_file: Optional[str],
) -> None:
    """Show or change the stored defaults."""
    out: OutputFormatter = ctx.obj["out"]

    values = {
        "sleep_time": sleep_time,
        "copy_threshold": copy_threshold,
        "recursive": recursive,
        "log_file": log_file,
        "pid_file": pid_file,
    }
    updates = {key: value for key, value in values.items() if value is not None}

    try:
        if updates:
            config.save(**updates)
            out.success(f"Configuration saved to {config.get_config_path()}")
        settings = config.to_dict()
    except MirrorConfigError as e:
        out.error(str(e))
        ctx.exit(1)

    items = [
        (key, "-" if value is None else str(value)) for key, value in settings.items()
    ]
    out.print_summary("Configuration", items)


if __name__ == "__main__":
    main()
