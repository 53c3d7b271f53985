"""CLI interface for Capacity."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

import click

from capacity.core.scanner import UsageScanner
from capacity.core.session import ScanSession
from capacity.models.status import ScanStatus
from capacity.settings import Settings
from capacity.utils import bytes_to_human, format_elapsed, percent_string

log = logging.getLogger(__name__)


def _setup_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity >= 2:
        level = logging.DEBUG
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


def _resolve_root(path: str | None, home: bool, disk: bool) -> Path:
    """Pick the root to scan from the arguments, then settings, then home."""
    if disk:
        return Path(Path.home().anchor or "/")
    if home:
        return Path.home()
    if path is None:
        path = Settings.instance().get("scan.default_root")
    root = Path(path).expanduser() if path else Path.home()
    if not root.is_dir():
        raise click.BadParameter(f"'{root}' is not a directory", param_hint="PATH")
    return root.absolute()


def _build_session(one_filesystem: bool) -> ScanSession:
    one_fs = one_filesystem or bool(Settings.instance().get("scan.one_filesystem"))
    return ScanSession(UsageScanner(one_filesystem=one_fs))


def _run_scan(session: ScanSession, start: Any, *args: Any, **kwargs: Any) -> ScanStatus:
    """Start a scan and block until it finishes; Ctrl-C cancels it."""
    start(*args, **kwargs)
    try:
        return session.wait()
    except KeyboardInterrupt:
        session.cancel()
        return session.status


def _root_options(fn):
    fn = click.option("-x", "--one-file-system", "one_filesystem", is_flag=True,
                      help="Stay on the root's filesystem")(fn)
    fn = click.option("--disk", is_flag=True, help="Scan the entire disk")(fn)
    fn = click.option("--home", is_flag=True, help="Scan the home folder")(fn)
    fn = click.argument("path", required=False, type=click.Path(file_okay=False))(fn)
    return fn


@click.group()
@click.option("-v", "--verbose", count=True, help="Increase verbosity (-v info, -vv debug)")
def main(verbose: int) -> None:
    """Capacity — see which folders eat the most disk space."""
    _setup_logging(verbose)


# ── scan ─────────────────────────────────────────────────────────────────

@main.command()
@_root_options
@click.option("--json", "as_json", is_flag=True, help="Output as JSON")
def scan(path: str | None, home: bool, disk: bool, one_filesystem: bool, as_json: bool) -> None:
    """Scan a folder once and list its children by size."""
    root = _resolve_root(path, home, disk)
    with _build_session(one_filesystem) as session:
        if not as_json:
            click.echo(f"\n{click.style('🔍', bold=True)} Scanning {root}...\n")
        _run_scan(session, session.scan, root)

        if as_json:
            click.echo(json.dumps(session.snapshot(), indent=2))
            return
        _print_session(session)


# ── browse ───────────────────────────────────────────────────────────────

@main.command()
@_root_options
def browse(path: str | None, home: bool, disk: bool, one_filesystem: bool) -> None:
    """Interactively drill into folders (number = open, b = back, r = refresh, q = quit)."""
    root = _resolve_root(path, home, disk)
    with _build_session(one_filesystem) as session:
        _run_scan(session, session.scan, root)
        while True:
            _print_session(session, numbered=True)
            choice = click.prompt("Open [#], b=back, r=refresh, q=quit", default="q", show_default=False)
            match choice.strip().lower():
                case "q" | "quit":
                    return
                case "b" | "back":
                    if not session.can_go_back:
                        click.echo("Nothing to go back to.")
                        continue
                    _run_scan(session, session.go_back)
                case "r" | "refresh":
                    _run_scan(session, session.refresh)
                case value if value.isdigit():
                    idx = int(value) - 1
                    if not 0 <= idx < len(session.entries):
                        click.echo(f"No entry #{value}.")
                        continue
                    entry = session.entries[idx]
                    if not entry.is_directory:
                        click.echo(f"{entry.name} is not a folder.")
                        continue
                    _run_scan(session, session.scan, entry.path, append_to_history=True)
                case _:
                    click.echo(f"Unknown choice '{choice}'.")


def _print_session(session: ScanSession, numbered: bool = False) -> None:
    """Render rows and totals the way the desktop front end lays them out."""
    if session.current_root is not None:
        click.echo(click.style(f"Current root: {session.current_root}", fg="bright_black"))

    match session.status:
        case ScanStatus.CANCELLED:
            click.echo("Scan cancelled.")
            return
        case ScanStatus.EMPTY:
            click.echo("Nothing to show here.")
        case _:
            click.echo(f"Scan complete in {format_elapsed(session.elapsed)}.\n")

    for i, entry in enumerate(session.entries, 1):
        prefix = f"[{i:>3}] " if numbered else "  "
        marker = click.style("›", fg="cyan") if entry.is_directory else " "
        size_str = click.style(f"{bytes_to_human(entry.size_bytes):>10s}", bold=True)
        click.echo(f"{prefix}{size_str}  {marker} {entry.name}")

    click.echo(f"\nTotal of listed items: {click.style(bytes_to_human(session.selection_total), fg='green', bold=True)}")

    usage = session.volume_usage
    if usage is not None:
        click.echo(
            f"Disk usage: {bytes_to_human(usage.used_bytes)} used / {bytes_to_human(usage.total_bytes)} total "
            f"({percent_string(usage.fraction_used)} used)"
        )
        if session.unaccounted:
            click.echo(click.style(
                f"Unaccounted (system/reserved/snapshots): {bytes_to_human(session.unaccounted)}",
                fg="bright_black",
            ))

    if session.skipped.total:
        log.info(
            "Skipped %d symlinks, %d unreadable and %d empty entries",
            session.skipped.symlinks,
            session.skipped.unreadable,
            session.skipped.empty,
        )
    click.echo()


# ── config ───────────────────────────────────────────────────────────────

@main.group()
def config() -> None:
    """Settings management commands."""


@config.command("show")
def config_show() -> None:
    """Show the current settings."""
    settings = Settings.instance()
    click.echo(f"# {settings.path}")
    click.echo(json.dumps(settings.as_dict(), indent=2))


@config.command("set")
@click.argument("key")
@click.argument("value")
def config_set(key: str, value: str) -> None:
    """Set a setting (VALUE is parsed as JSON, falling back to a string)."""
    try:
        parsed: Any = json.loads(value)
    except json.JSONDecodeError:
        parsed = value
    Settings.instance().set(key, parsed)
    click.echo(f"{key} = {json.dumps(parsed)}")


# ── service ──────────────────────────────────────────────────────────────

@main.group()
def service() -> None:
    """D-Bus service management."""


@service.command("start")
def service_start() -> None:
    """Start the D-Bus service in foreground."""
    from capacity.dbus_service import start_service

    click.echo("Starting Capacity D-Bus service...")
    start_service()
