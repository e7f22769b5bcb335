#!/usr/bin/env python3
"""Command Line Interface for Strongbox"""

import sys
from pathlib import Path
from typing import Any, cast

import click
from rich.console import Console
from rich.table import Table

# Add parent directory to path
sys.path.append(str(Path(__file__).parent))

from core.archiver import DEFAULT_MAX_PARALLEL_ARCHIVES, Archiver, Server, archive_all
from core.config_manager import ConfigManager
from core.errors import ArchiveError
from utils.log_setup import setup_logging
from utils.notifications import NotificationManager

console = Console()

# Lazy-initialized components (created on first access to avoid startup cost)
_components: dict[str, Any] = {}


def _get_config() -> ConfigManager:
    if "config" not in _components:
        _components["config"] = ConfigManager(_components.get("config_dir"))
    return cast("ConfigManager", _components["config"])


def _get_notifier() -> NotificationManager | None:
    if not _get_config().get_setting("notifications.enabled", False):
        return None
    if "notifier" not in _components:
        _components["notifier"] = NotificationManager()
    return cast("NotificationManager", _components["notifier"])


def _build_archiver(server_id: str) -> Archiver:
    """Build the archiver for a server

    Raises:
        ValueError: If the server is unknown, has no data path, or has an invalid id
    """
    config = _get_config()
    server_config = config.get_server(server_id)
    if not server_config:
        raise ValueError(f"Server '{server_id}' not found in configuration")
    if not server_config.get("path"):
        raise ValueError(f"Server '{server_id}' has no data path configured")

    server = Server(server_id, Path(str(server_config["path"])).expanduser())
    return Archiver(
        server,
        config.get_archive_directory(),
        check_disk_space=bool(config.get_setting("archive.check_disk_space", True)),
    )


def _get_archiver(server_id: str) -> Archiver:
    """Build the archiver for a server, exiting with a message if it cannot be built"""
    try:
        return _build_archiver(server_id)
    except ValueError as e:
        _fail(str(e))
        raise


def _fail(message: str) -> None:
    console.print(f"[red]✗[/red] {message}")
    sys.exit(1)


@click.group()
@click.option("--config-dir", type=click.Path(file_okay=False), help="Directory containing settings.yaml and servers.yaml")
@click.option("--verbose", "-v", is_flag=True, help="Log to the console")
def cli(config_dir, verbose):
    """Strongbox - server archive manager"""
    _components.clear()
    if config_dir:
        _components["config_dir"] = config_dir

    config = _get_config()
    setup_logging(
        config.get_setting("logging.file"),
        config.get_setting("logging.level", "INFO"),
        console=verbose,
    )


@cli.command("list")
def list_servers():
    """Show registered servers and their archives"""
    config = _get_config()
    console.print(f"[bold cyan]Archive directory:[/bold cyan] {config.get_archive_directory()}\n")

    table = Table(title="Servers", show_header=True, header_style="bold magenta")
    table.add_column("Server", style="cyan", width=24)
    table.add_column("Data Path", style="white")
    table.add_column("Size", justify="right")
    table.add_column("Archived", style="green")

    for server_id, server_config in config.get_all_servers().items():
        path = str(server_config.get("path", ""))
        try:
            stat = Archiver(Server(server_id, path), config.get_archive_directory()).stat()
            size = f"{stat.size_mb:.1f} MB"
            archived = stat.modified.strftime("%Y-%m-%d %H:%M")
        except (ArchiveError, ValueError):
            size = "-"
            archived = "No archive"

        table.add_row(server_id, path[:40] + "..." if len(path) > 40 else path, size, archived)

    console.print(table)


@cli.command()
@click.option("--server", "server_id", help="Archive a specific server")
@click.option("--all", is_flag=True, help="Archive all registered servers")
@click.option("--sequential", is_flag=True, help="Archive servers one at a time")
def archive(server_id, all, sequential):
    """Create or replace server archives"""
    notifier = _get_notifier()

    if all:
        console.print("[bold cyan]Archiving all servers...[/bold cyan]")
        archivers = []
        results: dict[str, tuple[bool, str]] = {}
        for name in _get_config().get_all_servers():
            try:
                archivers.append(_build_archiver(name))
            except ValueError as e:
                results[name] = (False, str(e))

        max_workers = _get_config().get_setting("system.max_parallel_archives", DEFAULT_MAX_PARALLEL_ARCHIVES)
        results.update(archive_all(archivers, parallel=not sequential, max_workers=max_workers))

        for name, (success, message) in results.items():
            if success:
                console.print(f"[green]✓[/green] {name}: {message}")
            else:
                console.print(f"[red]✗[/red] {name}: {message}")

        success_count = sum(1 for success, _ in results.values() if success)
        console.print(f"\n[bold]Summary: {success_count}/{len(results)} servers archived[/bold]")
        if notifier:
            notifier.notify_batch_complete(success_count, len(results))
        if success_count != len(results):
            sys.exit(1)

    elif server_id:
        archiver = _get_archiver(server_id)
        console.print(f"[bold cyan]Archiving server '{server_id}'...[/bold cyan]")
        try:
            stat = archiver.archive()
        except ArchiveError as e:
            if notifier:
                notifier.notify_archive_failure(server_id, str(e))
            _fail(f"Archive failed: {e}")

        if notifier:
            notifier.notify_archive_success(server_id, stat.size_mb)
        console.print(f"[green]✓[/green] Archive successful: {archiver.archive_path()} ({stat.size_mb:.2f} MB)")

    else:
        console.print("[yellow]Please specify --all or --server ID[/yellow]")


@cli.command()
@click.argument("server_id")
def exists(server_id):
    """Check whether a server has an archive"""
    archiver = _get_archiver(server_id)
    try:
        present = archiver.exists()
    except ArchiveError as e:
        _fail(str(e))

    if present:
        console.print(f"[green]✓[/green] {archiver.archive_name()} exists")
    else:
        console.print(f"[yellow]No archive for server '{server_id}'[/yellow]")
        sys.exit(1)


@cli.command()
@click.argument("server_id")
def stat(server_id):
    """Show archive metadata"""
    archiver = _get_archiver(server_id)
    try:
        info = archiver.stat()
    except ArchiveError as e:
        _fail(str(e))

    table = Table(title=f"Archive: {server_id}", show_header=True, header_style="bold magenta")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    for key, value in info.to_dict().items():
        table.add_row(key, str(value))
    console.print(table)


@cli.command()
@click.argument("server_id")
def checksum(server_id):
    """Print the SHA256 checksum of a server's archive"""
    archiver = _get_archiver(server_id)
    try:
        digest = archiver.checksum()
    except ArchiveError as e:
        _fail(str(e))

    click.echo(digest)


@cli.command()
@click.argument("server_id")
@click.option("--expected", required=True, help="Expected SHA256 hex digest")
def verify(server_id, expected):
    """Verify archive integrity against an expected checksum"""
    archiver = _get_archiver(server_id)
    try:
        ok = archiver.verify(expected)
    except ArchiveError as e:
        _fail(str(e))

    if ok:
        console.print("[green]✓[/green] Archive verified successfully (checksum matches)")
    else:
        _fail("Archive corrupted! Checksum mismatch.")


@cli.command()
@click.argument("server_id")
@click.option("--pattern", help="Only show members matching this glob (e.g. '*.txt')")
def contents(server_id, pattern):
    """List the members of a server's archive"""
    archiver = _get_archiver(server_id)
    try:
        members = archiver.list_contents(pattern)
    except ArchiveError as e:
        _fail(str(e))

    table = Table(title=archiver.archive_name(), show_header=True, header_style="bold magenta")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("Size", justify="right")
    table.add_column("Modified", style="green")
    for member in members:
        table.add_row(member["name"], member["type"], str(member["size"]), member["mtime"])
    console.print(table)


@cli.command()
@click.argument("server_id")
def delete(server_id):
    """Delete a server's archive if it exists"""
    archiver = _get_archiver(server_id)
    try:
        removed = archiver.delete_if_exists()
    except ArchiveError as e:
        _fail(str(e))

    if removed:
        console.print(f"[green]✓[/green] Deleted {archiver.archive_name()}")
    else:
        console.print(f"[dim]No archive to delete for '{server_id}'[/dim]")


@cli.command()
@click.argument("server_id")
@click.option("--path", required=True, type=click.Path(exists=True, file_okay=False), help="Server data directory")
def register(server_id, path):
    """Register a server's data directory"""
    try:
        Server(server_id, path)
    except ValueError as e:
        _fail(str(e))

    _get_config().add_server(server_id, {"path": str(Path(path).resolve())})
    console.print(f"[green]✓[/green] Registered server '{server_id}'")


@cli.command()
@click.argument("server_id")
def unregister(server_id):
    """Remove a server registration (its archive is kept)"""
    if _get_config().remove_server(server_id):
        console.print(f"[green]✓[/green] Unregistered server '{server_id}'")
    else:
        _fail(f"Server '{server_id}' not found in configuration")


if __name__ == "__main__":
    cli()
