#!/usr/bin/env python3
"""
WireGuard Server Manager CLI

Manage the clients of a single WireGuard server: a registry of clients,
the peer blocks in the server config and per-client config files.

Usage:
    sudo wg-server <command> [options]

Examples:
    sudo wg-server init --endpoint vpn.example.com
    sudo wg-server add-client laptop
    sudo wg-server list-clients
    sudo wg-server show-client laptop
    sudo wg-server backup
"""

import argparse
import logging
from pathlib import Path

from rich.prompt import Confirm

from .config import get_version, load_settings, resolve_dns, save_settings, SETTINGS_FILE
from .errors import FatalError, WGServerError
from .log import console, err_console, setup_logging
from .service import ServiceResult
from .utils import check_root

logger = logging.getLogger(__name__)

# Commands that change registry, server config or daemon state
MUTATING_COMMANDS = {"init", "add-client", "remove-client", "backup", "restore", "repair"}


def _print_reload(result: ServiceResult) -> None:
    if result is ServiceResult.DEGRADED:
        console.print("[yellow]Configuration saved; WireGuard was not reloaded[/yellow]")
    elif result is ServiceResult.FATAL:
        console.print("[red]Configuration saved; WireGuard reload failed[/red]")


def cmd_init(args, settings):
    """Handle init command."""
    from .system import init_server

    overrides = {
        "endpoint": args.endpoint,
        "listen_port": args.port,
        "dns": resolve_dns(args.dns) if args.dns else None,
    }
    overrides = {k: v for k, v in overrides.items() if v is not None}
    for key, value in overrides.items():
        setattr(settings, key, value)
    settings.validate()

    result = init_server(settings, first_client=args.first_client or None, force=args.force)

    if overrides:
        settings_path = Path(args.config) if args.config else SETTINGS_FILE
        save_settings(settings, settings_path)
        logger.info("Settings saved to %s", settings_path)

    console.print(f"[green]Server initialized:[/green] {result['config_path']}")
    console.print(f"  Address: {settings.server_address}")
    console.print(f"  Port: {settings.listen_port}")
    console.print(f"  Public Key: {result['public_key']}", markup=False)
    if result["client"]:
        console.print(f"  First client: {result['client']['name']} ({result['client']['address']})")
        console.print(f"  Client config: {result['client']['config_path']}")
    if not result["start"].ok:
        console.print(f"[yellow]Start the server with: systemctl start wg-quick@{settings.interface}[/yellow]")
    return 0


def cmd_add_client(args, settings):
    """Handle add-client command."""
    from .clients import add_client, show_qr

    qr = False if args.no_qr else None
    info = add_client(args.name, settings, qr=qr)

    console.print(f"[green]Client '{info['name']}' added[/green] with IP {info['address']}")
    console.print(f"  Config: {info['config_path']}")
    if info["qr_path"]:
        console.print(f"  QR code: {info['qr_path']}")
        show_qr(args.name, settings, console=console)
    _print_reload(info["reload"])
    return 0


def cmd_remove_client(args, settings):
    """Handle remove-client command."""
    from .clients import remove_client

    info = remove_client(args.name, settings)
    console.print(f"[green]Client '{info['name']}' removed[/green] (freed {info['address']})")
    for path in info["deleted"]:
        console.print(f"  Deleted {path}")
    _print_reload(info["reload"])
    return 0


def cmd_list_clients(args, settings):
    """Handle list-clients command."""
    from .clients import print_clients

    print_clients(settings, console=console)
    return 0


def cmd_show_client(args, settings):
    """Handle show-client command."""
    from .clients import show_config, show_qr

    if args.config_text:
        show_config(args.name, settings, console=console)
    else:
        show_qr(args.name, settings, console=console)
    return 0


def cmd_backup(args, settings):
    """Handle backup command."""
    from .backup import create_snapshot

    snapshot = create_snapshot(settings)
    console.print(f"[green]Backup created:[/green] {snapshot.archive}")
    if snapshot.registry_copy:
        console.print(f"  Registry copy: {snapshot.registry_copy}")
    console.print(f"  Restore with: wg-server restore {snapshot.id}")
    return 0


def cmd_list_backups(args, settings):
    """Handle list-backups command."""
    from .backup import print_snapshots

    print_snapshots(settings, console=console)
    return 0


def cmd_show_backup(args, settings):
    """Handle show-backup command."""
    from .backup import show_snapshot

    show_snapshot(settings, args.snapshot, console=console)
    return 0


def cmd_restore(args, settings):
    """Handle restore command."""
    from .backup import restore_snapshot

    def confirm(message: str) -> bool:
        if args.yes:
            return True
        console.print(f"[bold yellow]WARNING:[/bold yellow] {message}")
        return Confirm.ask("Continue?", default=False, console=console)

    snapshot = restore_snapshot(settings, args.snapshot, confirm, keep_current=args.keep_current)
    console.print(f"[green]Configuration restored from backup {snapshot.id}[/green]")
    return 0


def cmd_repair(args, settings):
    """Handle repair command."""
    from .clients import repair

    report = repair(settings, dry_run=args.dry_run)
    if report.ok:
        console.print("[green]Registry and server config are consistent[/green]")
        return 0

    verb = "Would" if args.dry_run else "Did"
    for name in report.missing:
        console.print(f"  {verb} restore peer block for '{name}'")
    for name in report.orphaned:
        console.print(f"  {verb} remove orphaned peer block '{name}'")
    for name in report.duplicated:
        console.print(f"  {verb} remove duplicate peer blocks for '{name}'")
    if report.reload is not None:
        _print_reload(report.reload)
    return 0


def cmd_check(args, settings):
    """Handle check command."""
    from .clients import check_consistency

    report = check_consistency(settings)
    if report.ok:
        console.print("[green]Registry and server config are consistent[/green]")
        return 0

    for name in report.missing:
        console.print(f"[red]Missing peer block:[/red] {name}")
    for name in report.orphaned:
        console.print(f"[yellow]Orphaned peer block:[/yellow] {name}")
    for name in report.duplicated:
        console.print(f"[yellow]Duplicate peer blocks:[/yellow] {name}")
    console.print("Run 'wg-server repair' to fix")
    return 1


HANDLERS = {
    "init": cmd_init,
    "add-client": cmd_add_client,
    "remove-client": cmd_remove_client,
    "list-clients": cmd_list_clients,
    "show-client": cmd_show_client,
    "backup": cmd_backup,
    "list-backups": cmd_list_backups,
    "show-backup": cmd_show_backup,
    "restore": cmd_restore,
    "repair": cmd_repair,
    "check": cmd_check,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wg-server",
        description="WireGuard Server Manager CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s init --endpoint vpn.example.com
  %(prog)s add-client laptop
  %(prog)s remove-client laptop
  %(prog)s show-client phone --config
  %(prog)s backup
  %(prog)s restore 20240101_120000
""",
    )

    parser.add_argument("--version", action="version", version=f"wg-server {get_version()}")
    parser.add_argument("-c", "--config", help="Settings file (YAML)")
    parser.add_argument("--debug", action="store_true", help="Verbose logging")

    subparsers = parser.add_subparsers(dest="command", help="Commands")

    # init
    init = subparsers.add_parser("init", help="Provision the server and a first client")
    init.add_argument("--endpoint", help="Public hostname or IP clients connect to")
    init.add_argument("--port", type=int, help="Listen port")
    init.add_argument("--dns", help="DNS servers for clients, or cloudflare, quad9, google, opendns")
    init.add_argument("--first-client", default="client1", help="Name of the first client ('' to skip)")
    init.add_argument("--force", action="store_true", help="Overwrite existing configuration")

    # clients
    add = subparsers.add_parser("add-client", help="Add a client")
    add.add_argument("name", help="Client name")
    add.add_argument("--no-qr", action="store_true", help="Do not generate a QR code")

    rm = subparsers.add_parser("remove-client", help="Remove a client")
    rm.add_argument("name", help="Client name")

    subparsers.add_parser("list-clients", help="List clients")

    show = subparsers.add_parser("show-client", help="Show a client's QR code")
    show.add_argument("name", help="Client name")
    show.add_argument("--config", dest="config_text", action="store_true",
                      help="Print the config file instead of a QR code")

    # backups
    subparsers.add_parser("backup", help="Create a backup")
    subparsers.add_parser("list-backups", help="List backups")

    show_backup = subparsers.add_parser("show-backup", help="Show backup contents")
    show_backup.add_argument("snapshot", help="Backup id, file name or path")

    restore = subparsers.add_parser("restore", help="Restore a backup")
    restore.add_argument("snapshot", help="Backup id, file name or path")
    restore.add_argument("-y", "--yes", action="store_true", help="Do not ask for confirmation")
    restore.add_argument("--keep-current", action="store_true",
                         help="Back up the current configuration first")

    # consistency
    repair = subparsers.add_parser("repair", help="Rebuild peer blocks from the registry")
    repair.add_argument("--dry-run", action="store_true", help="Only show what would change")

    subparsers.add_parser("check", help="Compare registry and server config")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    setup_logging(args.debug)

    try:
        settings = load_settings(Path(args.config) if args.config else None)

        if args.command in MUTATING_COMMANDS and settings.require_root and not check_root():
            raise FatalError("This command must be run as root")

        return HANDLERS[args.command](args, settings)
    except WGServerError as e:
        logger.debug("%s failed", args.command, exc_info=True)
        err_console.print(f"Error: {e}", style="red", markup=False, highlight=False)
        return e.exit_code
    except KeyboardInterrupt:
        err_console.print("\nOperation cancelled", style="yellow")
        return 130
