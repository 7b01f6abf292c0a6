"""Restore WireGuard configuration backups."""

import logging
import os
import shutil
import tarfile
import tempfile
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional

from rich.console import Console
from rich.table import Table

from ..config import Settings
from ..errors import BackupNotFound, CorruptBackup, FatalError, RestoreAborted
from ..lock import engine_lock
from ..service import ServiceResult, WireGuardService
from ..utils import atomic_write, is_inside
from .create import (
    ARCHIVE_PREFIX, ARCHIVE_SUFFIX, Snapshot, create_snapshot_locked, snapshot_paths,
)

logger = logging.getLogger(__name__)


def _snapshot_for_archive(settings: Settings, archive: Path) -> Snapshot:
    name = archive.name
    if name.startswith(ARCHIVE_PREFIX) and name.endswith(ARCHIVE_SUFFIX):
        snapshot_id = name[len(ARCHIVE_PREFIX):-len(ARCHIVE_SUFFIX)]
    else:
        snapshot_id = name.split('.')[0]

    _, registry_copy = snapshot_paths(settings, snapshot_id)
    if not registry_copy.exists():
        sibling = archive.parent / registry_copy.name
        registry_copy = sibling if sibling.exists() else None
    return Snapshot(id=snapshot_id, archive=archive, registry_copy=registry_copy)


def list_snapshots(settings: Settings) -> List[Snapshot]:
    """Available snapshots, newest first."""
    if not settings.backup_dir.exists():
        return []

    archives = sorted(settings.backup_dir.glob(f"{ARCHIVE_PREFIX}*{ARCHIVE_SUFFIX}"), reverse=True)
    return [_snapshot_for_archive(settings, a) for a in archives]


def find_snapshot(settings: Settings, ref: str) -> Snapshot:
    """
    Resolve a snapshot id, archive file name or path.

    Raises:
        BackupNotFound: nothing matches ref
    """
    candidates = [
        Path(ref).expanduser(),
        settings.backup_dir / ref,
        snapshot_paths(settings, ref)[0],
    ]
    for candidate in candidates:
        if candidate.is_file():
            return _snapshot_for_archive(settings, candidate)
    raise BackupNotFound(ref)


def print_snapshots(settings: Settings, console: Console = None) -> None:
    """Print formatted list of backups."""
    console = console or Console()
    snapshots = list_snapshots(settings)

    if not snapshots:
        console.print("No backups found")
        return

    table = Table(title="Available Backups", title_style="bold cyan")
    table.add_column("ID", style="cyan")
    table.add_column("Date", justify="center")
    table.add_column("Size", justify="right")
    table.add_column("Registry", justify="center")

    for snap in snapshots:
        size = f"{snap.archive.stat().st_size / 1024:.1f} KB"
        table.add_row(
            snap.id,
            snap.created.strftime("%Y-%m-%d %H:%M:%S"),
            size,
            "yes" if snap.registry_copy else "no",
        )

    console.print(table)


def read_members(archive: Path, root: str) -> List[tarfile.TarInfo]:
    """
    List archive members, rejecting anything unsafe to extract.

    Raises:
        CorruptBackup: unreadable archive, or members outside root, with
            absolute or parent paths, or other than files and directories
    """
    try:
        with tarfile.open(archive, "r:gz") as tar:
            members = tar.getmembers()
    except (tarfile.TarError, EOFError, OSError) as e:
        raise CorruptBackup(f"Cannot read backup {archive.name}: {e}") from e

    if not members:
        raise CorruptBackup(f"Backup {archive.name} is empty")

    for member in members:
        path = PurePosixPath(member.name)
        if path.is_absolute() or '..' in path.parts:
            raise CorruptBackup(f"Backup {archive.name} has unsafe path: {member.name}")
        if not path.parts or path.parts[0] != root:
            raise CorruptBackup(f"Backup {archive.name} has member outside {root}/: {member.name}")
        if not (member.isfile() or member.isdir()):
            raise CorruptBackup(f"Backup {archive.name} has unsupported member: {member.name}")

    return members


def show_snapshot(settings: Settings, ref: str, console: Console = None) -> None:
    """Show contents of a backup file."""
    console = console or Console()
    snapshot = find_snapshot(settings, ref)
    members = read_members(snapshot.archive, settings.config_dir.name)

    console.print(f"\nContents of {snapshot.archive.name}:")
    console.print("-" * 50)
    for member in members:
        size = f"{member.size / 1024:.1f} KB" if member.isfile() else "dir"
        console.print(f"  {member.name:<40} {size}", markup=False)
    if snapshot.registry_copy:
        console.print(f"  Registry copy: {snapshot.registry_copy.name}", markup=False)


def _log_service(result: ServiceResult, action: str) -> None:
    if not result.ok:
        logger.warning("Could not %s WireGuard during restore (%s); continuing", action, result.value)


def _swap_in(staged: Path, config_dir: Path, snapshot: Snapshot) -> None:
    """Rename staged into place, putting the old directory back on failure."""
    aside = config_dir.with_name(f".{config_dir.name}.pre-restore-{os.getpid()}")
    if config_dir.exists():
        os.rename(config_dir, aside)
    try:
        os.rename(staged, config_dir)
    except OSError as e:
        if aside.exists():
            os.rename(aside, config_dir)
        raise FatalError(f"Failed to restore backup {snapshot.id}: {e}") from e
    shutil.rmtree(aside, ignore_errors=True)


def restore_snapshot(
    settings: Settings,
    ref: str,
    confirm: Callable[[str], bool],
    service: Optional[WireGuardService] = None,
    keep_current: bool = False,
) -> Snapshot:
    """
    Replace the configuration directory with a snapshot.

    The archive is validated and confirmation obtained before anything live
    is touched. Contents are extracted to a staging directory next to the
    config directory and swapped in by rename. Once the daemon has been
    stopped it is started again whether or not the swap succeeded.

    Args:
        settings: Manager settings
        ref: Snapshot id, archive name or path
        confirm: Called with a warning message; must return True to proceed
        service: Daemon controller (defaults to the wg-quick unit)
        keep_current: Snapshot the current state before replacing it

    Returns:
        The restored Snapshot

    Raises:
        BackupNotFound, CorruptBackup, RestoreAborted, ConfigError, FatalError
    """
    settings.validate()
    if not hasattr(tarfile, "data_filter"):
        raise FatalError(
            "Restoring backups needs tarfile extraction filters "
            "(Python 3.9.17, 3.10.12, 3.11.4, 3.12 or newer)"
        )

    service = service or WireGuardService.from_settings(settings)
    config_dir = settings.config_dir

    with engine_lock(settings):
        snapshot = find_snapshot(settings, ref)
        members = read_members(snapshot.archive, config_dir.name)

        message = (
            f"This will overwrite current WireGuard configuration in {config_dir} "
            f"with backup {snapshot.id}!"
        )
        if not confirm(message):
            raise RestoreAborted(f"Restore of {snapshot.id} cancelled; nothing was changed")

        config_dir.parent.mkdir(parents=True, exist_ok=True)
        staging = Path(tempfile.mkdtemp(prefix=f".{config_dir.name}.restore-", dir=str(config_dir.parent)))
        try:
            try:
                with tarfile.open(snapshot.archive, "r:gz") as tar:
                    tar.extractall(path=staging, members=members, filter="data")
            except (tarfile.TarError, EOFError, OSError) as e:
                raise CorruptBackup(f"Failed to extract backup {snapshot.id}: {e}") from e

            staged = staging / config_dir.name
            if not staged.is_dir():
                raise CorruptBackup(f"Backup {snapshot.id} does not contain {config_dir.name}/")

            if keep_current and config_dir.exists():
                safety = create_snapshot_locked(settings)
                logger.info("Saved current configuration as backup %s", safety.id)

            logger.info("Restoring from backup %s...", snapshot.id)
            _log_service(service.stop(), "stop")
            try:
                _swap_in(staged, config_dir, snapshot)

                if not is_inside(settings.registry_path, config_dir):
                    if snapshot.registry_copy:
                        atomic_write(settings.registry_path, snapshot.registry_copy.read_text())
                    else:
                        logger.warning("Backup %s has no registry copy; %s left unchanged",
                                       snapshot.id, settings.registry_path)
            finally:
                _log_service(service.start(), "start")
        finally:
            shutil.rmtree(staging, ignore_errors=True)

    logger.info("Configuration restored successfully")
    return snapshot
