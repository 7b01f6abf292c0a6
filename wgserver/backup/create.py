"""Create WireGuard configuration backups."""

import logging
import os
import re
import shutil
import tarfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Callable, Optional, Tuple

from ..config import Settings
from ..errors import FatalError, NotProvisioned
from ..lock import engine_lock

logger = logging.getLogger(__name__)

ARCHIVE_PREFIX = "wireguard_backup_"
ARCHIVE_SUFFIX = ".tar.gz"
REGISTRY_PREFIX = "clients_"
REGISTRY_SUFFIX = ".db"
SNAPSHOT_ID_RE = re.compile(r'^\d{8}_\d{6}(?:_\d+)?$')


@dataclass(frozen=True)
class Snapshot:
    """A backup archive and the registry copy taken with it."""

    id: str
    archive: Path
    registry_copy: Optional[Path] = None

    @property
    def created(self) -> datetime:
        try:
            return datetime.strptime(self.id[:15], "%Y%m%d_%H%M%S")
        except ValueError:
            return datetime.fromtimestamp(self.archive.stat().st_mtime)


def snapshot_paths(settings: Settings, snapshot_id: str) -> Tuple[Path, Path]:
    """(archive, registry copy) paths for a snapshot id."""
    return (
        settings.backup_dir / f"{ARCHIVE_PREFIX}{snapshot_id}{ARCHIVE_SUFFIX}",
        settings.backup_dir / f"{REGISTRY_PREFIX}{snapshot_id}{REGISTRY_SUFFIX}",
    )


def _new_snapshot_id(settings: Settings, now: datetime) -> str:
    base = now.strftime("%Y%m%d_%H%M%S")
    snapshot_id = base
    n = 2
    while any(p.exists() for p in snapshot_paths(settings, snapshot_id)):
        snapshot_id = f"{base}_{n}"
        n += 1
    return snapshot_id


def create_snapshot(settings: Settings, clock: Callable[[], datetime] = datetime.now) -> Snapshot:
    """
    Archive the configuration directory and copy the client registry.

    The archive holds the config directory rooted at its own name (as
    ``tar -C /etc wireguard/`` would). Live state is only read.

    Args:
        settings: Manager settings
        clock: Source of the snapshot timestamp

    Returns:
        The new Snapshot
    """
    settings.validate()
    with engine_lock(settings):
        return create_snapshot_locked(settings, clock)


def create_snapshot_locked(settings: Settings, clock: Callable[[], datetime] = datetime.now) -> Snapshot:
    """create_snapshot for callers already holding the engine lock."""
    config_dir = settings.config_dir
    if not config_dir.is_dir():
        raise NotProvisioned(f"Configuration directory not found: {config_dir}")

    settings.backup_dir.mkdir(parents=True, exist_ok=True)
    settings.backup_dir.chmod(0o700)

    snapshot_id = _new_snapshot_id(settings, clock())
    archive, registry_copy = snapshot_paths(settings, snapshot_id)

    logger.info("Creating backup...")
    partial = archive.with_name(f".{archive.name}.partial")
    try:
        with tarfile.open(partial, "w:gz") as tar:
            tar.add(config_dir, arcname=config_dir.name)
        partial.chmod(0o600)
        os.replace(partial, archive)
    except (OSError, tarfile.TarError) as e:
        if partial.exists():
            partial.unlink()
        raise FatalError(f"Failed to create backup: {e}") from e

    if settings.registry_path.exists():
        shutil.copy2(settings.registry_path, registry_copy)
        registry_copy.chmod(0o600)
    else:
        registry_copy = None

    logger.info("Backup created: %s", archive)
    return Snapshot(id=snapshot_id, archive=archive, registry_copy=registry_copy)
