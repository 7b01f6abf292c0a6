"""Bring the server config back in line with the client registry.

The registry is written before the server config, so after a crash the
registry describes the intended state. Repair appends peer blocks for
registered clients that have no tag, and drops tagged blocks that no
registered client owns.
"""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import List, Optional

from ..config import Settings
from ..lock import engine_lock
from ..registry import ClientStore
from ..serverconf import PeerBlock, load_server_config, write_server_config
from ..service import ServiceResult, WireGuardService
from .create import reload_service

logger = logging.getLogger(__name__)


@dataclass
class ConsistencyReport:
    """Differences between registry and server config peer tags."""

    missing: List[str] = field(default_factory=list)
    orphaned: List[str] = field(default_factory=list)
    duplicated: List[str] = field(default_factory=list)
    repaired: bool = False
    reload: Optional[ServiceResult] = None

    @property
    def ok(self) -> bool:
        return not (self.missing or self.orphaned or self.duplicated)


def check_consistency(settings: Settings) -> ConsistencyReport:
    """Compare registry names with server config tags."""
    records = ClientStore(settings.registry_path).list()
    config = load_server_config(settings.server_config_path)
    return _compare(records, config)


def _compare(records, config) -> ConsistencyReport:
    registered = [r.name for r in records]
    tags = Counter(config.peer_names())

    return ConsistencyReport(
        missing=[name for name in registered if name not in tags],
        orphaned=[name for name in tags if name not in registered],
        duplicated=[name for name, count in tags.items() if count > 1 and name in registered],
    )


def repair(
    settings: Settings,
    dry_run: bool = False,
    service: Optional[WireGuardService] = None,
) -> ConsistencyReport:
    """
    Rewrite the server config so its peer blocks mirror the registry.

    Args:
        settings: Manager settings
        dry_run: Only report what would change
        service: Daemon controller (defaults to the wg-quick unit)

    Returns:
        ConsistencyReport of what was (or would be) fixed

    Raises:
        RegistryError: registry file missing or malformed
        NotProvisioned: server config missing
    """
    service = service or WireGuardService.from_settings(settings)

    with engine_lock(settings):
        store = ClientStore(settings.registry_path)
        store.require()
        records = store.list()
        config = load_server_config(settings.server_config_path)
        report = _compare(records, config)

        if report.ok or dry_run:
            return report

        for name in report.orphaned:
            logger.warning("Removing orphaned peer block '%s'", name)
            config.remove(name)

        for name in report.duplicated:
            kept = config.find(name)
            logger.warning("Removing duplicate peer blocks for '%s'", name)
            config.remove(name)
            config.append(kept)

        for record in records:
            if record.name in report.missing:
                logger.warning("Restoring missing peer block for '%s' (%s)", record.name, record.address)
                config.append(PeerBlock.build(record.name, record.public_key, record.address))

        write_server_config(settings.server_config_path, config.render())
        report.repaired = True
        report.reload = reload_service(service, "repair")

    return report
