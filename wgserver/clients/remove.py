"""Remove WireGuard clients."""

import logging
from typing import Optional

from ..config import Settings
from ..errors import NotProvisioned, PeerNotFound
from ..lock import engine_lock
from ..registry import ClientStore
from ..serverconf import remove_peer
from ..service import WireGuardService
from .create import reload_service
from .export import delete_artifacts

logger = logging.getLogger(__name__)


def remove_client(name: str, settings: Settings, service: Optional[WireGuardService] = None) -> dict:
    """
    Remove a client from the registry, the server config and disk.

    Args:
        name: Client name
        settings: Manager settings
        service: Daemon controller (defaults to the wg-quick unit)

    Returns:
        dict with the removed record, deleted files and the reload result

    Raises:
        ClientNotFound: name not registered
    """
    service = service or WireGuardService.from_settings(settings)

    with engine_lock(settings):
        store = ClientStore(settings.registry_path)
        record = store.get(name)
        if not settings.server_config_path.exists():
            raise NotProvisioned(f"Server configuration not found: {settings.server_config_path}")

        logger.info("Removing client '%s'", name)
        store.remove(name)

        try:
            remove_peer(settings.server_config_path, name)
        except PeerNotFound as e:
            # registry and config agree again either way
            logger.warning("%s; nothing to remove from the server config", e)

        deleted = delete_artifacts(name, settings)
        reload = reload_service(service, f"removing '{name}'")

    logger.info("Client '%s' removed successfully", name)
    return {
        "name": record.name,
        "address": record.address,
        "deleted": deleted,
        "reload": reload,
    }
