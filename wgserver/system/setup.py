"""Initial WireGuard server setup."""

import logging
import time
from typing import Callable, Optional, Tuple

from ..config import Settings
from ..errors import ServerExists
from ..lock import engine_lock
from ..network import prefix_length
from ..registry import ClientStore
from ..service import WireGuardService
from ..templates import DEFAULT_ROUTE_INTERFACE, render
from ..utils import atomic_write, generate_keypair
from ..clients.create import add_client_locked

logger = logging.getLogger(__name__)


def is_provisioned(settings: Settings) -> bool:
    """True when a server config or registered clients already exist."""
    if settings.server_config_path.exists():
        return True
    return bool(ClientStore(settings.registry_path).list())


def render_server_config(settings: Settings, private_key: str) -> str:
    """Render the [Interface] section followed by a blank line."""
    return render(
        "server.conf.j2",
        address=settings.server_address.split('/')[0],
        prefix=prefix_length(settings.subnet),
        port=settings.listen_port,
        private_key=private_key,
        interface=settings.interface,
        wan=settings.external_interface or DEFAULT_ROUTE_INTERFACE,
    )


def init_server(
    settings: Settings,
    first_client: Optional[str] = "client1",
    keygen: Callable[[], Tuple[str, str]] = generate_keypair,
    service: Optional[WireGuardService] = None,
    force: bool = False,
    clock: Callable[[], float] = time.time,
) -> dict:
    """
    Initialize WireGuard server with default configuration.

    Generates the server key pair, writes the interface config, starts an
    empty client registry and adds the first client through the regular
    add path.

    Args:
        settings: Manager settings
        first_client: Name of the client created with the server (None skips it)
        keygen: Key provider returning (private, public)
        service: Daemon controller (defaults to the wg-quick unit)
        force: Overwrite an existing configuration and reset the registry
        clock: Timestamp source for registry records

    Returns:
        dict with config path, server public key, first client info and
        the start result

    Raises:
        ServerExists: already provisioned and force is False
    """
    service = service or WireGuardService.from_settings(settings)

    with engine_lock(settings):
        if is_provisioned(settings) and not force:
            raise ServerExists(
                f"Configuration already exists: {settings.server_config_path} "
                "(use --force to overwrite)"
            )

        settings.config_dir.mkdir(parents=True, exist_ok=True)
        settings.config_dir.chmod(0o700)

        logger.info("Generating server keys...")
        private_key, public_key = keygen()
        atomic_write(settings.server_private_key_path, private_key + "\n", mode=0o600)
        atomic_write(settings.server_public_key_path, public_key + "\n", mode=0o644)

        atomic_write(settings.server_config_path, render_server_config(settings, private_key), mode=0o600)
        logger.info("Server configuration created: %s", settings.server_config_path)

        atomic_write(settings.registry_path, "", mode=0o600)

        client = None
        if first_client:
            client = add_client_locked(
                first_client, settings, keygen, service,
                qr=None, clock=clock, reload_daemon=False,
            )

        enabled = service.enable()
        started = service.start()
        if not (enabled.ok and started.ok):
            logger.warning("WireGuard service could not be started; start %s manually", service.unit)

    logger.info("Server initialized: %s", settings.server_config_path)
    return {
        "config_path": settings.server_config_path,
        "public_key": public_key,
        "client": client,
        "start": started,
    }
