"""Add WireGuard clients."""

import logging
import time
from typing import Callable, Optional, Tuple

from ..config import Settings
from ..errors import ClientExists, NotProvisioned
from ..lock import engine_lock
from ..models import validate_client_name
from ..network import next_address
from ..registry import ClientStore
from ..serverconf import ServerConfig, append_peer, load_server_config
from ..service import ServiceResult, WireGuardService
from ..utils import generate_keypair, get_public_ip
from .export import emit, format_endpoint

logger = logging.getLogger(__name__)


def read_server_public_key(settings: Settings) -> str:
    """Server public key from the config directory."""
    path = settings.server_public_key_path
    if not path.exists():
        raise NotProvisioned(f"Server public key not found: {path}")
    key = path.read_text().strip()
    if not key:
        raise NotProvisioned(f"Server public key is empty: {path}")
    return key


def server_endpoint(settings: Settings, config: Optional[ServerConfig] = None) -> str:
    """Endpoint clients connect to, as host:port."""
    port = settings.listen_port
    if config is not None:
        listen_port = config.interface_value("ListenPort")
        if listen_port and listen_port.isdigit():
            port = int(listen_port)
    host = settings.endpoint or get_public_ip()
    return format_endpoint(host, port)


def reload_service(service: WireGuardService, action: str) -> ServiceResult:
    """Ask the daemon to pick up config changes; never raises."""
    result = service.reload()
    if result is ServiceResult.DEGRADED:
        logger.warning("Could not reload WireGuard after %s (configuration is saved; "
                       "this is expected in containers)", action)
    elif result is ServiceResult.FATAL:
        logger.error("WireGuard reload failed after %s; configuration is saved", action)
    return result


def add_client(
    name: str,
    settings: Settings,
    keygen: Callable[[], Tuple[str, str]] = generate_keypair,
    service: Optional[WireGuardService] = None,
    qr: Optional[bool] = None,
    clock: Callable[[], float] = time.time,
) -> dict:
    """
    Add a client: register it, append its peer block, write its config.

    Args:
        name: Client name (letters, numbers, dashes, underscores)
        settings: Manager settings
        keygen: Key provider returning (private, public)
        service: Daemon controller (defaults to the wg-quick unit)
        qr: Write a QR image (defaults to settings.qr_code)
        clock: Timestamp source for the registry record

    Returns:
        dict with client info, artifact paths and the reload result

    Raises:
        InvalidClientName, NotProvisioned, ClientExists,
        AddressPoolExhausted, KeyGenerationError
    """
    validate_client_name(name)
    service = service or WireGuardService.from_settings(settings)

    with engine_lock(settings):
        return add_client_locked(name, settings, keygen, service, qr, clock)


def add_client_locked(name, settings, keygen, service, qr, clock, reload_daemon=True) -> dict:
    """add_client for callers already holding the engine lock."""
    config = load_server_config(settings.server_config_path)
    server_public_key = read_server_public_key(settings)
    store = ClientStore(settings.registry_path, clock=clock, subnet=settings.subnet)

    if store.exists(name):
        raise ClientExists(name)

    address = next_address(settings.subnet, store.addresses(), reserved=[settings.server_address])
    private_key, public_key = keygen()
    endpoint = server_endpoint(settings, config)

    logger.info("Adding client '%s' with IP %s", name, address)

    # registry first: it is the record of intent if we die before the config write
    record = store.add(name, address, public_key)
    append_peer(settings.server_config_path, name, public_key, address)

    conf_path, qr_path = emit(
        name=name,
        private_key=private_key,
        address=address,
        server_public_key=server_public_key,
        endpoint=endpoint,
        dns=settings.dns,
        settings=settings,
        qr=qr,
    )

    reload = reload_service(service, f"adding '{name}'") if reload_daemon else None
    logger.info("Client '%s' added successfully", name)

    return {
        "name": record.name,
        "address": record.address,
        "public_key": record.public_key,
        "config_path": conf_path,
        "qr_path": qr_path,
        "reload": reload,
    }
