"""Client configuration files and QR images."""

import ipaddress
import logging
from pathlib import Path
from typing import Optional, Tuple

import qrcode

from ..config import Settings
from ..templates import render
from ..utils import atomic_write

logger = logging.getLogger(__name__)


def artifact_paths(name: str, settings: Settings) -> Tuple[Path, Path]:
    """Paths of the client's config file and QR image."""
    return settings.clients_dir / f"{name}.conf", settings.clients_dir / f"{name}.png"


def format_endpoint(host: str, port: int) -> str:
    """Join host and port, bracketing IPv6 literals."""
    try:
        if ipaddress.ip_address(host).version == 6:
            return f"[{host}]:{port}"
    except ValueError:
        pass
    return f"{host}:{port}"


def render_client_config(
    private_key: str,
    address: str,
    server_public_key: str,
    endpoint: str,
    dns: Optional[str],
    keepalive: int = 25,
    allowed_ips: str = "0.0.0.0/0",
) -> str:
    """
    Render a full-tunnel client config.

    Args:
        private_key: Client private key
        address: Client tunnel address (no prefix length)
        server_public_key: Server public key
        endpoint: Server "host:port"
        dns: Comma-separated resolvers, omitted from the file when empty
        keepalive: PersistentKeepalive seconds (0 omits the line)
        allowed_ips: Routes sent through the tunnel

    Returns:
        Config file text
    """
    return render(
        "client.conf.j2",
        private_key=private_key,
        address=address,
        server_public_key=server_public_key,
        endpoint=endpoint,
        dns=dns,
        keepalive=keepalive,
        allowed_ips=allowed_ips,
    )


def write_qr_png(text: str, path: Path) -> Optional[Path]:
    """
    Save text as a PNG QR code.

    Failures are logged and reported as None; the text config stays usable.
    """
    try:
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_L,
            box_size=10,
            border=4,
        )
        qr.add_data(text)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white")
        img.save(str(path))
        path.chmod(0o600)
    except Exception as e:
        logger.warning("Failed to generate QR code %s: %s", path, e)
        return None

    logger.info("QR code generated: %s", path)
    return path


def emit(
    name: str,
    private_key: str,
    address: str,
    server_public_key: str,
    endpoint: str,
    dns: Optional[str],
    settings: Settings,
    qr: Optional[bool] = None,
) -> Tuple[Path, Optional[Path]]:
    """
    Write the client config file, and its QR image when enabled.

    Returns:
        (config path, QR path or None)
    """
    text = render_client_config(
        private_key=private_key,
        address=address,
        server_public_key=server_public_key,
        endpoint=endpoint,
        dns=dns,
        keepalive=settings.keepalive,
        allowed_ips=settings.client_allowed_ips,
    )

    conf_path, png_path = artifact_paths(name, settings)
    atomic_write(conf_path, text, mode=0o600)
    logger.info("Client configuration created: %s", conf_path)

    if qr is None:
        qr = settings.qr_code
    qr_path = write_qr_png(text, png_path) if qr else None
    return conf_path, qr_path


def delete_artifacts(name: str, settings: Settings) -> list:
    """Remove the client's config file and QR image if present."""
    removed = []
    for path in artifact_paths(name, settings):
        if path.exists():
            path.unlink()
            removed.append(path)
    return removed
