"""QR code display for stored client configs."""

import io
import logging
import subprocess

import qrcode
from rich.console import Console

from ..config import Settings
from ..errors import ClientNotFound
from ..utils import run
from .export import artifact_paths

logger = logging.getLogger(__name__)


def _read_artifact(name: str, settings: Settings) -> str:
    conf_path, _ = artifact_paths(name, settings)
    if not conf_path.exists():
        logger.error("Client configuration file not found: %s", conf_path)
        raise ClientNotFound(name)
    return conf_path.read_text()


def render_terminal_qr(text: str) -> str:
    """QR code for text as terminal block characters."""
    # Try qrencode first (native terminal)
    try:
        result = run(["qrencode", "-t", "ANSIUTF8"], input_text=text, check=False)
        if result.returncode == 0 and result.stdout:
            return result.stdout
    except (OSError, subprocess.SubprocessError):
        pass

    # Fallback to Python qrcode with ASCII
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=1,
        border=2,
    )
    qr.add_data(text)
    qr.make(fit=True)
    out = io.StringIO()
    qr.print_ascii(out=out, invert=True)
    return out.getvalue()


def show_qr(name: str, settings: Settings, console: Console = None) -> bool:
    """
    Display QR code of the client's stored config in the terminal.

    Raises:
        ClientNotFound: no stored config for name
    """
    console = console or Console()
    text = _read_artifact(name, settings)

    console.print(f"\nQR Code for client '{name}':")
    console.print(render_terminal_qr(text), markup=False, highlight=False)
    return True


def show_config(name: str, settings: Settings, console: Console = None) -> bool:
    """Display the client's stored config."""
    console = console or Console()
    text = _read_artifact(name, settings)

    console.print(f"\nConfiguration for client '{name}':")
    console.print("-" * 40)
    console.print(text, markup=False, highlight=False)
    return True
