"""Utility functions for WireGuard Server Manager."""

import logging
import os
import socket
import subprocess
import tempfile
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import KeyGenerationError

logger = logging.getLogger(__name__)


def check_root() -> bool:
    """Check if running as root."""
    return os.geteuid() == 0


def run(
    cmd: List[str],
    check: bool = True,
    capture: bool = True,
    timeout: int = 30,
    input_text: Optional[str] = None,
) -> subprocess.CompletedProcess:
    """Run a shell command."""
    logger.debug("Running: %s", ' '.join(cmd))
    try:
        return subprocess.run(
            cmd,
            input=input_text,
            capture_output=capture,
            text=True,
            timeout=timeout,
            check=check,
        )
    except subprocess.CalledProcessError as e:
        logger.debug("Command failed: %s: %s", ' '.join(cmd), (e.stderr or '').strip())
        raise
    except subprocess.TimeoutExpired:
        logger.debug("Command timed out: %s", ' '.join(cmd))
        raise


def generate_keypair() -> Tuple[str, str]:
    """Generate WireGuard private and public key pair."""
    try:
        result = run(["wg", "genkey"])
        private_key = result.stdout.strip()

        result = run(["wg", "pubkey"], input_text=private_key)
        public_key = result.stdout.strip()
    except (OSError, subprocess.SubprocessError) as e:
        raise KeyGenerationError(f"Key generation failed (is wireguard-tools installed?): {e}") from e

    if not private_key or not public_key:
        raise KeyGenerationError("Key generation returned an empty key")
    return private_key, public_key


def get_public_ip() -> str:
    """Get the server's public IP address."""
    try:
        result = run(["curl", "-s", "https://api.ipify.org"], check=False, timeout=5)
        if result.returncode == 0 and result.stdout:
            return result.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass

    # Fallback to local IP detection
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as s:
            s.connect(("8.8.8.8", 80))
            return s.getsockname()[0]
    except OSError:
        logger.warning("Could not automatically detect server IP")
        return "YOUR_SERVER_IP"


def atomic_write(path: Path, content: str, mode: int = 0o600) -> None:
    """
    Replace path with content in one rename.

    The data is fsynced before the rename so a crash leaves either the old
    or the new file, never a partial one.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", dir=str(path.parent))
    try:
        with os.fdopen(fd, 'w') as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_name, mode)
        os.replace(tmp_name, path)
    except BaseException:
        if os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise


def is_inside(path: Path, directory: Path) -> bool:
    """Check whether path is directory or lies below it, following symlinks."""
    try:
        Path(path).resolve().relative_to(Path(directory).resolve())
    except ValueError:
        return False
    return True
