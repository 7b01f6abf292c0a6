"""WireGuard Server Manager - client registry and server config sync."""

from .config import get_version

__version__ = get_version()
