"""Configuration and paths for WireGuard Server Manager."""

import ipaddress
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError
from .utils import is_inside

# Paths
WIREGUARD_DIR = Path("/etc/wireguard")
BACKUP_DIR = Path.home() / ".wireguard-backups"
SETTINGS_FILE = WIREGUARD_DIR / "wgserver.yaml"
LOCK_FILE = Path("/run/lock/wgserver.lock")

# Default interface
DEFAULT_INTERFACE = "wg0"

# Default network settings
DEFAULTS = {
    "server_port": 51820,
    "server_subnet": "10.66.66.0/24",
    "server_address": "10.66.66.1",
    "dns_servers": "1.1.1.1, 1.0.0.1",
    "keepalive": 25,
    "allowed_ips": "0.0.0.0/0",
}

# Environment variables understood by the installer scripts
ENV_OVERRIDES = {
    "WG_SERVER_IP": "endpoint",
    "WG_PORT": "listen_port",
    "DNS_PROVIDER": "dns",
}

# DNS providers offered by name (or by installer menu number)
DNS_PRESETS = {
    "cloudflare": "1.1.1.1, 1.0.0.1",
    "quad9": "9.9.9.9, 149.112.112.112",
    "google": "8.8.8.8, 8.8.4.4",
    "opendns": "208.67.222.222, 208.67.220.220",
}
DNS_MENU = {"1": "cloudflare", "2": "quad9", "3": "google", "4": "opendns"}


def resolve_dns(value: str) -> str:
    """Expand a DNS provider name to its server list; other values pass through."""
    key = str(value).strip().lower()
    key = DNS_MENU.get(key, key)
    return DNS_PRESETS.get(key, str(value).strip())


@dataclass
class Settings:
    """Server and client-management settings."""

    config_dir: Path = WIREGUARD_DIR
    interface: str = DEFAULT_INTERFACE
    registry_file: Optional[Path] = None
    clients_dir: Path = Path.home()
    backup_dir: Path = BACKUP_DIR
    lock_file: Path = LOCK_FILE
    subnet: str = DEFAULTS["server_subnet"]
    server_address: str = DEFAULTS["server_address"]
    listen_port: int = DEFAULTS["server_port"]
    endpoint: Optional[str] = None
    dns: str = DEFAULTS["dns_servers"]
    keepalive: int = DEFAULTS["keepalive"]
    client_allowed_ips: str = DEFAULTS["allowed_ips"]
    external_interface: Optional[str] = None
    qr_code: bool = True
    require_root: bool = True

    def __post_init__(self):
        for name in ("config_dir", "clients_dir", "backup_dir", "lock_file"):
            setattr(self, name, Path(getattr(self, name)).expanduser())
        if self.registry_file is not None:
            self.registry_file = Path(self.registry_file).expanduser()
        self.listen_port = int(self.listen_port)
        self.keepalive = int(self.keepalive)
        self.dns = resolve_dns(self.dns)

    @property
    def server_config_path(self) -> Path:
        """Path to the interface config file."""
        return self.config_dir / f"{self.interface}.conf"

    @property
    def registry_path(self) -> Path:
        """Path to the client registry."""
        return self.registry_file or self.config_dir / "clients.db"

    @property
    def server_private_key_path(self) -> Path:
        return self.config_dir / "server_private.key"

    @property
    def server_public_key_path(self) -> Path:
        return self.config_dir / "server_public.key"

    @property
    def service_unit(self) -> str:
        return f"wg-quick@{self.interface}"

    def validate(self) -> 'Settings':
        """Check value ranges, raising ConfigError on the first problem."""
        if not 1 <= self.listen_port <= 65535:
            raise ConfigError(f"Invalid port number: {self.listen_port}")
        try:
            network = ipaddress.ip_network(self.subnet, strict=False)
        except ValueError as e:
            raise ConfigError(f"Invalid subnet '{self.subnet}': {e}") from None
        if not isinstance(network, ipaddress.IPv4Network):
            raise ConfigError(f"Only IPv4 client subnets are supported, got {network}")
        try:
            server_ip = ipaddress.ip_address(self.server_address.split('/')[0])
        except ValueError as e:
            raise ConfigError(f"Invalid server address '{self.server_address}': {e}") from None
        if server_ip not in network:
            raise ConfigError(f"Server address {server_ip} is outside subnet {network}")
        if self.keepalive < 0:
            raise ConfigError(f"Invalid keepalive: {self.keepalive}")
        # The config directory is swapped out wholesale on restore
        for name in ("backup_dir", "lock_file"):
            if is_inside(getattr(self, name), self.config_dir):
                raise ConfigError(f"{name} {getattr(self, name)} must not be inside {self.config_dir}")
        return self


    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, Path):
                data[key] = str(value)
        return data


def get_version() -> str:
    """Get application version."""
    version_file = Path(__file__).parent.parent / "VERSION"
    if version_file.exists():
        return version_file.read_text().strip()
    return "1.0.0"


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load configuration from YAML file."""
    if path is None:
        path = SETTINGS_FILE

    if path.exists():
        with open(path, 'r') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path}: expected a mapping at top level")
        return data
    return {}


def save_config(config: Dict[str, Any], path: Optional[Path] = None) -> None:
    """Save configuration to YAML file."""
    if path is None:
        path = SETTINGS_FILE

    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w') as f:
        yaml.dump(config, f, default_flow_style=False)


def load_settings(path: Optional[Path] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build settings from defaults, the YAML file and the environment.

    Args:
        path: Settings file (defaults to $WGSERVER_CONFIG or /etc/wireguard/wgserver.yaml)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Validated Settings
    """
    if environ is None:
        environ = os.environ
    if path is None:
        path = Path(environ.get("WGSERVER_CONFIG", SETTINGS_FILE))

    data = load_config(Path(path))

    known = {f.name for f in fields(Settings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"{path}: unknown setting(s): {', '.join(unknown)}")

    for var, key in ENV_OVERRIDES.items():
        if environ.get(var):
            data[key] = environ[var]

    try:
        settings = Settings(**data)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"{path}: {e}") from None
    return settings.validate()


def save_settings(settings: Settings, path: Optional[Path] = None) -> None:
    """Write settings back as YAML."""
    save_config(settings.to_dict(), path)
