"""Error types raised by WireGuard Server Manager.

Each error carries the process exit code the CLI reports for it, so callers
can tell "not found", "already exists" and "pool exhausted" apart.
"""


class WGServerError(Exception):
    """Base class for all manager errors."""

    exit_code = 1


class FatalError(WGServerError):
    """Unrecoverable failure, the command stops."""


class ClientNotFound(WGServerError):
    """Referenced client is not in the registry."""

    exit_code = 2

    def __init__(self, name: str):
        super().__init__(f"Client '{name}' not found")
        self.name = name


class PeerNotFound(WGServerError):
    """No peer block tagged with the client name in the server config."""

    exit_code = 2

    def __init__(self, name: str, path=None):
        where = f" in {path}" if path else ""
        super().__init__(f"No peer block tagged '# Client: {name}'{where}")
        self.name = name


class BackupNotFound(WGServerError):
    """Referenced snapshot does not exist."""

    exit_code = 2

    def __init__(self, ref: str):
        super().__init__(f"Backup not found: {ref}")
        self.ref = ref


class ClientExists(WGServerError):
    """Client name is already registered."""

    exit_code = 3

    def __init__(self, name: str):
        super().__init__(f"Client '{name}' already exists")
        self.name = name


class ServerExists(WGServerError):
    """Server configuration already provisioned."""

    exit_code = 3


class AddressPoolExhausted(WGServerError):
    """No free address left in the client subnet."""

    exit_code = 4

    def __init__(self, subnet: str):
        super().__init__(f"No available IP addresses in {subnet}")
        self.subnet = subnet


class InvalidClientName(WGServerError, ValueError):
    """Client name contains characters outside [A-Za-z0-9_-]."""

    def __init__(self, name: str):
        super().__init__(
            f"Invalid client name '{name}'. "
            "Use only letters, numbers, hyphens, and underscores."
        )
        self.name = name


class RegistryError(FatalError):
    """Client registry file is missing or malformed."""


class CorruptBackup(FatalError):
    """Backup archive cannot be read or holds unsafe members."""


class NotProvisioned(FatalError):
    """Server configuration or server keys are missing."""


class KeyGenerationError(FatalError):
    """Key provider failed to produce a key pair."""


class ConfigError(FatalError):
    """Invalid manager settings."""


class RestoreAborted(FatalError):
    """Restore was not confirmed; nothing was changed."""

    exit_code = 5


class EngineBusy(FatalError):
    """Another manager process holds the engine lock."""

    exit_code = 6
