"""Client record data model."""

import re
from dataclasses import dataclass
from datetime import datetime

from .errors import InvalidClientName, RegistryError

CLIENT_NAME_RE = re.compile(r'^[A-Za-z0-9_-]+$')


def validate_client_name(name: str) -> str:
    """Return name unchanged, or raise InvalidClientName."""
    if not name or not CLIENT_NAME_RE.match(name):
        raise InvalidClientName(name)
    return name


@dataclass(frozen=True)
class ClientRecord:
    """One registered VPN client."""

    name: str
    address: str
    public_key: str
    created_at: int

    @property
    def created(self) -> datetime:
        """Creation time as a local datetime."""
        return datetime.fromtimestamp(self.created_at)

    def to_line(self) -> str:
        """Serialize as a registry line (without newline)."""
        for label, value in (('address', self.address), ('public key', self.public_key)):
            if ':' in value or '\n' in value:
                raise RegistryError(f"{label} '{value}' cannot be stored in the registry")
        return f"{self.name}:{self.address}:{self.public_key}:{self.created_at}"

    @classmethod
    def from_line(cls, line: str) -> 'ClientRecord':
        """Parse a ``name:address:publicKey:timestamp`` line."""
        parts = line.strip().split(':')
        if len(parts) != 4:
            raise RegistryError(f"expected 4 fields, got {len(parts)}")

        name, address, public_key, timestamp = parts
        if not CLIENT_NAME_RE.match(name):
            raise RegistryError(f"invalid client name '{name}'")
        try:
            created_at = int(timestamp)
        except ValueError:
            raise RegistryError(f"invalid timestamp '{timestamp}'") from None

        return cls(name=name, address=address, public_key=public_key, created_at=created_at)
