"""Persistent client registry.

The registry is a flat file with one ``name:address:publicKey:timestamp``
line per client, kept in insertion order. Every mutation is flushed to disk
before the method returns, so a crash between a registry write and the
matching server config write leaves the registry as the record of intent.
"""

import logging
import os
import time
from pathlib import Path
from typing import Callable, List, Optional, Set

from .errors import ClientExists, ClientNotFound, RegistryError
from .models import ClientRecord, validate_client_name
from .network import address_in_subnet
from .utils import atomic_write

logger = logging.getLogger(__name__)


class ClientStore:
    """Client registry backed by a colon-delimited file."""

    def __init__(self, path: Path, clock: Callable[[], float] = time.time, subnet: Optional[str] = None):
        self.path = Path(path)
        self.clock = clock
        self.subnet = subnet

    def initialize(self) -> None:
        """Create an empty registry file if none exists."""
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            self.path.touch()
        self.path.chmod(0o600)

    def require(self) -> None:
        """Raise RegistryError unless the registry file exists."""
        if not self.path.exists():
            raise RegistryError(f"Client registry not found: {self.path}")

    def list(self) -> List[ClientRecord]:
        """All records in insertion order."""
        if not self.path.exists():
            return []

        records = []
        with open(self.path, 'r') as f:
            for lineno, line in enumerate(f, 1):
                if not line.strip():
                    continue
                try:
                    records.append(ClientRecord.from_line(line))
                except RegistryError as e:
                    raise RegistryError(f"{self.path}:{lineno}: {e}") from None
        return records

    def exists(self, name: str) -> bool:
        return any(r.name == name for r in self.list())

    def get(self, name: str) -> ClientRecord:
        for record in self.list():
            if record.name == name:
                return record
        raise ClientNotFound(name)

    def addresses(self) -> Set[str]:
        return {r.address for r in self.list()}

    def add(self, name: str, address: str, public_key: str) -> ClientRecord:
        """
        Append a client record.

        Raises:
            ClientExists: name already registered
            RegistryError: address already assigned to another client, or
                outside the store's subnet
        """
        validate_client_name(name)
        if self.subnet and not address_in_subnet(address, self.subnet):
            raise RegistryError(f"Address {address} is outside subnet {self.subnet}")
        records = self.list()
        if any(r.name == name for r in records):
            raise ClientExists(name)
        for r in records:
            if r.address == address:
                raise RegistryError(f"Address {address} already assigned to '{r.name}'")

        record = ClientRecord(
            name=name,
            address=address,
            public_key=public_key,
            created_at=int(self.clock()),
        )
        line = record.to_line()

        self.initialize()
        with open(self.path, 'a') as f:
            if f.tell() > 0 and not self._ends_with_newline():
                f.write('\n')
            f.write(line + '\n')
            f.flush()
            os.fsync(f.fileno())

        logger.debug("Registered %s at %s", name, address)
        return record

    def remove(self, name: str) -> ClientRecord:
        """
        Delete the record for name.

        Raises:
            ClientNotFound: name not registered
        """
        records = self.list()
        removed = [r for r in records if r.name == name]
        if not removed:
            raise ClientNotFound(name)

        kept = [r for r in records if r.name != name]
        atomic_write(self.path, ''.join(r.to_line() + '\n' for r in kept))

        logger.debug("Unregistered %s", name)
        return removed[0]

    def _ends_with_newline(self) -> bool:
        with open(self.path, 'rb') as f:
            f.seek(-1, os.SEEK_END)
            return f.read(1) == b'\n'
