"""Server configuration editor.

The interface config is held as an ordered list of chunks: tagged peer
blocks and raw text. A peer block starts at a ``# Client: <name>`` line and
runs through the next empty line. Rendering concatenates the chunks, so any
text that is not edited comes back out byte for byte.
"""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional, Union

from .errors import NotProvisioned, PeerNotFound
from .utils import atomic_write

logger = logging.getLogger(__name__)

TAG_RE = re.compile(r'^# Client: ([A-Za-z0-9_-]+)$')


def _strip_eol(line: str) -> str:
    return line.rstrip('\r\n')


def _is_blank(line: str) -> bool:
    # whitespace-only lines are not terminators
    return _strip_eol(line) == ''


@dataclass
class PeerBlock:
    """A peer section tagged with its client name."""

    name: str
    lines: List[str] = field(default_factory=list)
    terminated: bool = True

    @classmethod
    def build(cls, name: str, public_key: str, address: str) -> 'PeerBlock':
        """Render the block appended for a new client."""
        lines = [
            f"# Client: {name}\n",
            "[Peer]\n",
            f"PublicKey = {public_key}\n",
            f"AllowedIPs = {address}/32\n",
            "\n",
        ]
        return cls(name=name, lines=lines, terminated=True)

    @property
    def text(self) -> str:
        return ''.join(self.lines)

    def get(self, key: str) -> Optional[str]:
        """First value of key inside the block."""
        for line in self.lines:
            stripped = line.strip()
            if '=' not in stripped or stripped.startswith('#'):
                continue
            k, value = stripped.split('=', 1)
            if k.strip() == key:
                return value.strip()
        return None

    @property
    def public_key(self) -> Optional[str]:
        return self.get('PublicKey')

    @property
    def allowed_ips(self) -> Optional[str]:
        return self.get('AllowedIPs')


Chunk = Union[str, PeerBlock]


class ServerConfig:
    """Parsed interface config."""

    def __init__(self, chunks: Optional[List[Chunk]] = None):
        self.chunks: List[Chunk] = chunks or []

    @classmethod
    def parse(cls, text: str) -> 'ServerConfig':
        chunks: List[Chunk] = []
        raw: List[str] = []
        block: Optional[PeerBlock] = None

        for line in text.splitlines(keepends=True):
            match = TAG_RE.match(_strip_eol(line))

            if block is not None:
                if match:
                    # next tag before the empty-line terminator
                    block.terminated = False
                    chunks.append(block)
                    block = None
                else:
                    block.lines.append(line)
                    if _is_blank(line):
                        chunks.append(block)
                        block = None
                    continue

            if match:
                if raw:
                    chunks.append(''.join(raw))
                    raw = []
                block = PeerBlock(name=match.group(1), lines=[line])
            else:
                raw.append(line)

        if block is not None:
            block.terminated = False
            chunks.append(block)
        if raw:
            chunks.append(''.join(raw))

        return cls(chunks)

    def render(self) -> str:
        return ''.join(c.text if isinstance(c, PeerBlock) else c for c in self.chunks)

    @property
    def peers(self) -> List[PeerBlock]:
        return [c for c in self.chunks if isinstance(c, PeerBlock)]

    def peer_names(self) -> List[str]:
        return [p.name for p in self.peers]

    def find(self, name: str) -> Optional[PeerBlock]:
        for peer in self.peers:
            if peer.name == name:
                return peer
        return None

    def interface_value(self, key: str) -> Optional[str]:
        """First value of key in the [Interface] section."""
        in_interface = False
        for line in self.render().splitlines():
            stripped = line.strip()
            if stripped.startswith('['):
                in_interface = stripped == '[Interface]'
                continue
            if in_interface and '=' in stripped and not stripped.startswith('#'):
                k, value = stripped.split('=', 1)
                if k.strip() == key:
                    return value.strip()
        return None

    def append(self, block: PeerBlock) -> None:
        text = self.render()
        if text and not text.endswith('\n'):
            self.chunks.append('\n')
        self.chunks.append(block)

    def remove(self, name: str) -> List[PeerBlock]:
        """Drop every block tagged name, returning the removed blocks."""
        removed = [c for c in self.chunks if isinstance(c, PeerBlock) and c.name == name]
        self.chunks = [c for c in self.chunks if not (isinstance(c, PeerBlock) and c.name == name)]
        return removed


def load_server_config(path: Path) -> ServerConfig:
    """Read and parse the interface config."""
    if not path.exists():
        raise NotProvisioned(f"Server configuration not found: {path}")
    return ServerConfig.parse(path.read_text())


def write_server_config(path: Path, text: str) -> None:
    atomic_write(path, text, mode=0o600)


def append_peer(path: Path, name: str, public_key: str, address: str) -> PeerBlock:
    """
    Append a tagged peer block to the end of the interface config.

    Existing bytes are never rewritten; the file is opened in append mode.
    """
    if not path.exists():
        raise NotProvisioned(f"Server configuration not found: {path}")

    block = PeerBlock.build(name, public_key, address)
    needs_newline = False
    with open(path, 'rb') as f:
        f.seek(0, os.SEEK_END)
        if f.tell() > 0:
            f.seek(-1, os.SEEK_END)
            needs_newline = f.read(1) != b'\n'

    with open(path, 'a') as f:
        if needs_newline:
            f.write('\n')
        f.write(block.text)
        f.flush()

    logger.debug("Appended peer block for %s to %s", name, path)
    return block


def remove_peer(path: Path, name: str) -> List[PeerBlock]:
    """
    Remove every peer block tagged name.

    A block whose empty-line terminator is missing ends at the next tag or at end
    of file, and is removed up to there.

    Raises:
        PeerNotFound: no block carries the tag
    """
    config = load_server_config(path)
    removed = config.remove(name)
    if not removed:
        raise PeerNotFound(name, path)

    for block in removed:
        if not block.terminated:
            logger.warning(
                "Peer block for '%s' in %s had no empty-line terminator; "
                "removed it up to the next tag or end of file", name, path
            )
    if len(removed) > 1:
        logger.warning("Removed %d peer blocks tagged '%s' from %s", len(removed), name, path)

    write_server_config(path, config.render())
    logger.debug("Removed peer block for %s from %s", name, path)
    return removed
