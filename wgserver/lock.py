"""Single-writer lock around registry/config/daemon updates."""

import fcntl
import logging
import os
import time
from contextlib import contextmanager
from typing import Iterator

from .config import Settings
from .errors import EngineBusy

logger = logging.getLogger(__name__)


@contextmanager
def engine_lock(settings: Settings, timeout: float = 10.0) -> Iterator[None]:
    """
    Hold an exclusive flock on the settings lock file.

    The lock is not re-entrant: code already inside it must not take it
    again.

    Raises:
        EngineBusy: lock still held by another process after timeout seconds
    """
    path = settings.lock_file
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, 'a+') as fh:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(fh.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except OSError:
                if time.monotonic() >= deadline:
                    fh.seek(0)
                    holder = fh.read().strip() or "unknown"
                    raise EngineBusy(
                        f"Another operation is in progress (lock {path} held by pid {holder})"
                    ) from None
                time.sleep(0.1)

        logger.debug("Acquired lock %s", path)
        try:
            fh.seek(0)
            fh.truncate()
            fh.write(str(os.getpid()))
            fh.flush()
            yield
        finally:
            fh.seek(0)
            fh.truncate()
            fcntl.flock(fh.fileno(), fcntl.LOCK_UN)
            logger.debug("Released lock %s", path)
