"""File primitives shared by the idea and bucket stores.

Records are written atomically (temp file + rename) and mutated under an
exclusive ``flock`` so that a read-modify-write of one record is never
interleaved with another writer, whether in another thread or another
process.
"""

from __future__ import annotations

import fcntl
import logging
import os
import tempfile
import time
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from ideaqueue.errors import LockTimeout

logger = logging.getLogger(__name__)

LOCK_POLL_INTERVAL = 0.05


def atomic_write(path: Path, content: str) -> None:
    """Write *content* to *path* so readers never observe a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


@contextmanager
def exclusive_lock(lock_file: Path, timeout: float, lock_name: str) -> Iterator[None]:
    """Hold an exclusive flock on *lock_file* for the duration of the block.

    Lock files are never deleted: removing one lets two writers hold
    "exclusive" locks on different inodes behind the same path.

    Raises:
        LockTimeout: If the lock is not acquired within *timeout* seconds.
    """
    lock_file.parent.mkdir(parents=True, exist_ok=True)
    fd = open(lock_file, "a")
    start = time.monotonic()
    try:
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() - start > timeout:
                    raise LockTimeout(f"Could not acquire {lock_name} within {timeout}s")
                time.sleep(LOCK_POLL_INTERVAL)
        logger.debug("Acquired %s", lock_name)
        try:
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            logger.debug("Released %s", lock_name)
    finally:
        fd.close()
