"""JSON-backed bucket storage.

All buckets live in a single ``buckets.json`` file.  The file is re-read
on every call so that separate processes see each other's writes, and
every mutation runs under the catalog lock.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from pydantic import BaseModel, Field

from ideaqueue.buckets.models import Bucket
from ideaqueue.errors import CorruptStore
from ideaqueue.storage import atomic_write, exclusive_lock

logger = logging.getLogger(__name__)

BUCKETS_FILENAME = "buckets.json"

# Alias to avoid shadowing by BucketStore.list
_list = list


class _CatalogData(BaseModel):
    """Internal wrapper for JSON serialization."""

    buckets: list[Bucket] = Field(default_factory=list)


class BucketStore:
    """File-backed persistence for buckets."""

    def __init__(self, root: Path, lock_timeout: float = 30.0) -> None:
        self._path = root / BUCKETS_FILENAME
        self._lock_path = root / "locks" / "buckets.lock"
        self._lock_timeout = lock_timeout

    def _load(self, strict: bool = False) -> _CatalogData:
        """Read the catalog file.

        A corrupt file reads as empty unless *strict*, in which case
        ``CorruptStore`` is raised so that no edit overwrites it.
        """
        if not self._path.exists():
            return _CatalogData()
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
            return _CatalogData.model_validate(raw)
        except (json.JSONDecodeError, ValueError, KeyError) as exc:
            if strict:
                raise CorruptStore(self._path, str(exc)) from exc
            logger.warning("Corrupt bucket catalog at %s, reading it as empty", self._path)
            return _CatalogData()

    def _save(self, data: _CatalogData) -> None:
        atomic_write(self._path, data.model_dump_json(indent=2))

    @contextmanager
    def locked(self) -> Iterator[None]:
        """Hold the catalog lock without editing."""
        with exclusive_lock(self._lock_path, self._lock_timeout, "bucket catalog lock"):
            yield

    @contextmanager
    def editing(self) -> Iterator[list[Bucket]]:
        """Yield the bucket list for in-place edits; saved when the block exits cleanly.

        Raises:
            CorruptStore: The catalog file cannot be parsed; it is left untouched.
        """
        with self.locked():
            data = self._load(strict=True)
            yield data.buckets
            self._save(data)

    def get(self, bucket_id: str) -> Bucket | None:
        for bucket in self._load().buckets:
            if bucket.id == bucket_id:
                return bucket
        return None

    def list(self) -> _list[Bucket]:
        return _list(self._load().buckets)
