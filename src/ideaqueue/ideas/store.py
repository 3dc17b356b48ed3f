"""JSON-backed idea store with per-record single-writer transactions.

Each idea is persisted as ``ideas/<id>.json`` under the store root.
Nothing is cached between calls: every read goes to disk, and every
mutation runs inside :meth:`IdeaStore.transaction`, which holds the
idea's lock across the read, the caller's edits, and the atomic write.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError as ModelValidationError

from ideaqueue.errors import NotFound
from ideaqueue.ideas.models import Idea
from ideaqueue.stages import IdeaStatus, Stage, bucket_field
from ideaqueue.storage import atomic_write, exclusive_lock

logger = logging.getLogger(__name__)

IDEAS_DIRNAME = "ideas"

# Alias to avoid shadowing by IdeaStore.list
_list = list


class IdeaStore:
    """File-backed CRUD store for ideas."""

    def __init__(self, root: Path, lock_timeout: float = 30.0) -> None:
        self._dir = root / IDEAS_DIRNAME
        self._lock_dir = root / "locks" / IDEAS_DIRNAME
        self._lock_timeout = lock_timeout

    # ── Private helpers ──────────────────────────────────────────

    def _path(self, idea_id: str) -> Path:
        if not idea_id or "/" in idea_id or idea_id.startswith("."):
            raise NotFound("Idea", idea_id)
        return self._dir / f"{idea_id}.json"

    def _read(self, path: Path) -> Idea | None:
        try:
            raw = json.loads(path.read_text(encoding="utf-8"))
            return Idea.model_validate(raw)
        except FileNotFoundError:
            return None
        except (json.JSONDecodeError, ModelValidationError):
            logger.warning("Corrupt idea record at %s, skipping", path)
            return None

    def _write(self, idea: Idea) -> None:
        atomic_write(self._path(idea.id), idea.model_dump_json(indent=2))

    # ── Write operations ─────────────────────────────────────────

    def insert(self, idea: Idea) -> Idea:
        """Persist a new idea.  Raises ValueError if the id is taken."""
        path = self._path(idea.id)
        lock_name = f"lock for idea {idea.id}"
        with exclusive_lock(self._lock_dir / f"{idea.id}.lock", self._lock_timeout, lock_name):
            if path.exists():
                raise ValueError(f"Idea {idea.id} already exists")
            self._write(idea)
        return idea

    @contextmanager
    def transaction(self, idea_id: str) -> Iterator[Idea]:
        """Read-modify-write one idea under its exclusive lock.

        Yields a working copy of the persisted record.  If the block exits
        cleanly the copy is stamped with ``updated_at`` and written back;
        if it raises, nothing is written.

        Raises:
            NotFound: If the idea does not exist.
            LockTimeout: If another writer holds the idea for too long.
        """
        path = self._path(idea_id)
        lock_name = f"lock for idea {idea_id}"
        with exclusive_lock(self._lock_dir / f"{idea_id}.lock", self._lock_timeout, lock_name):
            current = self._read(path)
            if current is None:
                raise NotFound("Idea", idea_id)
            draft = current.model_copy(deep=True)
            yield draft
            draft.updated_at = datetime.now(tz=UTC)
            self._write(draft)

    # ── Read operations ──────────────────────────────────────────

    def get(self, idea_id: str) -> Idea | None:
        """Return an idea by id, or None if not found."""
        try:
            path = self._path(idea_id)
        except NotFound:
            return None
        return self._read(path)

    def require(self, idea_id: str) -> Idea:
        idea = self.get(idea_id)
        if idea is None:
            raise NotFound("Idea", idea_id)
        return idea

    def list(
        self,
        stage: Stage | None = None,
        status: IdeaStatus | None = None,
        bucket_id: str | None = None,
    ) -> _list[Idea]:
        """Return ideas newest first, optionally filtered.

        ``bucket_id`` matches the slot of ``stage`` when a stage is given,
        and any slot otherwise.
        """
        if not self._dir.exists():
            return []
        results: _list[Idea] = []
        for path in self._dir.glob("*.json"):
            idea = self._read(path)
            if idea is None:
                continue
            if stage is not None and idea.stage != stage:
                continue
            if status is not None and idea.status != status:
                continue
            if bucket_id is not None:
                field = bucket_field(stage) if stage is not None else None
                if stage is not None and (field is None or getattr(idea, field) != bucket_id):
                    continue
                if stage is None and not idea.references_bucket(bucket_id):
                    continue
            results.append(idea)
        results.sort(key=lambda i: i.created_at, reverse=True)
        return results

    def count_bucket_references(self, bucket_id: str) -> int:
        """Number of ideas holding *bucket_id* in any bucket slot."""
        return len(self.list(bucket_id=bucket_id))
