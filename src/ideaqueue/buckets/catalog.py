"""Bucket catalog — CRUD, active-set filtering, and assignment checks."""

from __future__ import annotations

import logging
import tomllib
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from pydantic import ValidationError as ModelValidationError

from ideaqueue.buckets.models import Bucket, BucketSeed, DeleteResult
from ideaqueue.buckets.store import BucketStore
from ideaqueue.errors import BucketStageMismatch, NotFound, ValidationError
from ideaqueue.ideas.store import IdeaStore
from ideaqueue.stages import BUCKET_STAGES, Stage

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = frozenset({"name", "stage", "prompt", "is_active", "sort_order"})

# Alias to avoid shadowing by BucketCatalog.list
_list = list


def _sort_key(bucket: Bucket) -> tuple[int, int, str]:
    return (bucket.stage.position, bucket.sort_order, bucket.name)


def _require_bucket_stage(value: Any) -> Stage:
    valid = ", ".join(s.value for s in BUCKET_STAGES)
    if not value:
        raise ValidationError("name, stage, and prompt are required")
    try:
        stage = Stage(str(value))
    except ValueError:
        raise ValidationError(f"stage must be one of: {valid}") from None
    if stage not in BUCKET_STAGES:
        raise ValidationError(f"stage must be one of: {valid}")
    return stage


class BucketCatalog:
    """Stage-scoped categorization entries that ideas are filed into.

    Reference counts come from the idea store so that deleting a bucket
    never strands ideas pointing at it.
    """

    def __init__(self, store: BucketStore, ideas: IdeaStore) -> None:
        self._store = store
        self._ideas = ideas

    # ── Read operations ──────────────────────────────────────────

    def list(self, stage: Stage | str | None = None) -> _list[Bucket]:
        """Return buckets ordered by (stage, sort_order, name)."""
        buckets = self._store.list()
        if stage is not None:
            buckets = [b for b in buckets if b.stage == stage]
        return sorted(buckets, key=_sort_key)

    def list_active(self, stage: Stage | str | None = None) -> _list[Bucket]:
        """Buckets offered for new assignments."""
        return [b for b in self.list(stage) if b.is_active]

    def get(self, bucket_id: str) -> Bucket:
        bucket = self._store.get(bucket_id)
        if bucket is None:
            raise NotFound("Bucket", bucket_id)
        return bucket

    def resolve_assignment(
        self,
        bucket_id: str,
        stage: Stage,
        current: str | None = None,
    ) -> Bucket:
        """Check that *bucket_id* may be placed in *stage*'s slot.

        Inactive buckets are accepted only when the slot already holds them.

        Raises:
            NotFound: Unknown bucket.
            BucketStageMismatch: The bucket belongs to another stage.
            ValidationError: The bucket is inactive and not already assigned.
        """
        bucket = self.get(bucket_id)
        if bucket.stage != stage:
            raise BucketStageMismatch(bucket.id, bucket.stage.value, stage.value)
        if not bucket.is_active and bucket.id != current:
            raise ValidationError(f"Bucket {bucket.name!r} is inactive")
        return bucket

    @contextmanager
    def assignment_lock(self) -> Iterator[None]:
        """Hold the catalog lock while a bucket is written into an idea.

        ``delete`` counts references under the same lock, so an assignment
        checked and saved inside this block cannot land between the count
        and the delete.  Take it before any idea lock.
        """
        with self._store.locked():
            yield

    # ── Write operations ─────────────────────────────────────────

    def create(
        self,
        name: str,
        stage: Stage | str,
        prompt: str,
        is_active: bool = True,
        sort_order: int = 0,
    ) -> Bucket:
        """Create a bucket.

        Raises ValidationError if name, stage or prompt is empty, or if the
        stage is not one of the four pre-publish stages.
        """
        if not name or not stage or not prompt:
            raise ValidationError("name, stage, and prompt are required")
        bucket = Bucket(
            name=name,
            stage=_require_bucket_stage(stage),
            prompt=prompt,
            is_active=is_active,
            sort_order=sort_order,
        )
        with self._store.editing() as buckets:
            buckets.append(bucket)
        logger.info("Created %s bucket %r (%s)", bucket.stage, bucket.name, bucket.id)
        return bucket

    def update(self, bucket_id: str, fields: dict[str, Any]) -> Bucket:
        """Apply a partial update to a bucket.

        Raises:
            NotFound: Unknown bucket.
            ValidationError: Unknown field, empty name/prompt, invalid stage,
                or a stage change on a bucket that ideas already reference.
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Unknown bucket fields: {', '.join(sorted(unknown))}")
        if "name" in fields and not fields["name"]:
            raise ValidationError("name cannot be empty")
        if "prompt" in fields and not fields["prompt"]:
            raise ValidationError("prompt cannot be empty")
        changes = dict(fields)
        if "stage" in changes:
            changes["stage"] = _require_bucket_stage(changes["stage"])

        with self._store.editing() as buckets:
            index = next((i for i, b in enumerate(buckets) if b.id == bucket_id), None)
            if index is None:
                raise NotFound("Bucket", bucket_id)
            existing = buckets[index]
            if "stage" in changes and changes["stage"] != existing.stage:
                references = self._ideas.count_bucket_references(bucket_id)
                if references:
                    raise ValidationError(
                        f"Cannot move bucket {existing.name!r} to another stage: "
                        f"{references} idea(s) reference it"
                    )
            try:
                updated = Bucket.model_validate({**existing.model_dump(), **changes})
            except ModelValidationError as exc:
                raise ValidationError(str(exc)) from exc
            buckets[index] = updated
        logger.info("Updated bucket %s: %s", bucket_id, ", ".join(sorted(changes)))
        return updated

    def delete(self, bucket_id: str) -> DeleteResult:
        """Delete a bucket, or deactivate it if ideas still reference it.

        Raises:
            NotFound: Unknown bucket.
            CorruptStore: The catalog file cannot be parsed.
        """
        with self._store.editing() as buckets:
            index = next((i for i, b in enumerate(buckets) if b.id == bucket_id), None)
            if index is None:
                raise NotFound("Bucket", bucket_id)
            references = self._ideas.count_bucket_references(bucket_id)
            if references:
                buckets[index] = buckets[index].model_copy(update={"is_active": False})
                logger.info(
                    "Bucket %s is referenced by %d idea(s); deactivated instead of deleted",
                    bucket_id,
                    references,
                )
                return DeleteResult(
                    id=bucket_id, deleted=False, deactivated=True, references=references
                )
            del buckets[index]
        logger.info("Deleted bucket %s", bucket_id)
        return DeleteResult(id=bucket_id, deleted=True)

    def seed(self, entries: _list[BucketSeed]) -> _list[Bucket]:
        """Upsert buckets by (stage, name); sort order follows list position."""
        for seed in entries:
            if not seed.name or not seed.prompt:
                raise ValidationError("name, stage, and prompt are required")
            _require_bucket_stage(seed.stage)

        seeded: _list[Bucket] = []
        with self._store.editing() as buckets:
            for position, seed in enumerate(entries):
                stage = Stage(seed.stage)
                index = next(
                    (i for i, b in enumerate(buckets) if b.stage == stage and b.name == seed.name),
                    None,
                )
                if index is None:
                    bucket = Bucket(
                        stage=stage, name=seed.name, prompt=seed.prompt, sort_order=position
                    )
                    buckets.append(bucket)
                else:
                    bucket = buckets[index].model_copy(
                        update={"prompt": seed.prompt, "sort_order": position}
                    )
                    buckets[index] = bucket
                seeded.append(bucket)
        logger.info("%d buckets upserted", len(seeded))
        return seeded


def load_seed_file(path: Path) -> list[BucketSeed]:
    """Read ``[[buckets]]`` tables from a TOML seed file."""
    try:
        with open(path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as exc:
        raise ValidationError(f"Invalid seed file {path}: {exc}") from exc
    try:
        return [BucketSeed.model_validate(entry) for entry in data.get("buckets", [])]
    except ModelValidationError as exc:
        raise ValidationError(f"Invalid seed file {path}: {exc}") from exc
