"""Bucket models — stage-scoped categorization entries."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field

from ideaqueue.stages import Stage


def _new_id() -> str:
    return uuid.uuid4().hex


class Bucket(BaseModel):
    """A directive an idea is filed into at one stage.

    ``prompt`` is consumed by the generation jobs and is opaque here.
    """

    id: str = Field(default_factory=_new_id)
    stage: Stage
    name: str
    prompt: str
    is_active: bool = True
    sort_order: int = 0
    created_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))


class BucketSeed(BaseModel):
    """One ``[[buckets]]`` entry of a seed file."""

    stage: str
    name: str
    prompt: str


class DeleteResult(BaseModel):
    """Outcome of a bucket delete request.

    Buckets still referenced by ideas are deactivated instead of removed.
    """

    id: str
    deleted: bool
    deactivated: bool = False
    references: int = 0
