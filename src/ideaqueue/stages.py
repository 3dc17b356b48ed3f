"""Pipeline stages, idea statuses, and the forward-transition rule.

Stages form a fixed total order::

    phrase < design < product < listing < publish

``publish`` is terminal.  Every stage except ``publish`` owns a bucket
slot on the idea record.
"""

from __future__ import annotations

from enum import StrEnum
from typing import assert_never


class Stage(StrEnum):
    """One of the five ordered pipeline stages."""

    PHRASE = "phrase"
    DESIGN = "design"
    PRODUCT = "product"
    LISTING = "listing"
    PUBLISH = "publish"

    @property
    def position(self) -> int:
        return STAGE_ORDER.index(self)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Stage):
            return NotImplemented
        return self.position < other.position

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Stage):
            return NotImplemented
        return self.position <= other.position

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Stage):
            return NotImplemented
        return self.position > other.position

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Stage):
            return NotImplemented
        return self.position >= other.position


class IdeaStatus(StrEnum):
    """Review status of an idea within its current stage."""

    PENDING = "pending"
    REFINING = "refining"
    REJECTED = "rejected"
    PROCESSING = "processing"
    APPROVED = "approved"


STAGE_ORDER: tuple[Stage, ...] = (
    Stage.PHRASE,
    Stage.DESIGN,
    Stage.PRODUCT,
    Stage.LISTING,
    Stage.PUBLISH,
)

# Stages that own a bucket slot (publish has no buckets)
BUCKET_STAGES: tuple[Stage, ...] = STAGE_ORDER[:-1]


def next_of(stage: Stage) -> Stage | None:
    """Return the stage immediately after *stage*, or None if terminal."""
    position = stage.position
    if position + 1 >= len(STAGE_ORDER):
        return None
    return STAGE_ORDER[position + 1]


def previous_stages(stage: Stage) -> tuple[Stage, ...]:
    """Return every stage strictly before *stage*, in pipeline order."""
    return STAGE_ORDER[: stage.position]


def bucket_field(stage: Stage) -> str | None:
    """Name of the idea field holding the bucket reference for *stage*."""
    match stage:
        case Stage.PHRASE:
            return "phrase_bucket_id"
        case Stage.DESIGN:
            return "design_bucket_id"
        case Stage.PRODUCT:
            return "product_bucket_id"
        case Stage.LISTING:
            return "listing_bucket_id"
        case Stage.PUBLISH:
            return None
        case _:
            assert_never(stage)


def parse_stage(value: str | Stage) -> Stage:
    """Coerce a string into a Stage.

    Raises ValueError for names outside the pipeline.
    """
    if isinstance(value, Stage):
        return value
    return Stage(value.strip().lower())
