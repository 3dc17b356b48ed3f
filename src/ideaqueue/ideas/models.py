"""Idea domain models — pure Pydantic v2 data types.

An Idea is the unit of work moving through the five-stage pipeline.  The
engine owns ``stage``, ``status``, the bucket slots, and the revision
history; the remaining payload fields are written by the generation jobs
and by operators, and are opaque to the engine apart from the publish
readiness check.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ideaqueue.stages import IdeaStatus, Stage, bucket_field


def _now() -> datetime:
    return datetime.now(tz=UTC)


class RevisionType(StrEnum):
    """Kind of event recorded in an idea's revision history."""

    FORWARD = "forward"
    REVISION = "revision"
    REJECTION = "rejection"


class RevisionEntry(BaseModel):
    """One immutable revision-history record."""

    model_config = ConfigDict(frozen=True)

    stage: Stage
    type: RevisionType
    notes: str
    timestamp: datetime = Field(default_factory=_now)


class Idea(BaseModel):
    """A product idea tracked from phrase through publish."""

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    stage: Stage = Stage.PHRASE
    status: IdeaStatus = IdeaStatus.PENDING
    created_at: datetime = Field(default_factory=_now)
    updated_at: datetime = Field(default_factory=_now)

    phrase_bucket_id: str | None = None
    design_bucket_id: str | None = None
    product_bucket_id: str | None = None
    listing_bucket_id: str | None = None

    # newest first
    revision_history: list[RevisionEntry] = Field(default_factory=list)

    # Phrase stage
    phrase: str = ""
    phrase_explanation: str | None = None
    category_id: str | None = None
    ai_model: str | None = None

    # Design stage
    graphic_description: str | None = None
    graphic_style: str | None = None
    mockup_image_url: str | None = None
    design_tool_ref: str | None = None
    design_file_url: str | None = None

    # Product stage
    variants: list[dict[str, Any]] | None = None
    apparel_type: str | None = None
    catalog_id: int | None = None
    print_placements: list[dict[str, Any]] | None = None
    color_scheme: str | None = None

    # Listing stage
    product_title: str | None = None
    product_description: str | None = None
    product_tags: list[str] = Field(default_factory=list)

    # Publish stage (written by the commerce/storefront jobs)
    commerce_product_id: str | None = None
    commerce_external_id: str | None = None
    storefront_product_id: str | None = None
    storefront_product_url: str | None = None
    published_at: datetime | None = None

    def bucket_id_for(self, stage: Stage) -> str | None:
        """Return the bucket id assigned for *stage*, if any."""
        field = bucket_field(stage)
        if field is None:
            return None
        return getattr(self, field)

    def references_bucket(self, bucket_id: str) -> bool:
        return bucket_id in (
            self.phrase_bucket_id,
            self.design_bucket_id,
            self.product_bucket_id,
            self.listing_bucket_id,
        )


# Fields managed by the engine; never writable through a payload update.
ENGINE_FIELDS = frozenset(
    {"id", "stage", "status", "revision_history", "created_at", "updated_at"}
)

BUCKET_FIELDS = frozenset(
    {"phrase_bucket_id", "design_bucket_id", "product_bucket_id", "listing_bucket_id"}
)
