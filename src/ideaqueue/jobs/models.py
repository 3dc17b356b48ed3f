"""Job names, the job catalog, and bus message types."""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field


class JobName(StrEnum):
    """Asynchronous jobs the pipeline can request from the event bus."""

    GENERATE_IDEAS = "generate-ideas"
    CREATE_DESIGN = "create-design"
    CONFIGURE_PRODUCT = "configure-product"
    CONFIGURE_LISTING = "configure-listing"
    CREATE_COMMERCE_PRODUCT = "create-commerce-product"
    PUBLISH_TO_STOREFRONT = "publish-to-storefront"
    REFINE_IDEA = "refine-idea"
    ANALYZE_CATEGORIES = "analyze-categories"


class JobSpec(BaseModel):
    """Catalog entry describing one job."""

    name: JobName
    description: str
    schedule: str | None = None
    required_params: tuple[str, ...] = ()


JOB_CATALOG: dict[JobName, JobSpec] = {
    spec.name: spec
    for spec in (
        JobSpec(
            name=JobName.GENERATE_IDEAS,
            description="AI-generate a batch of phrase options for a phrase bucket",
            required_params=("bucket_id",),
        ),
        JobSpec(
            name=JobName.CREATE_DESIGN,
            description="Generate concept art and a print-ready design",
            required_params=("idea_id",),
        ),
        JobSpec(
            name=JobName.CONFIGURE_PRODUCT,
            description="AI-suggest product configurations",
            required_params=("idea_id",),
        ),
        JobSpec(
            name=JobName.CONFIGURE_LISTING,
            description="AI-generate listing copy options",
            required_params=("idea_id",),
        ),
        JobSpec(
            name=JobName.CREATE_COMMERCE_PRODUCT,
            description="Create the product with the fulfillment provider",
            required_params=("idea_id",),
        ),
        JobSpec(
            name=JobName.PUBLISH_TO_STOREFRONT,
            description="Sync to the storefront after the commerce product exists",
            required_params=("idea_id",),
        ),
        JobSpec(
            name=JobName.REFINE_IDEA,
            description="AI-regenerate at any stage with revision guidance",
            required_params=("idea_id", "notes", "stage"),
        ),
        JobSpec(
            name=JobName.ANALYZE_CATEGORIES,
            description="Analyze category gaps and priorities",
            schedule="0 0 * * *",
        ),
    )
}


class JobEvent(BaseModel):
    """A single message submitted to the event bus.

    ``id`` doubles as an idempotency key for buses that deduplicate.
    """

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    data: dict[str, Any] = Field(default_factory=dict)
    ts: int = Field(default_factory=lambda: int(datetime.now(tz=UTC).timestamp() * 1000))


class SubmissionAck(BaseModel):
    """Acknowledgement that the bus accepted a job.

    Acceptance is not completion: execution happens elsewhere.
    """

    job: JobName
    event_name: str
    event_ids: list[str] = Field(default_factory=list)
    submitted_at: datetime = Field(default_factory=lambda: datetime.now(tz=UTC))
