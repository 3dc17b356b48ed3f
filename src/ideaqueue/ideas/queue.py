"""Stage queue — read-side views of ideas for the review screens."""

from __future__ import annotations

from pydantic import BaseModel, Field

from ideaqueue.buckets.catalog import BucketCatalog
from ideaqueue.buckets.models import Bucket
from ideaqueue.errors import ValidationError
from ideaqueue.ideas.models import Idea
from ideaqueue.ideas.store import IdeaStore
from ideaqueue.stages import IdeaStatus, Stage

# Review-screen tabs; "all" disables the status filter
STATUS_TABS = ("all", "pending", "approved", "rejected", "refining", "processing")


class StageView(BaseModel):
    """Everything one stage screen needs in a single read."""

    stage: Stage
    status: str
    ideas: list[Idea] = Field(default_factory=list)
    counts: dict[str, int] = Field(default_factory=dict)
    buckets: list[Bucket] = Field(default_factory=list)


def _status_filter(status: IdeaStatus | str | None) -> IdeaStatus | None:
    if status is None or status == "all":
        return None
    try:
        return IdeaStatus(status)
    except ValueError:
        raise ValidationError(f"Unknown status: {status!r}") from None


class StageQueue:
    """Filters ideas by stage, status and bucket.  Never mutates."""

    def __init__(self, ideas: IdeaStore, catalog: BucketCatalog) -> None:
        self._ideas = ideas
        self._catalog = catalog

    def list(
        self,
        stage: Stage | None = None,
        status: IdeaStatus | str | None = None,
        bucket_id: str | None = None,
    ) -> list[Idea]:
        return self._ideas.list(stage=stage, status=_status_filter(status), bucket_id=bucket_id)

    def counts(self, stage: Stage) -> dict[str, int]:
        """Idea counts per status tab for *stage*."""
        ideas = self._ideas.list(stage=stage)
        counts = {tab: 0 for tab in STATUS_TABS}
        counts["all"] = len(ideas)
        for idea in ideas:
            counts[idea.status.value] = counts.get(idea.status.value, 0) + 1
        return counts

    def view(
        self,
        stage: Stage,
        status: IdeaStatus | str | None = None,
        bucket_id: str | None = None,
    ) -> StageView:
        return StageView(
            stage=stage,
            status=str(status or "all"),
            ideas=self.list(stage, status, bucket_id),
            counts=self.counts(stage),
            buckets=self._catalog.list_active(stage),
        )
