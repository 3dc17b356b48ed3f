"""Error taxonomy for the stage engine.

Input and precondition errors are raised before any record is written.
``DispatchFailure`` is the one error raised *after* a mutation has
committed; it carries the committed stage and status so callers never
mistake it for a rollback.
"""

from __future__ import annotations

from typing import Any


class IdeaQueueError(Exception):
    """Base class for all engine errors."""


class ValidationError(IdeaQueueError):
    """Bad or missing input (empty notes, unknown stage, bad bucket fields)."""


class InvalidTransition(IdeaQueueError):
    """The requested move violates the stage graph."""

    def __init__(self, message: str, *, stage: str | None = None) -> None:
        super().__init__(message)
        self.stage = stage


class WrongStage(IdeaQueueError):
    """Publish was requested for an idea that is not at the publish stage."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"Idea must be at publish stage (currently {stage!r})")
        self.stage = stage


class MissingFields(IdeaQueueError):
    """Publish preconditions failed; ``missing`` lists every absent field."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Missing required fields: {', '.join(missing)}")
        self.missing = list(missing)


class NotFound(IdeaQueueError):
    """Unknown idea, bucket, or job."""

    def __init__(self, kind: str, identifier: str) -> None:
        super().__init__(f"{kind} not found: {identifier}")
        self.kind = kind
        self.identifier = identifier


class BucketStageMismatch(IdeaQueueError):
    """A bucket was assigned to a slot belonging to a different stage."""

    def __init__(self, bucket_id: str, bucket_stage: str, expected: str) -> None:
        super().__init__(
            f"Bucket {bucket_id} belongs to stage {bucket_stage!r}, expected {expected!r}"
        )
        self.bucket_id = bucket_id
        self.bucket_stage = bucket_stage
        self.expected = expected


class DispatchFailure(IdeaQueueError):
    """The job bus refused or never acknowledged a submission.

    When raised by an engine operation, ``idea_id``, ``stage`` and
    ``status`` describe the state that was already committed.  ``params``
    is the event payload, enough to resubmit the job by hand.
    """

    def __init__(
        self,
        job: str,
        reason: str,
        *,
        idea_id: str | None = None,
        stage: str | None = None,
        status: str | None = None,
        params: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(f"Failed to dispatch {job}: {reason}")
        self.job = job
        self.reason = reason
        self.params = dict(params or {})
        self.idea_id = idea_id
        self.stage = stage
        self.status = status


class CorruptStore(IdeaQueueError):
    """A store file cannot be parsed, so it cannot be safely rewritten."""

    def __init__(self, path: object, reason: str) -> None:
        super().__init__(f"Refusing to rewrite corrupt store file {path}: {reason}")
        self.path = path
        self.reason = reason


class LockTimeout(IdeaQueueError):
    """A record lock could not be acquired in time; nothing was written."""
