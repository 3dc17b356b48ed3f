"""Stage engine — moves ideas through the pipeline.

Every operation follows the same two steps:

1. Validate and mutate inside the idea's store transaction.  Validation
   errors are raised before any field changes, so a failed call leaves
   the persisted record untouched.
2. After the transaction commits, submit at most one job.  A failed
   submission raises ``DispatchFailure`` carrying the committed stage and
   status; the mutation is not rolled back.

Operations that write a bucket id into an idea hold the catalog lock
around the idea transaction, always catalog first and idea second.
"""

from __future__ import annotations

import logging
from contextlib import AbstractContextManager, nullcontext
from typing import Any

from pydantic import BaseModel
from pydantic import ValidationError as ModelValidationError

from ideaqueue.buckets.catalog import BucketCatalog
from ideaqueue.errors import (
    DispatchFailure,
    InvalidTransition,
    MissingFields,
    ValidationError,
    WrongStage,
)
from ideaqueue.ideas import ledger
from ideaqueue.ideas.models import BUCKET_FIELDS, ENGINE_FIELDS, Idea, RevisionType
from ideaqueue.ideas.store import IdeaStore
from ideaqueue.jobs.dispatcher import JobDispatcher, get_job, job_for_stage
from ideaqueue.jobs.models import JobName, SubmissionAck
from ideaqueue.stages import BUCKET_STAGES, IdeaStatus, Stage, bucket_field, next_of, parse_stage

logger = logging.getLogger(__name__)

DESIGN_SOURCE_FIELD = "design_file_url or design_tool_ref"


class TransitionResult(BaseModel):
    """What an engine operation committed, and the job it submitted."""

    idea_id: str
    stage: Stage
    status: IdeaStatus
    job: JobName | None = None
    ack: SubmissionAck | None = None


def missing_publish_fields(idea: Idea) -> list[str]:
    """Return the publish prerequisites *idea* lacks, in a fixed order."""
    missing: list[str] = []
    if not idea.catalog_id:
        missing.append("catalog_id")
    if not idea.variants:
        missing.append("variants")
    if not idea.product_title:
        missing.append("product_title")
    if not idea.design_file_url and not idea.design_tool_ref:
        missing.append(DESIGN_SOURCE_FIELD)
    return missing


def _stage_arg(value: Stage | str) -> Stage:
    try:
        return parse_stage(value)
    except ValueError:
        raise ValidationError(f"Unknown stage: {value!r}") from None


class StageEngine:
    """Operator actions on ideas: advance, reject, refine, publish."""

    def __init__(
        self,
        ideas: IdeaStore,
        catalog: BucketCatalog,
        dispatcher: JobDispatcher,
    ) -> None:
        self.ideas = ideas
        self.catalog = catalog
        self.dispatcher = dispatcher

    # ── Helpers ──────────────────────────────────────────────────

    def _dispatch(self, job: JobName, data: dict[str, Any], idea: Idea) -> SubmissionAck:
        dedupe_key = f"{idea.id}:{job.value}:{idea.updated_at.isoformat()}"
        try:
            return self.dispatcher.dispatch(job, data, dedupe_key=dedupe_key)
        except DispatchFailure as exc:
            raise DispatchFailure(
                exc.job,
                exc.reason,
                idea_id=idea.id,
                stage=idea.stage.value,
                status=idea.status.value,
                params=exc.params,
            ) from exc

    def _assigning(self, needed: bool) -> AbstractContextManager[None]:
        """Catalog lock for operations that write a bucket id into an idea."""
        return self.catalog.assignment_lock() if needed else nullcontext()

    def _check_payload(self, fields: dict[str, Any]) -> None:
        protected = set(fields) & ENGINE_FIELDS
        if protected:
            raise ValidationError(f"Fields managed by the engine: {', '.join(sorted(protected))}")
        unknown = set(fields) - set(Idea.model_fields)
        if unknown:
            raise ValidationError(f"Unknown idea fields: {', '.join(sorted(unknown))}")

    def _check_bucket_slots(self, idea: Idea, fields: dict[str, Any]) -> None:
        for stage in BUCKET_STAGES:
            field = bucket_field(stage)
            value = fields.get(field)
            if field in fields and value:
                self.catalog.resolve_assignment(value, stage, current=getattr(idea, field))

    # ── Creation ─────────────────────────────────────────────────

    def create_idea(
        self,
        phrase: str,
        phrase_bucket_id: str | None = None,
        **payload: Any,
    ) -> Idea:
        """Create a new idea at ``phrase`` / ``pending``."""
        if not phrase or not phrase.strip():
            raise ValidationError("phrase is required")
        self._check_payload(payload)
        if set(payload) & BUCKET_FIELDS:
            raise ValidationError("Only the phrase bucket can be set on a new idea")
        try:
            idea = Idea.model_validate(
                {**payload, "phrase": phrase, "phrase_bucket_id": phrase_bucket_id}
            )
        except ModelValidationError as exc:
            raise ValidationError(str(exc)) from exc
        with self._assigning(bool(phrase_bucket_id)):
            if phrase_bucket_id:
                self.catalog.resolve_assignment(phrase_bucket_id, Stage.PHRASE)
            self.ideas.insert(idea)
        logger.info("Created idea %s in %s bucket %s", idea.id, idea.stage, phrase_bucket_id)
        return idea

    def generate_ideas(self, bucket_id: str) -> SubmissionAck:
        """Request a batch of AI-generated phrases for a phrase bucket."""
        bucket = self.catalog.resolve_assignment(bucket_id, Stage.PHRASE)
        return self.dispatcher.dispatch(JobName.GENERATE_IDEAS, {"bucket_id": bucket.id})

    def run_job(self, name: str, params: dict[str, Any] | None = None) -> SubmissionAck:
        """Trigger a catalog job by hand.

        ``generate-ideas`` with a ``bucket_id`` goes through
        :meth:`generate_ideas` so the bucket is checked before anything is
        sent; every other job is submitted as given.

        Raises:
            NotFound: Unknown job or bucket.
            BucketStageMismatch: ``bucket_id`` is not a phrase bucket.
            ValidationError: Missing parameter or inactive bucket.
            DispatchFailure: The bus did not accept the event.
        """
        spec = get_job(name)
        if spec.name == JobName.GENERATE_IDEAS and params and params.get("bucket_id"):
            return self.generate_ideas(params["bucket_id"])
        return self.dispatcher.run_job(spec.name, params)

    # ── Stage graph ──────────────────────────────────────────────

    def advance(
        self,
        idea_id: str,
        next_bucket_id: str | None = None,
        guidance: str | None = None,
    ) -> TransitionResult:
        """Move an idea to the next stage and request that stage's job.

        Raises:
            NotFound: Unknown idea or bucket.
            InvalidTransition: The idea is already at the terminal stage.
            BucketStageMismatch: *next_bucket_id* belongs to another stage.
            ValidationError: *next_bucket_id* is inactive.
            DispatchFailure: The move committed but the job was not accepted.
        """
        with self._assigning(bool(next_bucket_id)), self.ideas.transaction(idea_id) as idea:
            next_stage = next_of(idea.stage)
            if next_stage is None:
                raise InvalidTransition(
                    f"Cannot advance from the {idea.stage} stage", stage=idea.stage.value
                )
            slot = bucket_field(next_stage)
            if next_bucket_id and slot:
                self.catalog.resolve_assignment(
                    next_bucket_id, next_stage, current=getattr(idea, slot)
                )
            elif next_bucket_id:
                logger.debug("Ignoring bucket %s: %s has no bucket slot", next_bucket_id, next_stage)

            previous = idea.stage
            idea.stage = next_stage
            idea.status = IdeaStatus.PENDING
            if next_bucket_id and slot:
                setattr(idea, slot, next_bucket_id)
            if guidance:
                ledger.record(idea, previous, RevisionType.FORWARD, guidance)

        logger.info("Idea %s advanced %s -> %s", idea_id, previous, next_stage)
        result = TransitionResult(idea_id=idea_id, stage=idea.stage, status=idea.status)

        job = job_for_stage(next_stage)
        if job is None:
            return result
        data: dict[str, Any] = {"idea_id": idea_id, "stage": next_stage.value}
        forward_notes = ledger.latest_guidance(idea, previous)
        if forward_notes:
            data["guidance"] = forward_notes
        result.job = job
        result.ack = self._dispatch(job, data, idea)
        return result

    def reject(self, idea_id: str) -> TransitionResult:
        """Mark an idea rejected in its current stage.  No ledger entry, no job."""
        with self.ideas.transaction(idea_id) as idea:
            idea.status = IdeaStatus.REJECTED
        logger.info("Idea %s rejected at %s", idea_id, idea.stage)
        return TransitionResult(idea_id=idea_id, stage=idea.stage, status=idea.status)

    def refine(
        self,
        idea_id: str,
        notes: str,
        stage_override: Stage | str | None = None,
    ) -> TransitionResult:
        """Send an idea back for AI rework with operator notes.

        The stage does not change; the ``refine-idea`` job regenerates the
        artifacts of ``stage_override`` (or the current stage).

        Raises:
            ValidationError: Empty notes or an unknown stage override.
            NotFound: Unknown idea.
            DispatchFailure: The refine request committed but the job was
                not accepted.
        """
        if not notes or not notes.strip():
            raise ValidationError("Notes are required")
        override = _stage_arg(stage_override) if stage_override else None

        with self.ideas.transaction(idea_id) as idea:
            target = override or idea.stage
            idea.status = IdeaStatus.REFINING
            ledger.record(idea, target, RevisionType.REVISION, notes)

        logger.info("Idea %s sent for refinement at %s", idea_id, target)
        ack = self._dispatch(
            JobName.REFINE_IDEA,
            {"idea_id": idea_id, "notes": notes, "stage": target.value},
            idea,
        )
        return TransitionResult(
            idea_id=idea_id,
            stage=idea.stage,
            status=idea.status,
            job=JobName.REFINE_IDEA,
            ack=ack,
        )

    def publish(self, idea_id: str) -> TransitionResult:
        """Hand a fully configured idea to the commerce provider.

        Returns once the job is accepted; creation itself is asynchronous.

        Raises:
            NotFound: Unknown idea.
            WrongStage: The idea is not at the publish stage.
            MissingFields: Any publish prerequisite is absent.
            DispatchFailure: Status committed but the job was not accepted.
        """
        with self.ideas.transaction(idea_id) as idea:
            if idea.stage != Stage.PUBLISH:
                raise WrongStage(idea.stage.value)
            missing = missing_publish_fields(idea)
            if missing:
                raise MissingFields(missing)
            idea.status = IdeaStatus.PROCESSING

        logger.info("Idea %s queued for commerce product creation", idea_id)
        job = JobName.CREATE_COMMERCE_PRODUCT
        ack = self._dispatch(job, {"idea_id": idea_id}, idea)
        return TransitionResult(
            idea_id=idea_id, stage=idea.stage, status=idea.status, job=job, ack=ack
        )

    def send_back(self, idea_id: str, stage: Stage | str) -> Idea:
        """Return an idea to an earlier stage for another review pass."""
        return self.update_idea(idea_id, {}, stage=stage)

    # ── Payload edits ────────────────────────────────────────────

    def update_idea(
        self,
        idea_id: str,
        fields: dict[str, Any],
        stage: Stage | str | None = None,
    ) -> Idea:
        """Edit payload fields and bucket slots of an idea.

        With *stage*, the idea is also sent back to that earlier stage at
        ``pending``.  Edits and the move commit together: if either is
        refused, nothing is written.

        Raises:
            ValidationError: Engine-managed or unknown fields, bad values,
                or an unknown stage.
            NotFound: Unknown idea or bucket.
            BucketStageMismatch: A slot was given another stage's bucket.
            InvalidTransition: *stage* is not before the current stage.
        """
        self._check_payload(fields)
        target = _stage_arg(stage) if stage is not None else None
        assigning = any(fields.get(name) for name in BUCKET_FIELDS)
        with self._assigning(assigning), self.ideas.transaction(idea_id) as idea:
            previous = idea.stage
            if target is not None and not target < previous:
                raise InvalidTransition(
                    f"Can only send back to a stage before {previous}, not {target}",
                    stage=previous.value,
                )
            self._check_bucket_slots(idea, fields)
            try:
                updated = Idea.model_validate({**idea.model_dump(), **fields})
            except ModelValidationError as exc:
                raise ValidationError(str(exc)) from exc
            for name in fields:
                setattr(idea, name, getattr(updated, name))
            if target is not None:
                idea.stage = target
                idea.status = IdeaStatus.PENDING
        if fields:
            logger.info("Updated idea %s: %s", idea_id, ", ".join(sorted(fields)))
        if target is not None:
            logger.info("Idea %s sent back %s -> %s", idea_id, previous, target)
        return idea
