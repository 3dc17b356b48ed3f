"""Job dispatcher — maps pipeline events to exactly one named job.

Submission is at-least-once and fire-and-forget: a job is sent once, and
a bus failure is reported to the caller as ``DispatchFailure``.  Nothing
here retries; resubmission goes through :meth:`JobDispatcher.run_job`.
"""

from __future__ import annotations

import logging
from typing import Any, assert_never

from ideaqueue.errors import DispatchFailure, NotFound, ValidationError
from ideaqueue.jobs.bus import EventBus, EventBusError
from ideaqueue.jobs.models import JOB_CATALOG, JobEvent, JobName, JobSpec, SubmissionAck
from ideaqueue.stages import Stage

logger = logging.getLogger(__name__)

DEFAULT_EVENT_PREFIX = "job/"


def job_for_stage(stage: Stage) -> JobName | None:
    """Job triggered when an idea enters *stage*.

    ``phrase`` is the entry stage and ``publish`` needs an explicit
    publish request, so neither has an inbound job.
    """
    match stage:
        case Stage.PHRASE:
            return None
        case Stage.DESIGN:
            return JobName.CREATE_DESIGN
        case Stage.PRODUCT:
            return JobName.CONFIGURE_PRODUCT
        case Stage.LISTING:
            return JobName.CONFIGURE_LISTING
        case Stage.PUBLISH:
            return None
        case _:
            assert_never(stage)


class JobDispatcher:
    """Submits named jobs to an event bus."""

    def __init__(self, bus: EventBus, event_prefix: str = DEFAULT_EVENT_PREFIX) -> None:
        self.bus = bus
        self.event_prefix = event_prefix

    def event_name(self, job: JobName) -> str:
        return f"{self.event_prefix}{job.value}"

    def dispatch(
        self,
        job: JobName,
        data: dict[str, Any],
        dedupe_key: str | None = None,
    ) -> SubmissionAck:
        """Submit *job* once.

        Args:
            job: Job to run.
            data: Event payload.
            dedupe_key: Event id to send; buses that deduplicate on event
                id will drop repeated submissions with the same key.

        Raises:
            DispatchFailure: If the bus did not accept the event.
        """
        event = JobEvent(name=self.event_name(job), data=data)
        if dedupe_key:
            event.id = dedupe_key
        try:
            ids = self.bus.send(event)
        except EventBusError as exc:
            logger.error("Dispatch of %s failed: %s", event.name, exc)
            raise DispatchFailure(job.value, str(exc), params=data) from exc
        logger.info("Dispatched %s (%s)", event.name, ", ".join(ids))
        return SubmissionAck(job=job, event_name=event.name, event_ids=ids)

    def run_job(self, name: str, params: dict[str, Any] | None = None) -> SubmissionAck:
        """Manually trigger a job from the catalog.

        Raises:
            NotFound: Unknown job name.
            ValidationError: A required parameter is missing or empty.
            DispatchFailure: The bus did not accept the event.
        """
        spec = get_job(name)
        params = dict(params or {})
        missing = [p for p in spec.required_params if not params.get(p)]
        if missing:
            raise ValidationError(f"Job {spec.name} requires: {', '.join(missing)}")
        return self.dispatch(spec.name, params)


def get_job(name: str) -> JobSpec:
    """Look up a catalog entry by name (with or without the ``job/`` prefix)."""
    key = name.removeprefix(DEFAULT_EVENT_PREFIX)
    try:
        return JOB_CATALOG[JobName(key)]
    except ValueError:
        raise NotFound("Job", name) from None


def list_jobs() -> list[JobSpec]:
    return list(JOB_CATALOG.values())
