"""Job dispatch — job catalog, event bus clients, and the dispatcher."""

from ideaqueue.jobs.bus import (
    EventBus,
    EventBusError,
    InngestConfig,
    InngestEventBus,
    OutboxEventBus,
    create_event_bus,
)
from ideaqueue.jobs.dispatcher import JobDispatcher, get_job, job_for_stage, list_jobs
from ideaqueue.jobs.models import JOB_CATALOG, JobEvent, JobName, JobSpec, SubmissionAck

__all__ = [
    "JOB_CATALOG",
    "EventBus",
    "EventBusError",
    "InngestConfig",
    "InngestEventBus",
    "JobDispatcher",
    "JobEvent",
    "JobName",
    "JobSpec",
    "OutboxEventBus",
    "SubmissionAck",
    "create_event_bus",
    "get_job",
    "job_for_stage",
    "list_jobs",
]
