"""Wiring — build the engine and its collaborators from configuration."""

from __future__ import annotations

from dataclasses import dataclass

from ideaqueue.buckets.catalog import BucketCatalog
from ideaqueue.buckets.store import BucketStore
from ideaqueue.config import IdeaQueueConfig
from ideaqueue.engine import StageEngine
from ideaqueue.ideas.queue import StageQueue
from ideaqueue.ideas.store import IdeaStore
from ideaqueue.jobs.bus import EventBus, create_event_bus
from ideaqueue.jobs.dispatcher import JobDispatcher


@dataclass
class Services:
    """Request-scoped handles; they hold paths and clients, never records."""

    ideas: IdeaStore
    catalog: BucketCatalog
    dispatcher: JobDispatcher
    engine: StageEngine
    queue: StageQueue


def build_services(config: IdeaQueueConfig, bus: EventBus | None = None) -> Services:
    """Assemble stores, catalog, dispatcher and engine for *config*."""
    root = config.store.root
    timeout = config.store.lock_timeout
    ideas = IdeaStore(root, lock_timeout=timeout)
    catalog = BucketCatalog(BucketStore(root, lock_timeout=timeout), ideas)
    if bus is None:
        bus = create_event_bus(config.to_inngest_config(), root, lock_timeout=timeout)
    dispatcher = JobDispatcher(bus, event_prefix=config.events.event_prefix)
    return Services(
        ideas=ideas,
        catalog=catalog,
        dispatcher=dispatcher,
        engine=StageEngine(ideas, catalog, dispatcher),
        queue=StageQueue(ideas, catalog),
    )
