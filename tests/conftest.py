"""Shared fixtures: a throwaway store root and an in-memory event bus."""

from pathlib import Path

import pytest
from ideaqueue.config import IdeaQueueConfig, StoreConfig
from ideaqueue.jobs.bus import EventBus, EventBusError
from ideaqueue.jobs.models import JobEvent
from ideaqueue.services import Services, build_services


class RecordingBus(EventBus):
    """Accepts every event and keeps it for inspection."""

    def __init__(self) -> None:
        self.events: list[JobEvent] = []

    def send(self, event: JobEvent) -> list[str]:
        self.events.append(event)
        return [f"evt-{len(self.events)}"]

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.events]


class FailingBus(EventBus):
    """Rejects every event."""

    def __init__(self, reason: str = "bus unavailable") -> None:
        self.reason = reason
        self.attempts = 0

    def send(self, event: JobEvent) -> list[str]:
        self.attempts += 1
        raise EventBusError(self.reason)


@pytest.fixture
def config(tmp_path: Path) -> IdeaQueueConfig:
    return IdeaQueueConfig(store=StoreConfig(directory=str(tmp_path / "store"), lock_timeout=5.0))


@pytest.fixture
def bus() -> RecordingBus:
    return RecordingBus()


@pytest.fixture
def services(config: IdeaQueueConfig, bus: RecordingBus) -> Services:
    return build_services(config, bus=bus)
