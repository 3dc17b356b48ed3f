"""Event bus clients used to submit jobs.

The bus is an at-least-once channel with no read-back: ``send`` returns
once the bus has accepted the event, and job progress is only visible
through the bus provider's own dashboard.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from abc import ABC, abstractmethod
from pathlib import Path

from pydantic import BaseModel

from ideaqueue.jobs.models import JobEvent
from ideaqueue.storage import exclusive_lock

logger = logging.getLogger(__name__)

OUTBOX_FILENAME = "outbox.jsonl"


class EventBusError(Exception):
    """The bus did not accept an event."""


class EventBus(ABC):
    """Submits events to an external job runner."""

    @abstractmethod
    def send(self, event: JobEvent) -> list[str]:
        """Submit *event* and return the ids the bus assigned to it.

        Raises:
            EventBusError: If the bus rejected or never acknowledged the event.
        """


class InngestConfig(BaseModel):
    """Connection settings for the Inngest event API."""

    url: str = "https://inn.gs"
    event_key: str = ""
    timeout: float = 10.0

    @property
    def is_configured(self) -> bool:
        return bool(self.url and self.event_key)


class InngestEventBus(EventBus):
    """Client for the Inngest event API (``POST /e/<event_key>``)."""

    def __init__(self, config: InngestConfig) -> None:
        self.config = config
        self.base_url = config.url.rstrip("/")

    def send(self, event: JobEvent) -> list[str]:
        url = f"{self.base_url}/e/{self.config.event_key}"
        body = json.dumps([event.model_dump(mode="json")]).encode("utf-8")
        req = urllib.request.Request(
            url,
            data=body,
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib.request.urlopen(req, timeout=self.config.timeout) as resp:
                payload = json.loads(resp.read().decode("utf-8"))
        except urllib.error.HTTPError as exc:
            raise EventBusError(f"HTTP {exc.code} from event API") from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            raise EventBusError(f"Event API unreachable: {exc}") from exc
        except json.JSONDecodeError as exc:
            raise EventBusError("Event API returned invalid JSON") from exc

        ids = payload.get("ids") if isinstance(payload, dict) else None
        if not ids:
            error = payload.get("error") if isinstance(payload, dict) else None
            raise EventBusError(error or "Event API returned no event ids")
        return [str(i) for i in ids]


class OutboxEventBus(EventBus):
    """Appends events to a local JSON-lines outbox.

    Used when no event key is configured, so that local runs keep a
    durable record of every job the pipeline would have requested.
    """

    def __init__(self, root: Path, lock_timeout: float = 30.0) -> None:
        self.path = root / OUTBOX_FILENAME
        self._lock_path = root / "locks" / "outbox.lock"
        self._lock_timeout = lock_timeout

    def send(self, event: JobEvent) -> list[str]:
        line = event.model_dump_json() + "\n"
        try:
            with exclusive_lock(self._lock_path, self._lock_timeout, "outbox lock"):
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line)
        except OSError as exc:
            raise EventBusError(f"Could not write outbox {self.path}: {exc}") from exc
        logger.debug("Queued %s in outbox %s", event.name, self.path)
        return [event.id]

    def read(self) -> list[JobEvent]:
        """Return every event in the outbox, oldest first."""
        if not self.path.exists():
            return []
        events: list[JobEvent] = []
        for line in self.path.read_text(encoding="utf-8").splitlines():
            if not line.strip():
                continue
            try:
                events.append(JobEvent.model_validate_json(line))
            except ValueError:
                logger.warning("Skipping malformed outbox line in %s", self.path)
        return events


def create_event_bus(config: InngestConfig, store_root: Path, lock_timeout: float = 30.0) -> EventBus:
    """Pick the Inngest client when configured, else the local outbox."""
    if config.is_configured:
        return InngestEventBus(config)
    logger.info("No event key configured; jobs go to the local outbox")
    return OutboxEventBus(store_root, lock_timeout=lock_timeout)
