"""Unified configuration loaded from .ideaqueue.toml, env vars, and CLI flags.

Loading order: defaults → TOML file → env vars → CLI flags.
"""

from __future__ import annotations

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field

from ideaqueue.jobs.bus import InngestConfig

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".ideaqueue.toml"
CONFIG_SEARCH_PATHS = [
    Path("."),
    Path.home() / ".config" / "ideaqueue",
]


class StoreConfig(BaseModel):
    """[store] section."""

    directory: str = "./.ideaqueue"
    lock_timeout: float = 30.0

    @property
    def root(self) -> Path:
        return Path(self.directory).expanduser()


class EventsConfig(BaseModel):
    """[events] section — the job bus."""

    url: str = "https://inn.gs"
    event_key: str = ""
    timeout: float = 10.0
    event_prefix: str = "job/"


class ServerConfig(BaseModel):
    """[server] section — admin HTTP API."""

    host: str = "127.0.0.1"
    port: int = 8000
    admin_secret: str = ""
    token_ttl_minutes: int = 720


class LoggingConfig(BaseModel):
    """[logging] section."""

    level: str = "INFO"


class IdeaQueueConfig(BaseModel):
    """Top-level configuration model."""

    store: StoreConfig = Field(default_factory=StoreConfig)
    events: EventsConfig = Field(default_factory=EventsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    def to_inngest_config(self) -> InngestConfig:
        """Convert the [events] section for the Inngest client."""
        return InngestConfig(
            url=self.events.url,
            event_key=self.events.event_key,
            timeout=self.events.timeout,
        )


def load_config(path: str | Path | None = None) -> IdeaQueueConfig:
    """Load configuration from a TOML file.

    Search order:
    1. Explicit path (if provided)
    2. .ideaqueue.toml in CWD
    3. ~/.config/ideaqueue/config.toml

    Then overlay environment variables.
    """
    data: dict[str, object] = {}

    if path is not None:
        toml_path = Path(path)
        if toml_path.exists():
            data = _load_toml(toml_path)
        else:
            logger.warning("Config file not found: %s", toml_path)
    else:
        for search_dir in CONFIG_SEARCH_PATHS:
            candidate = search_dir / CONFIG_FILENAME
            if candidate.exists():
                data = _load_toml(candidate)
                logger.info("Loaded config from %s", candidate)
                break
        global_config = Path.home() / ".config" / "ideaqueue" / "config.toml"
        if not data and global_config.exists():
            data = _load_toml(global_config)
            logger.info("Loaded config from %s", global_config)

    config = IdeaQueueConfig.model_validate(data) if data else IdeaQueueConfig()
    return _apply_env_vars(config)


def merge_cli_overrides(config: IdeaQueueConfig, **cli_kwargs: object) -> IdeaQueueConfig:
    """Overlay explicitly-set CLI flags onto the config.

    Only values that are not None override.
    """
    data = config.model_dump()

    mapping: dict[str, tuple[str, str]] = {
        "store_directory": ("store", "directory"),
        "event_key": ("events", "event_key"),
        "events_url": ("events", "url"),
        "host": ("server", "host"),
        "port": ("server", "port"),
        "log_level": ("logging", "level"),
    }

    for key, value in cli_kwargs.items():
        if value is None:
            continue
        if key in mapping:
            section, field = mapping[key]
            data[section][field] = value

    return IdeaQueueConfig.model_validate(data)


def _load_toml(path: Path) -> dict[str, object]:
    """Load a TOML file and return the data dict."""
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except (tomllib.TOMLDecodeError, OSError) as exc:
        logger.warning("Failed to parse %s: %s", path, exc)
        return {}


def _apply_env_vars(config: IdeaQueueConfig) -> IdeaQueueConfig:
    """Apply environment variable overrides to config."""
    data = config.model_dump()

    env_mapping: dict[str, tuple[str, str]] = {
        "IDEAQUEUE_STORE_DIR": ("store", "directory"),
        "IDEAQUEUE_LOCK_TIMEOUT": ("store", "lock_timeout"),
        "INNGEST_BASE_URL": ("events", "url"),
        "INNGEST_EVENT_KEY": ("events", "event_key"),
        "IDEAQUEUE_ADMIN_SECRET": ("server", "admin_secret"),
        "IDEAQUEUE_HOST": ("server", "host"),
        "IDEAQUEUE_PORT": ("server", "port"),
        "IDEAQUEUE_LOG_LEVEL": ("logging", "level"),
    }

    for env_var, (section, field) in env_mapping.items():
        value = os.environ.get(env_var)
        if value is not None:
            data[section][field] = value

    return IdeaQueueConfig.model_validate(data)
