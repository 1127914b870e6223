"""feedbox configuration: a YAML file completed by environment variables.

Every section is a pydantic-settings model, so any value the file leaves
out can be supplied through the environment (``FEEDBOX_IMAP_PASSWORD``
keeps the password out of the file, for instance).  Values present in
the file take precedence.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import structlog
import yaml
from pydantic import BaseModel, Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings

from .errors import ConfigError

logger = structlog.get_logger()

DEFAULT_CONFIG_PATH = Path("~/.config/feedbox/config.yaml")


class ImapConfig(BaseSettings):
    """IMAP server connection settings."""

    model_config = {"env_prefix": "FEEDBOX_IMAP_"}

    host: str = Field(description="IMAP server hostname")
    port: int = Field(default=993, description="IMAP server port")
    use_ssl: bool = Field(default=True, description="Use SSL/TLS connection")
    username: str = Field(description="IMAP login username")
    password: SecretStr = Field(description="IMAP login password")
    folder: str = Field(default="INBOX", description="Folder receiving feed entries")
    timeout_seconds: float = Field(
        default=60.0,
        description="Socket timeout for every IMAP command",
    )


class RecipientConfig(BaseSettings):
    """Address written into the To header of every message."""

    model_config = {"env_prefix": "FEEDBOX_RECIPIENT_"}

    name: str = Field(description="Recipient display name")
    email: str = Field(description="Recipient email address")


class SyncConfig(BaseSettings):
    """Sync engine tuning."""

    model_config = {"env_prefix": "FEEDBOX_SYNC_"}

    max_concurrency: int = Field(
        default=0,
        ge=0,
        description="Maximum feeds synced at once (0 means one task per feed, unbounded)",
    )
    fetch_timeout_seconds: float = Field(
        default=30.0,
        description="HTTP timeout for a single feed download",
    )


class FeedConfig(BaseModel):
    """A single subscription."""

    url: str

    @property
    def key(self) -> str:
        return self.url


class FeedboxConfig(BaseSettings):
    """Root configuration.

    Nested configs are populated from their own env-var prefixes.
    """

    model_config = {"env_prefix": "FEEDBOX_"}

    imap: ImapConfig = Field(default_factory=ImapConfig)
    recipient: RecipientConfig = Field(default_factory=RecipientConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    feeds: list[FeedConfig] = Field(default_factory=list)
    log_level: str = Field(default="WARNING", description="Root log level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")


def load_config(path: Path) -> FeedboxConfig:
    """Read *path* and build the configuration.

    Raises :class:`ConfigError` when the file is missing, is not valid
    YAML, or does not describe a complete configuration.
    """
    path = path.expanduser()
    try:
        with path.open(encoding="utf-8") as fh:
            data = yaml.safe_load(fh) or {}
    except FileNotFoundError as exc:
        raise ConfigError(f"config file {path} not found") from exc
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigError(f"failed reading {path}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a mapping")

    try:
        config = FeedboxConfig(
            imap=ImapConfig(**(data.get("imap") or {})),
            recipient=RecipientConfig(**(data.get("recipient") or {})),
            sync=SyncConfig(**(data.get("sync") or {})),
            feeds=[FeedConfig(**feed) for feed in data.get("feeds") or []],
            **{key: data[key] for key in ("log_level", "log_json") if key in data},
        )
    except (ValidationError, TypeError) as exc:
        raise ConfigError(f"invalid configuration in {path}: {exc}") from exc

    logger.debug("config_loaded", path=str(path), feeds=len(config.feeds))
    return config


def dump_config(config: FeedboxConfig) -> str:
    """Serialize *config* to YAML, password included."""
    data: dict[str, Any] = config.model_dump(mode="json")
    data["imap"]["password"] = config.imap.password.get_secret_value()
    return yaml.safe_dump(data, allow_unicode=True, sort_keys=False, default_flow_style=False)


def save_config(config: FeedboxConfig, path: Path) -> None:
    """Write *config* to *path*, creating parent directories."""
    path = path.expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(dump_config(config), encoding="utf-8")
    logger.info("config_saved", path=str(path), feeds=len(config.feeds))


def default_config() -> FeedboxConfig:
    """Template configuration printed by ``feedbox config``."""
    return FeedboxConfig(
        imap=ImapConfig(
            host="imap.example.com",
            username="me@example.com",
            password="change-me",
        ),
        recipient=RecipientConfig(name="Me", email="me@example.com"),
        sync=SyncConfig(),
        feeds=[],
    )


def add_feed(config: FeedboxConfig, url: str) -> bool:
    """Append a subscription to *config*.  Returns False if already present."""
    if any(feed.url == url for feed in config.feeds):
        return False
    config.feeds.append(FeedConfig(url=url))
    return True
