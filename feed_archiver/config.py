"""Configuration management for Feed Archiver."""

import tomllib
from pathlib import Path
from typing import Any
from urllib.parse import urlsplit

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from feed_archiver import __version__
from feed_archiver.rss.models import FeedSource

DEFAULT_CONFIG_FILE = Path("config.toml")


class ConfigError(Exception):
    """Raised when the configuration or the feed list cannot be used."""


class Settings(BaseSettings):
    """Run settings loaded from the config file and environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="FEEDARCHIVE_", extra="ignore"
    )

    # Retention
    max_items: int = Field(default=300, ge=0)  # 0 keeps everything

    # Published URLs
    repository: str = Field(default="", pattern=r"^([\w.-]+/[\w.-]+)?$")
    site_url: str = ""

    # Paths
    feeds_file: Path = Path("feeds.txt")
    archive_dir: Path = Path("archives")
    manifest_path: Path = Path("feeds.opml")
    manifest_title: str = "Archived feeds"
    master_feed_path: Path | None = Path("master_feed.xml")  # None disables

    # Fetching
    fetch_timeout_seconds: float = Field(default=15.0, gt=0)
    max_concurrency: int = Field(default=10, ge=1)
    user_agent: str = f"feed-archiver/{__version__}"

    # Environment
    env: str = Field(default="dev", pattern="^(dev|prod)$")

    @field_validator("master_feed_path", mode="before")
    @classmethod
    def _empty_path_disables(cls, value: Any) -> Any:
        # TOML and environment variables have no null
        return None if value == "" else value

    @property
    def base_url(self) -> str:
        """Base URL the archives are published under, or "" for relative links."""
        if self.site_url:
            return self.site_url.rstrip("/") + "/"
        if self.repository:
            owner, name = self.repository.split("/", 1)
            return f"https://{owner}.github.io/{name}/"
        return ""

    def archive_url(self, slug: str) -> str:
        """Subscription URL of the archive file for ``slug``."""
        return f"{self.base_url}{self.archive_dir.name}/{slug}.xml"


def _read_config_file(config_file: Path) -> dict[str, Any]:
    try:
        with config_file.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Malformed config file {config_file}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file {config_file}: {e}") from e

    unknown = sorted(set(data) - set(Settings.model_fields))
    if unknown:
        raise ConfigError(
            f"Unknown option(s) in {config_file}: {', '.join(unknown)}"
        )
    return data


def load_settings(config_file: Path | None = None, **overrides: Any) -> Settings:
    """
    Build the run settings.

    Values come from, in order of precedence: ``overrides`` (command line),
    the TOML config file, ``FEEDARCHIVE_*`` environment variables, defaults.
    A missing ``config.toml`` in the working directory is not an error, but
    an explicitly requested config file must exist.

    Args:
        config_file: Path to a TOML config file, or None for ``config.toml``
        **overrides: Setting values that win over every other source

    Returns:
        Validated settings

    Raises:
        ConfigError: If the file is malformed or a value is invalid
    """
    if config_file is None:
        config_file = DEFAULT_CONFIG_FILE
        file_values = _read_config_file(config_file) if config_file.exists() else {}
    else:
        file_values = _read_config_file(config_file)

    values = {**file_values, **{k: v for k, v in overrides.items() if v is not None}}
    try:
        return Settings(**values)
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration: {e}") from e


def _is_feed_url(value: str) -> bool:
    parts = urlsplit(value)
    return parts.scheme in ("http", "https") and bool(parts.netloc)


def parse_feed_list(text: str) -> list[FeedSource]:
    """
    Parse a feed list: one URL per line, blank lines and ``#`` comments ignored.

    Duplicate URLs are collapsed so each feed gets exactly one task per run.

    Raises:
        ConfigError: If a line is not an http(s) URL
    """
    sources: list[FeedSource] = []
    seen: set[str] = set()
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        if not _is_feed_url(line):
            raise ConfigError(f"Line {lineno} is not an http(s) feed URL: {line!r}")
        if line in seen:
            continue
        seen.add(line)
        sources.append(FeedSource.from_url(line))
    return sources


def load_feed_sources(path: Path) -> list[FeedSource]:
    """Read and parse the feed list file at ``path``."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read feed list {path}: {e}") from e
    return parse_feed_list(text)
