"""Pydantic models for feed sources, archived items and archives."""

import hashlib
import re
from datetime import datetime
from urllib.parse import urlsplit

from pydantic import BaseModel, ConfigDict, Field

SLUG_MAX_LENGTH = 60


def make_slug(url: str) -> str:
    """Derive a stable, filesystem-safe archive identifier from a feed URL.

    The readable part is host and path; the hash suffix keeps two URLs that
    render to the same readable part apart.
    """
    parts = urlsplit(url)
    readable = re.sub(r"[^a-z0-9]+", "-", f"{parts.netloc}{parts.path}".lower())
    readable = readable.strip("-")[:SLUG_MAX_LENGTH].rstrip("-") or "feed"
    digest = hashlib.sha256(url.encode("utf-8")).hexdigest()[:10]
    return f"{readable}-{digest}"


class FeedSource(BaseModel):
    """One configured subscription."""

    model_config = ConfigDict(frozen=True)

    url: str
    slug: str

    @classmethod
    def from_url(cls, url: str) -> "FeedSource":
        return cls(url=url, slug=make_slug(url))


class CanonicalItem(BaseModel):
    """Represents one archived article."""

    key: str
    title: str = ""
    link: str = ""
    published: datetime | None = None
    description: str | None = None
    content: str | None = None
    author: str | None = None
    categories: list[str] = Field(default_factory=list)


class FeedMeta(BaseModel):
    """Channel-level metadata of a source feed."""

    title: str = ""
    site_url: str = ""
    description: str = ""


class Archive(BaseModel):
    """The persisted, ordered items of one feed, newest first."""

    source_url: str
    meta: FeedMeta = Field(default_factory=FeedMeta)
    items: list[CanonicalItem] = Field(default_factory=list)

    @property
    def keys(self) -> list[str]:
        return [item.key for item in self.items]
