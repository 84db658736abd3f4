"""Turn feedparser entries into canonical archive items."""

import hashlib
from datetime import datetime, timezone
from typing import Any, Mapping
from urllib.parse import urlsplit

from .document import xml_text
from .models import CanonicalItem, FeedMeta


def _text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def _key_text(value: Any) -> str:
    # Keys are compared against what an archive reads back
    return xml_text(_text(value)).strip()


def _timestamp(entry: Mapping[str, Any]) -> datetime | None:
    """Publication time in UTC, falling back to the update time."""
    for field in ("published_parsed", "updated_parsed"):
        parsed = entry.get(field)
        if not parsed:
            continue
        try:
            return datetime(*parsed[:6], tzinfo=timezone.utc)
        except (TypeError, ValueError):
            continue
    return None


def content_hash(
    title: str,
    published: datetime | None,
    description: str | None,
    content: str | None,
    author: str | None,
) -> str:
    """Deterministic identity key for entries with neither guid nor link.

    Any upstream edit to such an entry changes the hash, so the edited
    version is archived as a new item.
    """
    parts = [
        title,
        published.isoformat() if published else "",
        description or "",
        content or "",
        author or "",
    ]
    digest = hashlib.sha256("\x1f".join(parts).encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def normalize_entry(entry: Mapping[str, Any]) -> CanonicalItem:
    """
    Map one parsed feed entry to a CanonicalItem.

    Identity key priority: the entry's guid/id, then its link, then a hash of
    title, timestamp and payload. Keys are taken in the form an archive
    document stores them, so a guid that is blank after cleaning falls
    through to the link. Missing fields become empty or None; this
    never raises for a sparse entry.

    Args:
        entry: A feedparser entry (or any mapping with the same keys)

    Returns:
        The canonical item
    """
    title = _text(entry.get("title"))
    link = _text(entry.get("link"))
    published = _timestamp(entry)
    description = entry.get("summary") or entry.get("description") or None
    author = _text(entry.get("author")) or None

    content = None
    for block in entry.get("content") or []:
        value = block.get("value") if isinstance(block, Mapping) else None
        if value:
            content = value
            break

    categories = []
    for tag in entry.get("tags") or []:
        term = _text(tag.get("term")) if isinstance(tag, Mapping) else ""
        if term:
            categories.append(term)

    key = _key_text(entry.get("id")) or _key_text(link)
    if not key:
        key = content_hash(title, published, description, content, author)

    return CanonicalItem(
        key=key,
        title=title,
        link=link,
        published=published,
        description=description,
        content=content,
        author=author,
        categories=categories,
    )


def normalize_feed_meta(feed: Mapping[str, Any], feed_url: str) -> FeedMeta:
    """Channel metadata; the title falls back to the feed's host name."""
    title = _text(feed.get("title")) or urlsplit(feed_url).netloc or feed_url
    return FeedMeta(
        title=title,
        site_url=_text(feed.get("link")),
        description=_text(feed.get("subtitle") or feed.get("description")),
    )
