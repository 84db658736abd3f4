"""RSS feed module for Feed Archiver."""

from .models import Archive, CanonicalItem, FeedMeta, FeedSource
from .normalize import normalize_entry, normalize_feed_meta

__all__ = [
    "Archive",
    "CanonicalItem",
    "FeedMeta",
    "FeedSource",
    "normalize_entry",
    "normalize_feed_meta",
]
