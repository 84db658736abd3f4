"""Combine all archives into one master feed."""

from typing import Sequence

from feed_archiver.rss.models import Archive, CanonicalItem, FeedMeta

from .merge import sort_items

MASTER_FEED_SOURCE = "urn:feed-archiver:master"


def aggregate_archives(
    archives: Sequence[Archive],
    max_items: int = 0,
) -> list[CanonicalItem]:
    """Aggregate several archives into a single newest-first item list.

    Items are flattened in archive order, sorted with the archive ordering
    rule and truncated to ``max_items`` when it is non-zero. Items are not
    deduplicated across archives: the same article published by two feeds
    appears once per feed.

    Args:
        archives: Archives to combine
        max_items: Maximum number of items to keep, 0 for all

    Returns:
        The combined items
    """
    items = sort_items(i for a in archives for i in a.items)
    if max_items:
        items = items[:max_items]
    return items


def build_master_archive(
    archives: Sequence[Archive],
    max_items: int,
    title: str,
    site_url: str = "",
) -> Archive:
    """Wrap the aggregated items in an Archive so it renders like any other."""
    return Archive(
        source_url=site_url or MASTER_FEED_SOURCE,
        meta=FeedMeta(
            title=title,
            site_url=site_url,
            description=f"Aggregated feed of {len(archives)} archived feeds",
        ),
        items=aggregate_archives(archives, max_items),
    )
