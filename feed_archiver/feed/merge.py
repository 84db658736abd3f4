"""Merge freshly fetched items into a feed's archive."""

from typing import Iterable, Sequence

from feed_archiver.rss.models import Archive, CanonicalItem, FeedMeta


def sort_key(item: CanonicalItem) -> tuple[bool, float]:
    """Sort key for newest-first ordering with undated items last.

    Meant for ``sorted(..., reverse=True)``, which keeps equal keys in their
    original order.
    """
    if item.published is None:
        return (False, 0.0)
    return (True, item.published.timestamp())


def sort_items(items: Iterable[CanonicalItem]) -> list[CanonicalItem]:
    """Stable newest-first sort; items without a timestamp go last."""
    return sorted(items, key=sort_key, reverse=True)


def merge_items(
    existing: Sequence[CanonicalItem],
    fresh: Sequence[CanonicalItem],
    max_items: int,
) -> list[CanonicalItem]:
    """Combine archived and freshly fetched items.

    This function:
    1. Unions both sequences by identity key, archived items first
    2. Lets a fresh item replace an archived one with the same key, in place
    3. Sorts newest first, undated items last, ties in encounter order
    4. Keeps only the first ``max_items`` items when ``max_items`` is non-zero

    An empty ``fresh`` sequence leaves the archive exactly as it was.

    Args:
        existing: Items currently in the archive
        fresh: Items from this run's fetch
        max_items: Retention limit, 0 for unlimited

    Returns:
        The new archive content
    """
    if max_items < 0:
        raise ValueError(f"max_items must be >= 0, got {max_items}")
    if not fresh:
        return list(existing)

    union: dict[str, CanonicalItem] = {}
    for item in existing:
        union[item.key] = item
    for item in fresh:
        # Reassigning an existing key keeps its dict position
        union[item.key] = item

    merged = sort_items(union.values())
    if max_items:
        merged = merged[:max_items]
    return merged


def merge_meta(stored: FeedMeta, fresh: FeedMeta | None) -> FeedMeta:
    """Last-seen channel metadata wins, but empty fresh values keep the stored ones."""
    if fresh is None:
        return stored
    return FeedMeta(
        title=fresh.title or stored.title,
        site_url=fresh.site_url or stored.site_url,
        description=fresh.description or stored.description,
    )


def merge_archive(
    archive: Archive,
    fresh: Sequence[CanonicalItem],
    max_items: int,
    meta: FeedMeta | None = None,
) -> Archive:
    """Return a new Archive with ``fresh`` items and metadata merged in.

    A fetch that yielded no items leaves a non-empty archive untouched,
    metadata included.
    """
    if not fresh and archive.items:
        return archive
    return Archive(
        source_url=archive.source_url,
        meta=merge_meta(archive.meta, meta),
        items=merge_items(archive.items, fresh, max_items),
    )

