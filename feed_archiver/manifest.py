"""OPML manifest listing every archived feed."""

import logging
import xml.etree.ElementTree as ET
from typing import Iterable

from pydantic import BaseModel

from feed_archiver.config import Settings
from feed_archiver.storage import ArchiveReadError, ArchiveStore

logger = logging.getLogger(__name__)


class ManifestEntry(BaseModel):
    """One outline of the manifest."""

    slug: str
    title: str
    archive_url: str
    site_url: str
    source_url: str

    def sort_key(self) -> tuple[str, str, str]:
        return (self.title.casefold(), self.source_url, self.slug)


def collect_entries(store: ArchiveStore, settings: Settings) -> list[ManifestEntry]:
    """
    Build one manifest entry per archive file on disk.

    Archives of feeds that failed this run, or that are no longer in the feed
    list, are included as well. Unreadable files are skipped with a warning.

    Args:
        store: Archive store to scan
        settings: Run settings, used for the published archive URLs

    Returns:
        Entries in directory order
    """
    entries = []
    for file_path in store.list_archives():
        try:
            source_url, meta = store.read_meta(file_path)
        except ArchiveReadError as e:
            logger.warning(f"Leaving {file_path.name} out of the manifest: {e}")
            continue

        slug = file_path.stem
        entries.append(
            ManifestEntry(
                slug=slug,
                title=meta.title or source_url or slug,
                archive_url=settings.archive_url(slug),
                site_url=meta.site_url or source_url,
                source_url=source_url,
            )
        )
    return entries


def build_manifest(entries: Iterable[ManifestEntry], title: str) -> bytes:
    """
    Render the OPML 2.0 manifest.

    Outlines are sorted by title, then source URL, then slug, and the head
    carries no timestamp, so the same entries always give the same bytes.

    Args:
        entries: Manifest entries in any order
        title: Manifest title

    Returns:
        UTF-8 encoded OPML document
    """
    opml = ET.Element("opml", version="2.0")
    head = ET.SubElement(opml, "head")
    ET.SubElement(head, "title").text = title
    body = ET.SubElement(opml, "body")

    for entry in sorted(entries, key=ManifestEntry.sort_key):
        outline = ET.SubElement(body, "outline")
        outline.set("type", "rss")
        outline.set("text", entry.title)
        outline.set("title", entry.title)
        outline.set("xmlUrl", entry.archive_url)
        if entry.site_url:
            outline.set("htmlUrl", entry.site_url)

    ET.indent(opml)
    return b'<?xml version="1.0" encoding="UTF-8"?>\n' + ET.tostring(opml, encoding="utf-8") + b"\n"
