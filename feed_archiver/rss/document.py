"""Render and read the RSS 2.0 documents archives are stored as.

Every item carries its identity key as a non-permalink ``guid`` so an
archive written here reads back to the same items. Channel ``atom:link``
elements record where the archive is published (``rel="self"``) and which
feed it mirrors (``rel="via"``).
"""

import re
import xml.etree.ElementTree as ET
from datetime import datetime, timezone
from email.utils import format_datetime, parsedate_to_datetime

from .models import Archive, CanonicalItem, FeedMeta

NAMESPACES = {
    "atom": "http://www.w3.org/2005/Atom",
    "content": "http://purl.org/rss/1.0/modules/content/",
    "dc": "http://purl.org/dc/elements/1.1/",
}

for _prefix, _uri in NAMESPACES.items():
    ET.register_namespace(_prefix, _uri)

ATOM_LINK = f"{{{NAMESPACES['atom']}}}link"
CONTENT_ENCODED = f"{{{NAMESPACES['content']}}}encoded"
DC_CREATOR = f"{{{NAMESPACES['dc']}}}creator"

XML_DECLARATION = b'<?xml version="1.0" encoding="UTF-8"?>\n'

# Characters XML 1.0 cannot carry, even escaped
_INVALID_XML_CHARS = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f\ufffe\uffff]")
_LINE_BREAKS = re.compile(r"\r\n?")


class DocumentError(ValueError):
    """Raised when an archive document cannot be read back."""


def xml_text(value: str) -> str:
    """
    Return ``value`` exactly as it reads back from an archive document.

    Characters XML 1.0 cannot carry are dropped and line breaks become
    ``\\n``, the form an XML parser hands back for ``\\r\\n`` and ``\\r``.
    """
    return _INVALID_XML_CHARS.sub("", _LINE_BREAKS.sub("\n", value))


def _sub(parent: ET.Element, tag: str, text: str | None) -> None:
    if text:
        ET.SubElement(parent, tag).text = xml_text(text)


def _render_item(channel: ET.Element, item: CanonicalItem) -> None:
    el = ET.SubElement(channel, "item")
    _sub(el, "title", item.title)
    _sub(el, "link", item.link)
    _sub(el, "description", item.description)
    _sub(el, CONTENT_ENCODED, item.content)
    _sub(el, DC_CREATOR, item.author)
    for category in item.categories:
        _sub(el, "category", category)
    if not item.key or xml_text(item.key) != item.key:
        raise DocumentError(f"item key {item.key!r} would not read back unchanged")
    ET.SubElement(el, "guid", isPermaLink="false").text = item.key
    if item.published is not None:
        _sub(el, "pubDate", format_datetime(item.published.astimezone(timezone.utc)))


def render_archive(archive: Archive, self_url: str = "") -> bytes:
    """
    Serialize an archive as an RSS 2.0 document.

    The output depends only on the archive content and ``self_url``; there is
    no build timestamp, so an unchanged archive renders to identical bytes.

    Args:
        archive: Archive to render, items already in their final order
        self_url: Published URL of this document

    Returns:
        UTF-8 encoded XML document

    Raises:
        DocumentError: If an item key is empty or not in its stored form
    """
    rss = ET.Element("rss", version="2.0")
    channel = ET.SubElement(rss, "channel")
    ET.SubElement(channel, "title").text = archive.meta.title or archive.source_url
    ET.SubElement(channel, "link").text = archive.meta.site_url or archive.source_url
    ET.SubElement(channel, "description").text = (
        archive.meta.description or f"Archive of {archive.source_url}"
    )
    if self_url:
        ET.SubElement(
            channel, ATOM_LINK, href=self_url, rel="self", type="application/rss+xml"
        )
    ET.SubElement(channel, ATOM_LINK, href=archive.source_url, rel="via")

    newest = next((i.published for i in archive.items if i.published), None)
    if newest is not None:
        _sub(channel, "pubDate", format_datetime(newest.astimezone(timezone.utc)))

    for item in archive.items:
        _render_item(channel, item)

    ET.indent(rss)
    return XML_DECLARATION + ET.tostring(rss, encoding="utf-8") + b"\n"


def _find_text(el: ET.Element, tag: str) -> str | None:
    child = el.find(tag)
    if child is None or child.text is None:
        return None
    return child.text


def _parse_date(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def _channel(data: bytes) -> ET.Element:
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise DocumentError(f"not well-formed XML: {e}") from e
    channel = root.find("channel")
    if root.tag != "rss" or channel is None:
        raise DocumentError("not an RSS 2.0 document")
    return channel


def _via_url(channel: ET.Element) -> str:
    for link in channel.findall(ATOM_LINK):
        if link.get("rel") == "via":
            return link.get("href", "")
    return ""


def _read_meta(channel: ET.Element) -> tuple[str, FeedMeta]:
    meta = FeedMeta(
        title=_find_text(channel, "title") or "",
        site_url=_find_text(channel, "link") or "",
        description=_find_text(channel, "description") or "",
    )
    return _via_url(channel), meta


def read_meta(data: bytes) -> tuple[str, FeedMeta]:
    """Return the source feed URL and channel metadata of an archive document."""
    return _read_meta(_channel(data))


def read_archive(data: bytes) -> Archive:
    """
    Parse a document produced by :func:`render_archive` back into an Archive.

    Raises:
        DocumentError: If the data is not an RSS document or an item has no guid
    """
    channel = _channel(data)
    source_url, meta = _read_meta(channel)

    items = []
    for el in channel.findall("item"):
        key = _find_text(el, "guid")
        if not key:
            raise DocumentError("archived item without guid")
        items.append(
            CanonicalItem(
                key=key,
                title=_find_text(el, "title") or "",
                link=_find_text(el, "link") or "",
                published=_parse_date(_find_text(el, "pubDate")),
                description=_find_text(el, "description"),
                content=_find_text(el, CONTENT_ENCODED),
                author=_find_text(el, DC_CREATOR),
                categories=[c.text for c in el.findall("category") if c.text],
            )
        )
    return Archive(source_url=source_url, meta=meta, items=items)
