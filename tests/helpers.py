"""Builders shared by the test modules."""

from datetime import datetime

import httpx

from feed_archiver.rss.models import CanonicalItem


def rss_document(
    items: list[dict],
    title: str = "Example Feed",
    link: str = "https://example.com/",
) -> str:
    """Build an RSS 2.0 document; each item dict may have guid, link, title, pub_date."""
    parts = []
    for item in items:
        fields = []
        if "title" in item:
            fields.append(f"<title>{item['title']}</title>")
        if "link" in item:
            fields.append(f"<link>{item['link']}</link>")
        if "guid" in item:
            fields.append(f'<guid isPermaLink="false">{item["guid"]}</guid>')
        if "pub_date" in item:
            fields.append(f"<pubDate>{item['pub_date']}</pubDate>")
        if "description" in item:
            fields.append(f"<description>{item['description']}</description>")
        parts.append(f"<item>{''.join(fields)}</item>")
    return (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        '<rss version="2.0"><channel>'
        f"<title>{title}</title><link>{link}</link>"
        "<description>Test feed</description>"
        f"{''.join(parts)}"
        "</channel></rss>"
    )


def make_item(
    key: str,
    published: datetime | None,
    title: str | None = None,
) -> CanonicalItem:
    """Helper to create a CanonicalItem for testing."""
    return CanonicalItem(
        key=key,
        title=title if title is not None else f"Item {key}",
        link=f"https://example.com/{key}",
        published=published,
        description=f"Description of {key}",
    )



def feed_response(text: str, status_code: int = 200) -> httpx.Response:
    """HTTP response carrying a feed document."""
    return httpx.Response(
        status_code, text=text, headers={"content-type": "application/rss+xml; charset=utf-8"}
    )
