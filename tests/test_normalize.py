"""Tests for feed entry normalization."""

import time
from datetime import datetime, timezone

import feedparser

from feed_archiver.rss.normalize import content_hash, normalize_entry, normalize_feed_meta

from helpers import rss_document


def test_guid_takes_priority_over_link():
    item = normalize_entry({"id": "tag:example.com,2024:1", "link": "https://example.com/1"})
    assert item.key == "tag:example.com,2024:1"
    assert item.link == "https://example.com/1"


def test_link_used_when_guid_missing_or_blank():
    assert normalize_entry({"link": "https://example.com/1"}).key == "https://example.com/1"
    assert normalize_entry({"id": "  ", "link": "https://example.com/2"}).key == "https://example.com/2"


def test_keys_are_taken_in_stored_form():
    assert normalize_entry({"id": "a\r\nb\rc"}).key == "a\nb\nc"
    assert normalize_entry({"id": "a\x01b"}).key == "ab"


def test_guid_blank_after_cleaning_falls_through():
    assert normalize_entry({"id": "\x01", "link": "https://example.com/1"}).key == "https://example.com/1"
    assert normalize_entry({"id": "\x01", "title": "Post"}).key.startswith("sha256:")


def test_content_hash_fallback_is_deterministic():
    entry = {"title": "No identifiers", "summary": "Body text"}

    first = normalize_entry(entry)
    second = normalize_entry(dict(entry))

    assert first.key.startswith("sha256:")
    assert first.key == second.key


def test_content_hash_changes_when_entry_is_edited():
    """Edited GUID-less, link-less entries get a new key (known limitation)."""
    original = normalize_entry({"title": "Post", "summary": "v1"})
    edited = normalize_entry({"title": "Post", "summary": "v2"})
    assert original.key != edited.key


def test_sparse_entry_normalizes():
    item = normalize_entry({})

    assert item.key == content_hash("", None, None, None, None)
    assert item.title == ""
    assert item.link == ""
    assert item.published is None
    assert item.categories == []


def test_published_falls_back_to_updated():
    updated = time.strptime("2024-03-04 05:06:07", "%Y-%m-%d %H:%M:%S")
    item = normalize_entry({"id": "x", "updated_parsed": updated})
    assert item.published == datetime(2024, 3, 4, 5, 6, 7, tzinfo=timezone.utc)


def test_payload_passed_through():
    entry = {
        "id": "x",
        "title": "  Title  ",
        "summary": "<p>Summary</p>",
        "content": [{"value": ""}, {"value": "<p>Full</p>"}],
        "author": "Jane Doe",
        "tags": [{"term": "python"}, {"term": ""}, {"term": "rss"}],
    }

    item = normalize_entry(entry)

    assert item.title == "Title"
    assert item.description == "<p>Summary</p>"
    assert item.content == "<p>Full</p>"
    assert item.author == "Jane Doe"
    assert item.categories == ["python", "rss"]


def test_feedparser_entries():
    """Entries as produced by feedparser normalize with parsed dates."""
    doc = rss_document(
        [
            {"guid": "g1", "title": "First", "pub_date": "Mon, 01 Jan 2024 10:00:00 +0200"},
            {"link": "https://example.com/2", "title": "Second"},
        ]
    )
    parsed = feedparser.parse(doc.encode("utf-8"))

    first, second = (normalize_entry(e) for e in parsed.entries)

    assert first.key == "g1"
    assert first.published == datetime(2024, 1, 1, 8, 0, tzinfo=timezone.utc)
    assert second.key == "https://example.com/2"
    assert second.published is None


def test_feed_meta_title_falls_back_to_host():
    meta = normalize_feed_meta({}, "https://blog.example.com/feed.xml")
    assert meta.title == "blog.example.com"
    assert meta.site_url == ""

    meta = normalize_feed_meta(
        {"title": "Blog", "link": "https://blog.example.com/", "subtitle": "Posts"},
        "https://blog.example.com/feed.xml",
    )
    assert (meta.title, meta.site_url, meta.description) == (
        "Blog",
        "https://blog.example.com/",
        "Posts",
    )
