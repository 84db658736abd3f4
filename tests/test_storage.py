"""Tests for the archive store and archive documents."""

import os
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from feed_archiver.rss.document import render_archive
from feed_archiver.rss.models import Archive, CanonicalItem, FeedMeta, FeedSource
from feed_archiver.storage import (
    ArchiveReadError,
    ArchiveStore,
    ArchiveWriteError,
    atomic_write_bytes,
)

from helpers import make_item

SOURCE = FeedSource.from_url("https://example.com/feed.xml")


@pytest.fixture
def store(tmp_path):
    return ArchiveStore(tmp_path / "archives")


def sample_archive() -> Archive:
    return Archive(
        source_url=SOURCE.url,
        meta=FeedMeta(title="Example", site_url="https://example.com/", description="Posts"),
        items=[
            CanonicalItem(
                key="g2",
                title="Second & last",
                link="https://example.com/2",
                published=datetime(2024, 2, 1, 12, 30, tzinfo=timezone.utc),
                description="<p>Two</p>",
                content="<p>Full two</p>",
                author="Jane",
                categories=["a", "b"],
            ),
            make_item("g1", None),
        ],
    )


def test_load_missing_archive_returns_empty(store):
    archive = store.load(SOURCE)
    assert archive.source_url == SOURCE.url
    assert archive.items == []


def test_saved_archive_loads_back(store):
    original = sample_archive()

    path = store.save(SOURCE, original, self_url="https://archive.example.org/archives/x.xml")
    loaded = store.load(SOURCE)

    assert path == store.path_for(SOURCE)
    assert loaded == original


def test_render_is_deterministic():
    assert render_archive(sample_archive()) == render_archive(sample_archive())


def test_render_strips_characters_xml_cannot_hold(store):
    archive = Archive(
        source_url=SOURCE.url,
        items=[make_item("a", None, title="bell\x07 title")],
    )
    store.save(SOURCE, archive)
    assert store.load(SOURCE).items[0].title == "bell title"


def test_corrupt_archive_raises(store):
    path = store.path_for(SOURCE)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"<rss><channel><item>")

    with pytest.raises(ArchiveReadError):
        store.load(SOURCE)


def test_non_rss_archive_raises(store):
    path = store.path_for(SOURCE)
    path.parent.mkdir(parents=True)
    path.write_bytes(b"<opml version='2.0'/>")

    with pytest.raises(ArchiveReadError):
        store.load(SOURCE)


def test_failed_save_keeps_previous_file(store):
    """A crash between writing and renaming leaves the old archive intact."""
    store.save(SOURCE, sample_archive())
    path = store.path_for(SOURCE)
    before = path.read_bytes()

    with patch("feed_archiver.storage.os.replace", side_effect=OSError("disk full")):
        with pytest.raises(ArchiveWriteError):
            store.save(SOURCE, Archive(source_url=SOURCE.url))

    assert path.read_bytes() == before
    # No temporary files left behind
    assert os.listdir(path.parent) == [path.name]


def test_atomic_write_creates_parent_dirs(tmp_path):
    target = tmp_path / "a" / "b" / "file.xml"
    atomic_write_bytes(target, b"data")
    assert target.read_bytes() == b"data"


def test_list_archives_sorted_and_filtered(store):
    store.save(FeedSource.from_url("https://b.example.com/feed"), Archive(source_url="https://b.example.com/feed"))
    store.save(FeedSource.from_url("https://a.example.com/feed"), Archive(source_url="https://a.example.com/feed"))
    (store.base_path / "notes.txt").write_text("not an archive")

    names = [p.name for p in store.list_archives()]

    assert names == sorted(names)
    assert len(names) == 2
    assert all(n.endswith(".xml") for n in names)


def test_list_archives_without_directory(tmp_path):
    assert ArchiveStore(tmp_path / "missing").list_archives() == []


def test_slug_is_stable_and_distinct():
    a = FeedSource.from_url("https://example.com/feed.xml")
    b = FeedSource.from_url("https://example.com/feed-xml")

    assert a.slug == FeedSource.from_url("https://example.com/feed.xml").slug
    assert a.slug.startswith("example-com-feed-xml-")
    assert a.slug != b.slug


@pytest.mark.parametrize("key", ["", "a\rb", "a\x01b"])
def test_save_refuses_key_that_would_not_read_back(store, key):
    archive = Archive(source_url=SOURCE.url, items=[make_item("ok", None), CanonicalItem(key=key)])

    with pytest.raises(ArchiveWriteError):
        store.save(SOURCE, archive)

    assert store.list_archives() == []


def test_line_breaks_in_text_read_back_as_written(store):
    item = CanonicalItem(key="a\nb", title="one\r\ntwo", description="x\ry")
    store.save(SOURCE, Archive(source_url=SOURCE.url, items=[item]))

    (loaded,) = store.load(SOURCE).items

    assert loaded.key == "a\nb"
    assert loaded.title == "one\ntwo"
    assert loaded.description == "x\ny"
