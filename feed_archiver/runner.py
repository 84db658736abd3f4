"""Run orchestration: fetch, merge, save, publish the manifest."""

import logging
from enum import Enum, IntEnum
from typing import Sequence

import httpx
from pydantic import BaseModel, Field

from feed_archiver.config import Settings
from feed_archiver.feed import build_master_archive, merge_archive
from feed_archiver.logging import feed_context
from feed_archiver.manifest import build_manifest, collect_entries
from feed_archiver.rss.document import render_archive
from feed_archiver.rss.fetcher import FetchOutcome, FetchResult, fetch_all
from feed_archiver.rss.models import Archive, FeedSource
from feed_archiver.storage import (
    ArchiveReadError,
    ArchiveStore,
    ArchiveWriteError,
    atomic_write_bytes,
)

logger = logging.getLogger(__name__)


class ExitCode(IntEnum):
    OK = 0
    MANIFEST_FAILED = 1
    CONFIG_ERROR = 2
    ALL_FEEDS_FAILED = 3
    SAVE_FAILED = 4


class FeedOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FETCH_FAILED = "fetch_failed"
    PARSE_FAILED = "parse_failed"
    ARCHIVE_UNREADABLE = "archive_unreadable"
    SAVE_FAILED = "save_failed"


_FETCH_OUTCOMES = {
    FetchOutcome.FETCH_FAILED: FeedOutcome.FETCH_FAILED,
    FetchOutcome.PARSE_FAILED: FeedOutcome.PARSE_FAILED,
}


class FeedReport(BaseModel):
    """What happened to one feed during a run."""

    source: FeedSource
    outcome: FeedOutcome
    items_before: int = 0
    items_after: int = 0
    new_items: int = 0
    error: str | None = None

    @property
    def delta(self) -> int:
        return self.items_after - self.items_before


class RunReport(BaseModel):
    """Per-run result; never persisted."""

    feeds: list[FeedReport] = Field(default_factory=list)
    manifest_written: bool = False
    manifest_entries: int = 0
    master_feed_written: bool | None = None

    def count(self, outcome: FeedOutcome) -> int:
        return sum(1 for f in self.feeds if f.outcome is outcome)

    @property
    def all_failed(self) -> bool:
        return bool(self.feeds) and self.count(FeedOutcome.SUCCEEDED) == 0

    @property
    def exit_code(self) -> ExitCode:
        """
        Process exit status for this run.

        A manifest that could not be written always fails the run. A failed
        archive save fails it too, since an archive is then out of date
        without the run saying so otherwise. Every configured feed failing is
        reported as a degraded run, most likely a configuration problem.
        Individual fetch or parse failures are only warnings.
        """
        if not self.manifest_written:
            return ExitCode.MANIFEST_FAILED
        if self.count(FeedOutcome.SAVE_FAILED):
            return ExitCode.SAVE_FAILED
        if self.all_failed:
            return ExitCode.ALL_FEEDS_FAILED
        return ExitCode.OK


def apply_result(
    result: FetchResult, store: ArchiveStore, settings: Settings
) -> FeedReport:
    """
    Merge one feed's fetch result into its archive and save it.

    Failed fetches, and archives that cannot be read back, leave the archive
    file untouched.

    Args:
        result: Outcome of this run's fetch for the feed
        store: Archive store
        settings: Run settings (retention limit, published URLs)

    Returns:
        The feed's report entry
    """
    source = result.source
    if not result.ok:
        return FeedReport(
            source=source, outcome=_FETCH_OUTCOMES[result.outcome], error=result.error
        )

    try:
        archive = store.load(source)
    except ArchiveReadError as e:
        logger.error(
            f"Skipping {source.url}, existing archive is unreadable: {e}",
            extra=feed_context(source.url, outcome=FeedOutcome.ARCHIVE_UNREADABLE.value),
        )
        return FeedReport(
            source=source, outcome=FeedOutcome.ARCHIVE_UNREADABLE, error=str(e)
        )

    before = len(archive.items)
    known = set(archive.keys)
    merged = merge_archive(archive, result.items, settings.max_items, meta=result.meta)
    new_items = sum(1 for key in merged.keys if key not in known)

    report = FeedReport(
        source=source,
        outcome=FeedOutcome.SUCCEEDED,
        items_before=before,
        items_after=len(merged.items),
        new_items=new_items,
    )
    if merged is archive:
        logger.info(
            f"No items fetched from {source.url}, archive left as is",
            extra=feed_context(source.url, items=before),
        )
        return report

    try:
        store.save(source, merged, self_url=settings.archive_url(source.slug))
    except ArchiveWriteError as e:
        logger.error(
            f"Failed to save archive for {source.url}: {e}",
            extra=feed_context(source.url, outcome=FeedOutcome.SAVE_FAILED.value),
        )
        return report.model_copy(
            update={
                "outcome": FeedOutcome.SAVE_FAILED,
                "items_after": before,
                "new_items": 0,
                "error": str(e),
            }
        )
    return report


def write_manifest(store: ArchiveStore, settings: Settings, report: RunReport) -> None:
    """Regenerate the manifest from every archive on disk."""
    entries = collect_entries(store, settings)
    try:
        atomic_write_bytes(
            settings.manifest_path, build_manifest(entries, settings.manifest_title)
        )
    except OSError as e:
        logger.error(f"Failed to write manifest {settings.manifest_path}: {e}")
        return

    report.manifest_written = True
    report.manifest_entries = len(entries)
    logger.info(f"Wrote manifest with {len(entries)} feeds to {settings.manifest_path}")


def write_master_feed(store: ArchiveStore, settings: Settings, report: RunReport) -> None:
    """Write the combined feed of all archives, if one is configured."""
    path = settings.master_feed_path
    if path is None:
        return

    archives: list[Archive] = []
    for file_path in store.list_archives():
        try:
            archives.append(store.read_file(file_path))
        except ArchiveReadError as e:
            logger.warning(f"Leaving {file_path.name} out of the master feed: {e}")

    master = build_master_archive(
        archives, settings.max_items, title=settings.manifest_title, site_url=settings.base_url
    )
    self_url = f"{settings.base_url}{path.name}" if settings.base_url else ""
    try:
        atomic_write_bytes(path, render_archive(master, self_url=self_url))
    except OSError as e:
        logger.error(f"Failed to write master feed {path}: {e}")
        report.master_feed_written = False
        return

    report.master_feed_written = True
    logger.info(f"Master feed generated with {len(master.items)} items at {path}")


def log_summary(report: RunReport) -> None:
    """Human-readable run summary, one line per feed."""
    for feed in sorted(report.feeds, key=lambda f: f.source.url):
        context = feed_context(
            feed.source.url, outcome=feed.outcome.value, items=feed.items_after
        )
        if feed.outcome is FeedOutcome.SUCCEEDED:
            logger.info(
                f"[OK] {feed.source.url}: {feed.items_after} items "
                f"({feed.delta:+d}, {feed.new_items} new)",
                extra=context,
            )
        elif feed.outcome is FeedOutcome.SAVE_FAILED:
            logger.error(f"[SAVE FAILED] {feed.source.url}: {feed.error}", extra=context)
        else:
            logger.warning(
                f"[{feed.outcome.value.upper()}] {feed.source.url}: {feed.error}",
                extra=context,
            )

    succeeded = report.count(FeedOutcome.SUCCEEDED)
    logger.info(f"{succeeded}/{len(report.feeds)} feeds archived successfully")
    if report.all_failed:
        logger.error("Every configured feed failed; check the feed list and network access")


async def run(
    settings: Settings,
    sources: Sequence[FeedSource],
    client: httpx.AsyncClient | None = None,
) -> RunReport:
    """
    Execute one archiving run.

    This function:
    1. Fetches every feed concurrently
    2. Merges each successful fetch into its archive and saves it
    3. Regenerates the manifest from all archives on disk
    4. Writes the combined master feed, when configured
    5. Logs a summary

    Per-feed failures are recorded in the report and never stop the run.

    Args:
        settings: Run settings
        sources: Feeds to archive
        client: Optional HTTP client, mainly for tests

    Returns:
        The run report; ``report.exit_code`` is the process exit status
    """
    logger.info(f"Archiving {len(sources)} feeds with max_items = {settings.max_items}")
    store = ArchiveStore(settings.archive_dir)
    report = RunReport()

    if sources:
        results = await fetch_all(sources, settings, client=client)
        report.feeds = [apply_result(result, store, settings) for result in results]
    else:
        logger.warning(f"No feed URLs found in {settings.feeds_file}")

    write_manifest(store, settings, report)
    write_master_feed(store, settings, report)
    log_summary(report)
    return report
