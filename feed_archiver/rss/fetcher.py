"""Concurrent feed fetching with per-feed failure isolation."""

import asyncio
import logging
from enum import Enum
from typing import Sequence

import feedparser
import httpx
from feedparser.exceptions import CharacterEncodingOverride, NonXMLContentType
from pydantic import BaseModel, Field

from feed_archiver.config import Settings
from feed_archiver.logging import feed_context

from .models import CanonicalItem, FeedMeta, FeedSource
from .normalize import normalize_entry, normalize_feed_meta

logger = logging.getLogger(__name__)

# Defects that do not make an otherwise empty feed unreadable
BENIGN_BOZO = (CharacterEncodingOverride, NonXMLContentType)


class FeedFetchError(Exception):
    """The feed could not be retrieved (transport error, timeout, bad status)."""


class FeedParseError(Exception):
    """The response body is not a readable RSS/Atom feed."""


class FetchOutcome(str, Enum):
    SUCCEEDED = "succeeded"
    FETCH_FAILED = "fetch_failed"
    PARSE_FAILED = "parse_failed"


class FetchResult(BaseModel):
    """Tagged result of one feed's fetch, parse and normalize pipeline."""

    source: FeedSource
    outcome: FetchOutcome
    meta: FeedMeta | None = None
    items: list[CanonicalItem] = Field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.outcome is FetchOutcome.SUCCEEDED


def parse_feed(
    data: bytes, source: FeedSource, content_type: str | None = None
) -> tuple[FeedMeta, list[CanonicalItem]]:
    """
    Parse feed bytes and normalize every entry.

    feedparser recovers from many defects, so a document only counts as
    malformed when nothing usable came out of it.

    Args:
        data: Raw response body
        source: Feed the data was fetched from
        content_type: Response Content-Type header, if any

    Returns:
        Channel metadata and the normalized items in feed order

    Raises:
        FeedParseError: If the data is not a feed
    """
    headers = {"content-location": source.url}
    if content_type:
        headers["content-type"] = content_type
    parsed = feedparser.parse(data, response_headers=headers)

    if not parsed.entries:
        error = parsed.get("bozo_exception")
        if not parsed.version or (parsed.bozo and not isinstance(error, BENIGN_BOZO)):
            raise FeedParseError(f"{source.url}: {error or 'no feed found in response'}")

    meta = normalize_feed_meta(parsed.feed, source.url)
    return meta, [normalize_entry(entry) for entry in parsed.entries]


async def fetch_feed(
    client: httpx.AsyncClient, source: FeedSource, timeout: float | None = None
) -> FetchResult:
    """
    Fetch, parse and normalize one feed.

    Any transport or content failure is returned as a failed FetchResult
    instead of raised, so one feed cannot affect another.

    Args:
        client: HTTP client carrying timeout and headers
        source: Feed to fetch
        timeout: Deadline in seconds for the whole request, body included;
            the client timeout only bounds each read or write on its own

    Returns:
        FetchResult tagged with the outcome
    """
    try:
        try:
            async with asyncio.timeout(timeout):
                response = await client.get(source.url)
            response.raise_for_status()
        except TimeoutError as e:
            raise FeedFetchError(f"No complete response within {timeout}s") from e
        except httpx.HTTPStatusError as e:
            raise FeedFetchError(f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise FeedFetchError(f"{type(e).__name__}: {e}") from e

        meta, items = parse_feed(
            response.content, source, response.headers.get("content-type")
        )
    except FeedFetchError as e:
        logger.warning(
            f"Failed to fetch {source.url}: {e}",
            extra=feed_context(source.url, outcome=FetchOutcome.FETCH_FAILED.value),
        )
        return FetchResult(source=source, outcome=FetchOutcome.FETCH_FAILED, error=str(e))
    except FeedParseError as e:
        logger.warning(
            f"Failed to parse {source.url}: {e}",
            extra=feed_context(source.url, outcome=FetchOutcome.PARSE_FAILED.value),
        )
        return FetchResult(source=source, outcome=FetchOutcome.PARSE_FAILED, error=str(e))

    logger.info(
        f"Fetched {len(items)} items from {source.url}",
        extra=feed_context(source.url, items=len(items)),
    )
    return FetchResult(
        source=source, outcome=FetchOutcome.SUCCEEDED, meta=meta, items=items
    )


def build_client(settings: Settings) -> httpx.AsyncClient:
    """HTTP client with the configured per-request timeout and User-Agent."""
    return httpx.AsyncClient(
        timeout=settings.fetch_timeout_seconds,
        follow_redirects=True,
        headers={
            "User-Agent": settings.user_agent,
            "Accept": "application/rss+xml, application/atom+xml, application/xml;q=0.9, */*;q=0.8",
        },
    )


async def fetch_all(
    sources: Sequence[FeedSource],
    settings: Settings,
    client: httpx.AsyncClient | None = None,
) -> list[FetchResult]:
    """
    Fetch every feed concurrently and collect one result per feed.

    Tasks never cancel each other: every result, including unexpected
    errors inside a task, is collected before returning.

    Args:
        sources: Feeds to fetch
        settings: Run settings (timeout, concurrency cap, User-Agent)
        client: Optional preconfigured client; one is created when omitted

    Returns:
        Results in the same order as ``sources``
    """
    semaphore = asyncio.Semaphore(settings.max_concurrency)

    async def _bounded(c: httpx.AsyncClient, source: FeedSource) -> FetchResult:
        async with semaphore:
            return await fetch_feed(c, source, timeout=settings.fetch_timeout_seconds)

    async def _gather(c: httpx.AsyncClient) -> list[FetchResult | BaseException]:
        return await asyncio.gather(
            *(_bounded(c, s) for s in sources), return_exceptions=True
        )

    if client is None:
        async with build_client(settings) as own_client:
            gathered = await _gather(own_client)
    else:
        gathered = await _gather(client)

    results: list[FetchResult] = []
    for source, result in zip(sources, gathered):
        if isinstance(result, BaseException):
            logger.error(
                f"Unexpected error fetching {source.url}: {result!r}",
                exc_info=result,
                extra=feed_context(source.url),
            )
            result = FetchResult(
                source=source, outcome=FetchOutcome.FETCH_FAILED, error=repr(result)
            )
        results.append(result)
    return results
