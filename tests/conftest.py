"""Shared fixtures for Feed Archiver tests."""

from pathlib import Path
from typing import Callable

import httpx
import pytest

from feed_archiver.config import Settings


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    """Settings writing everything below tmp_path."""
    return Settings(
        _env_file=None,
        feeds_file=tmp_path / "feeds.txt",
        archive_dir=tmp_path / "archives",
        manifest_path=tmp_path / "feeds.opml",
        master_feed_path=tmp_path / "master_feed.xml",
        site_url="https://archive.example.org/",
        max_items=300,
    )


@pytest.fixture
def mock_client() -> Callable[[dict[str, httpx.Response | Exception]], httpx.AsyncClient]:
    """Factory for an AsyncClient answering from a URL -> response (or exception) map."""

    def factory(routes: dict[str, httpx.Response | Exception]) -> httpx.AsyncClient:
        def handler(request: httpx.Request) -> httpx.Response:
            answer = routes.get(str(request.url))
            if answer is None:
                return httpx.Response(404)
            if isinstance(answer, Exception):
                raise answer
            return answer

        return httpx.AsyncClient(transport=httpx.MockTransport(handler))

    return factory
