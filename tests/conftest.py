# File: tests/conftest.py
from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from pathlib import Path
from typing import List, Mapping, Optional, Tuple, Union

import pytest
from aiohttp import web

from site_harvest.config import ScraperConfig
from site_harvest.crawler.models import FetchResult
from site_harvest.crawler.scraper import PageScraper
from site_harvest.storage import ContentStore


def pytest_configure(config):
    """Register custom markers so that `--strict-markers` does not fail."""
    config.addinivalue_line(
        "markers",
        "slow: marks tests as slow (deselect with '-m \"not slow\"')",
    )


PageSpec = Union[str, bytes, Tuple[int, str], Exception]


class FakeFetcher:
    """
    In-memory FetchClient.

    ``pages`` maps URL -> html (status 200), (status, html) or an exception
    to raise. ``bytes`` bodies are served as-is with a bare ``text/html``
    header. Unknown URLs answer 404. Records every requested URL and the
    peak number of concurrent fetches.
    """

    def __init__(self, pages: Mapping[str, PageSpec], delay: float = 0.0) -> None:
        self.pages = dict(pages)
        self.delay = delay
        self.calls: List[str] = []
        self.sent_headers: List[Optional[Mapping[str, str]]] = []
        self.active = 0
        self.max_active = 0

    async def fetch(self, url, *, timeout=None, wait_strategy="load", headers=None, cancel=None):
        self.calls.append(url)
        self.sent_headers.append(headers)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            spec = self.pages.get(url)
            if spec is None:
                return FetchResult(url=url, status_code=404, headers={}, body=b"not found")
            if isinstance(spec, Exception):
                raise spec
            if isinstance(spec, bytes):
                return FetchResult(url=url, status_code=200, headers={"Content-Type": "text/html"}, body=spec)
            status, html = spec if isinstance(spec, tuple) else (200, spec)
            return FetchResult(
                url=url,
                status_code=status,
                headers={"Content-Type": "text/html; charset=utf-8"},
                body=html.encode("utf-8"),
                encoding="utf-8",
            )
        finally:
            self.active -= 1


@pytest.fixture()
def fast_config(tmp_path: Path) -> ScraperConfig:
    """
    Config without pacing or backoff so tests stay quick.
    """
    return ScraperConfig(
        user_agent="TestAgent/1.0",
        timeout=5.0,
        retry_times=0,
        retry_backoff=0.0,
        batch_delay=0.0,
        link_delay=0.0,
        data_dir=tmp_path / "data",
    )


@pytest.fixture()
def store(fast_config: ScraperConfig) -> ContentStore:
    return ContentStore(fast_config.data_dir)


@pytest.fixture()
def fake_fetcher():
    """Factory for FakeFetcher instances."""
    return FakeFetcher


@pytest.fixture()
def make_scraper(fast_config: ScraperConfig, store: ContentStore):
    """Build a PageScraper over a FakeFetcher serving *pages*."""

    def _make(
        pages: Mapping[str, PageSpec],
        config: Optional[ScraperConfig] = None,
        delay: float = 0.0,
    ) -> Tuple[PageScraper, FakeFetcher]:
        fetcher = FakeFetcher(pages, delay=delay)
        return PageScraper(fetcher, config or fast_config, store), fetcher

    return _make


@pytest.fixture()
def serve_app(unused_tcp_port_factory):
    """Return an async generator that starts *app* on a free port and yields its base URL."""

    async def _serve(app: web.Application) -> AsyncIterator[str]:
        runner = web.AppRunner(app)
        await runner.setup()
        port = unused_tcp_port_factory()
        site = web.TCPSite(runner, "127.0.0.1", port)
        await site.start()
        try:
            yield f"http://127.0.0.1:{port}"
        finally:
            await runner.cleanup()

    return _serve


@pytest.fixture()
def sample_html() -> str:
    return (
        "<html lang=\"en\"><head><title>Sample page</title>"
        "<meta name=\"description\" content=\"A sample\">"
        "<script>alert(1)</script></head>"
        "<body><h1>Hello</h1><p class=\"lead\" onclick=\"evil()\">First <b>bold</b></p>"
        "<a href=\"/next\">Next</a></body></html>"
    )
