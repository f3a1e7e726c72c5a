# site_harvest/crawler/batch.py
"""
BatchScraper: bounded-concurrency scraping of a URL list.

URLs are split into chunks of ``max_concurrent``; each chunk runs fully in
parallel and the next one starts after ``batch_delay`` seconds. A failing
URL becomes a failed :class:`PageOutcome`, so the result always has one
entry per input URL, in input order.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence

from site_harvest.config import ScraperConfig
from site_harvest.crawler.models import BatchResult, PageOutcome
from site_harvest.crawler.scraper import PageScraper
from site_harvest.errors import InvalidInputError, ScrapeCancelledError, ScrapingError
from site_harvest.parser.markdown import escape_markdown, html_to_markdown
from site_harvest.parser.html_parser import select_elements
from site_harvest.utils import CancelToken, notify, pause

__all__ = ("BatchScraper", "chunked", "MAX_CONCURRENT")

logger = logging.getLogger("SiteHarvest")

MAX_CONCURRENT = 15

ChunkCallback = Callable[[int, int], Any]


def chunked(items: Sequence[str], size: int) -> List[List[str]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


class BatchScraper:
    def __init__(self, scraper: PageScraper, config: ScraperConfig) -> None:
        self.scraper = scraper
        self.config = config

    async def _scrape_one(
        self, url: str, selector: Optional[str], cancel: Optional[CancelToken]
    ) -> PageOutcome:
        page = await self.scraper.fetch_page(url, cancel=cancel)
        records = ()
        if selector and selector.strip():
            records = tuple(e.as_record() for e in select_elements(page.sanitized_html, selector))
        return PageOutcome(
            url=url,
            success=True,
            extracted_data=records,
            markdown_content=escape_markdown(html_to_markdown(page.sanitized_html)),
        )

    async def scrape_batch(
        self,
        urls: Sequence[str],
        max_concurrent: Optional[int] = None,
        selector: Optional[str] = None,
        cancel: Optional[CancelToken] = None,
        on_chunk: Optional[ChunkCallback] = None,
    ) -> BatchResult:
        """Scrape *urls* chunk by chunk; ``on_chunk(done, total)`` fires after each chunk."""
        size = self.config.max_concurrent if max_concurrent is None else max_concurrent
        if not 1 <= size <= MAX_CONCURRENT:
            raise InvalidInputError(f"max_concurrent must be between 1 and {MAX_CONCURRENT}, got {size}")

        results: List[PageOutcome] = []
        chunks = chunked(urls, size)
        for index, chunk in enumerate(chunks):
            if cancel is not None:
                cancel.raise_if_cancelled()
            logger.debug("Batch chunk %d/%d: %d URLs", index + 1, len(chunks), len(chunk))
            outcomes = await asyncio.gather(
                *(self._scrape_one(url, selector, cancel) for url in chunk),
                return_exceptions=True,
            )
            for url, outcome in zip(chunk, outcomes):
                if isinstance(outcome, ScrapeCancelledError):
                    raise outcome
                if isinstance(outcome, asyncio.CancelledError):
                    raise outcome
                if isinstance(outcome, BaseException):
                    message = outcome.reason if isinstance(outcome, ScrapingError) else str(outcome)
                    logger.warning("Batch item failed %s: %s", url, outcome)
                    results.append(PageOutcome.failure(url, message))
                else:
                    results.append(outcome)
            await notify(on_chunk, len(results), len(urls))
            if index < len(chunks) - 1:
                await pause(self.config.batch_delay, cancel)

        batch = BatchResult(results=tuple(results))
        logger.info("Batch complete: %d/%d successful", batch.successful, len(urls))
        return batch
