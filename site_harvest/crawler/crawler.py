# === FILE: site_harvest/crawler/crawler.py ===
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Optional

from site_harvest.config import ScraperConfig
from site_harvest.crawler.link_extractor import classify_links
from site_harvest.crawler.models import CrawlResult, CrawlState, PageRecord
from site_harvest.crawler.scraper import PageScraper
from site_harvest.errors import InvalidInputError, ScrapeCancelledError, ScrapingError
from site_harvest.utils import CancelToken, extract_hostname, is_url_allowed, notify, pause, strip_fragment

__all__ = ("SiteCrawler", "MAX_DEPTH", "MAX_PAGES")

MAX_DEPTH = 5
MAX_PAGES = 200

PageCallback = Callable[[PageRecord], Any]


class SiteCrawler:
    """Обход сайта в ширину с ограничением глубины и числа страниц.

    Очередь FIFO и множество посещённых URL принадлежат одному вызову
    ``crawl``. URL попадает в ``visited`` в момент постановки в очередь,
    поэтому каждая страница загружается не более одного раза.
    """

    def __init__(self, scraper: PageScraper, config: ScraperConfig) -> None:
        self.scraper = scraper
        self.config = config
        self.logger = logging.getLogger("SiteHarvest")

    async def crawl(
        self,
        seed_url: str,
        max_depth: Optional[int] = None,
        max_pages: Optional[int] = None,
        include_external: bool = False,
        cancel: Optional[CancelToken] = None,
        on_page: Optional[PageCallback] = None,
    ) -> CrawlResult:
        max_depth = self.config.max_depth if max_depth is None else max_depth
        max_pages = self.config.max_pages if max_pages is None else max_pages
        if not 1 <= max_depth <= MAX_DEPTH:
            raise InvalidInputError(f"max_depth must be between 1 and {MAX_DEPTH}, got {max_depth}")
        if not 1 <= max_pages <= MAX_PAGES:
            raise InvalidInputError(f"max_pages must be between 1 and {MAX_PAGES}, got {max_pages}")
        self.scraper.check_url(seed_url)

        seed = strip_fragment(seed_url)
        seed_host = extract_hostname(seed)
        state = CrawlState()
        state.enqueue(seed, 0)

        self.logger.info("Старт обхода: %s (depth<=%d, pages<=%d)", seed, max_depth, max_pages)
        start = time.monotonic()
        fetched = 0
        while state.frontier and len(state.pages) < max_pages:
            url, depth = state.frontier.popleft()
            if cancel is not None:
                cancel.raise_if_cancelled(url)
            if fetched:
                await pause(self.config.link_delay, cancel)
            fetched += 1
            try:
                page = await self.scraper.fetch_page(url, cancel=cancel)
            except ScrapeCancelledError:
                raise
            except ScrapingError as exc:
                self.logger.warning("Пропуск %s: %s", url, exc)
                continue

            # redirects: the final URL counts as visited too
            state.visited.add(strip_fragment(page.url))
            internal, external = classify_links(page.sanitized_html, page.url, seed_host)
            internal = [link for link in internal if is_url_allowed(link, self.config.allowed_domains)]
            record = PageRecord(
                url=url,
                title=page.title,
                depth=depth,
                internal_links=tuple(internal),
                external_links=tuple(external) if include_external else (),
            )
            state.pages.append(record)
            await notify(on_page, record)

            if depth < max_depth:
                for link in internal:
                    state.enqueue(link, depth + 1)

        duration = time.monotonic() - start
        self.logger.info("Завершено: %d страниц за %.2f с", len(state.pages), duration)
        return CrawlResult(base_url=seed_url, pages=tuple(state.pages))
