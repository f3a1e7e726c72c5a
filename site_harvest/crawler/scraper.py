# site_harvest/crawler/scraper.py
"""
PageScraper: the shared unit of work behind every scraping operation.

One call fetches a URL, sanitizes the body, converts it to Markdown and,
on request, adds selector matches, head metadata, images, structured data
and the declared language. Optionally the Markdown is saved through a
:class:`~site_harvest.storage.ContentStore`.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from http import HTTPStatus
from typing import Mapping, Optional, Sequence

from site_harvest.config import ScraperConfig
from site_harvest.crawler.fetcher import FetchClient
from site_harvest.crawler.models import ScrapeResult
from site_harvest.errors import DomainNotAllowedError, HttpStatusError, InvalidInputError
from site_harvest.parser.html_parser import extract_images, page_title, parse_head, select_elements
from site_harvest.parser.markdown import html_to_markdown
from site_harvest.parser.sanitizer import sanitize_document
from site_harvest.storage import ContentStore
from site_harvest.utils import CancelToken, is_http_url, is_url_allowed, sanitize_file_name, timestamp_slug

__all__ = ("FetchedPage", "PageScraper")

logger = logging.getLogger("SiteHarvest")


@dataclass(slots=True, frozen=True)
class FetchedPage:
    """Final URL, untouched document, its sanitized body and the page title."""

    url: str
    raw_html: str
    sanitized_html: str
    title: Optional[str] = None


def _reason(status: int) -> str:
    try:
        return HTTPStatus(status).phrase
    except ValueError:
        return "Unknown Status"


class PageScraper:
    def __init__(
        self,
        fetcher: FetchClient,
        config: ScraperConfig,
        store: Optional[ContentStore] = None,
    ) -> None:
        self.fetcher = fetcher
        self.config = config
        self.store = store

    def check_url(self, url: str) -> None:
        """Reject non-http(s) URLs and hosts outside ``allowed_domains``."""
        if not is_http_url(url):
            raise InvalidInputError(f"Invalid URL format: {url}", "INVALID_URL", url=url)
        if not is_url_allowed(url, self.config.allowed_domains):
            raise DomainNotAllowedError(url)

    async def fetch_page(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> FetchedPage:
        self.check_url(url)
        if cancel is not None:
            cancel.raise_if_cancelled(url)
        result = await self.fetcher.fetch(url, timeout=timeout, headers=headers, cancel=cancel)
        if cancel is not None:
            cancel.raise_if_cancelled(url)
        if result.status_code >= 400:
            raise HttpStatusError(
                f"HTTP {result.status_code}: {_reason(result.status_code)}", result.status_code, url
            )
        # A redirect may leave the allowlist.
        if result.url != url and not is_url_allowed(result.url, self.config.allowed_domains):
            raise DomainNotAllowedError(result.url)
        raw = result.text()
        sanitized, tree = sanitize_document(raw)
        title = page_title(tree) if tree is not None else None
        return FetchedPage(url=result.url, raw_html=raw, sanitized_html=sanitized, title=title)

    async def scrape(
        self,
        url: str,
        *,
        selector: Optional[str] = None,
        extract_attributes: Sequence[str] = (),
        save_markdown: bool = False,
        markdown_file_name: Optional[str] = None,
        extract_metadata: bool = True,
        include_images: bool = False,
        extract_structured_data: bool = False,
        detect_language: bool = False,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> ScrapeResult:
        page = await self.fetch_page(url, timeout=timeout, headers=headers, cancel=cancel)
        head = parse_head(page.raw_html, structured=extract_structured_data)

        result = ScrapeResult(
            url=page.url,
            sanitized_html=page.sanitized_html,
            markdown=html_to_markdown(page.sanitized_html),
            title=head.title,
        )
        if selector and selector.strip():
            result.extracted_data = select_elements(page.sanitized_html, selector, extract_attributes)
        if extract_metadata:
            result.metadata = head.metadata
        if include_images:
            result.images = extract_images(page.sanitized_html, page.url)
        if extract_structured_data:
            result.structured_data = head.structured_data
        if detect_language:
            result.detected_language = head.language

        if save_markdown and result.markdown.strip():
            result.saved_file_path = await self.save_markdown(result.markdown, markdown_file_name)
        logger.info("Scraped %s (%d elements)", page.url, len(result.extracted_data))
        return result

    async def save_markdown(self, markdown: str, file_name: Optional[str], prefix: str = "scraped") -> Optional[str]:
        """
        Save *markdown* under a sanitized name; return the relative path or None.

        A name that escapes the data directory raises PathEscapeError; other
        filesystem errors are logged and leave nothing saved.
        """
        if self.store is None:
            logger.warning("No content store configured, markdown not saved")
            return None
        if file_name and file_name.strip():
            name = sanitize_file_name(file_name.strip())
        else:
            name = f"{prefix}_{timestamp_slug()}.md"
        try:
            await self.store.write(name, markdown)
        except OSError as exc:
            logger.error("Failed to save markdown file %s: %s", name, exc)
            return None
        return name
