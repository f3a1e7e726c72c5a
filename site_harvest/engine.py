# File: site_harvest/engine.py
"""site_harvest.engine: Реестр операций и единая точка вызова для CLI и тестов."""

from __future__ import annotations

import asyncio
import json
from typing import Any, Awaitable, Callable, Dict, List, Mapping, Optional, Tuple, Type

from pydantic import ValidationError

from site_harvest.config import ScraperConfig, load_config
from site_harvest.crawler.batch import BatchScraper
from site_harvest.crawler.crawler import SiteCrawler
from site_harvest.crawler.fetcher import FetchClient, Fetcher, SessionPool
from site_harvest.crawler.link_extractor import extract_links, summarize
from site_harvest.crawler.models import BatchResult, PageRecord
from site_harvest.crawler.scraper import PageScraper
from site_harvest.errors import ScrapeCancelledError, ScrapingError
from site_harvest.logger import logger
from site_harvest.parser.markdown import escape_markdown, html_to_markdown
from site_harvest.parser.sanitizer import clean_html, sanitize
from site_harvest.report.json_report import site_map_document
from site_harvest.schemas import (
    BatchScraperInput,
    BatchScraperOutput,
    ContentCleanerInput,
    ContentCleanerOutput,
    FileModel,
    HtmlToMarkdownInput,
    HtmlToMarkdownOutput,
    ImageModel,
    LinkExtractorInput,
    LinkExtractorOutput,
    LinkModel,
    LinkSummary,
    ListContentInput,
    ListContentOutput,
    PageModel,
    PageOutcomeModel,
    ProgressEvent,
    SiteMapInput,
    SiteMapOutput,
    ToolInput,
    ToolOutput,
    WebScraperInput,
    WebScraperOutput,
)
from site_harvest.storage import ContentStore
from site_harvest.utils import CancelToken, extract_hostname, notify, sanitize_file_name, timestamp_slug

__all__ = ["Engine", "ProgressCallback"]

ProgressCallback = Callable[[ProgressEvent], Any]


class _Progress:
    """Отправляет события прогресса одной операции строго по порядку."""

    def __init__(self, stage: str, callback: Optional[ProgressCallback]) -> None:
        self.stage = stage
        self.callback = callback

    async def step(self, message: str) -> None:
        await notify(self.callback, ProgressEvent(status="in-progress", message=message, stage=self.stage))

    async def done(self, message: str) -> None:
        await notify(self.callback, ProgressEvent(status="done", message=message, stage=self.stage))


_Handler = Callable[[Any, _Progress, Optional[CancelToken]], Awaitable[ToolOutput]]


class Engine:
    """Фасад над PageScraper, BatchScraper и SiteCrawler.

    ``invoke()`` проверяет вход по pydantic-схеме операции, запускает её и
    возвращает словарь в camelCase. Ошибки превращаются в ответ со
    ``status="failed"``; наружу пробрасывается только отмена.
    """

    @staticmethod
    def load_config(path: Optional[str]) -> ScraperConfig:
        """Загружает конфиг из YAML/JSON или использует значения по умолчанию."""
        return load_config(path)

    def __init__(
        self,
        config: ScraperConfig,
        fetcher: Optional[FetchClient] = None,
        store: Optional[ContentStore] = None,
    ) -> None:
        self.config = config
        self._pool: Optional[SessionPool] = None
        if fetcher is None:
            self._pool = SessionPool(config)
            fetcher = Fetcher(self._pool, config)
        self.store = store or ContentStore(config.data_dir)
        self.scraper = PageScraper(fetcher, config, self.store)
        self.batch = BatchScraper(self.scraper, config)
        self.crawler = SiteCrawler(self.scraper, config)
        self._tools: Dict[str, Tuple[Type[ToolInput], Type[ToolOutput], _Handler]] = {
            "web-scraper": (WebScraperInput, WebScraperOutput, self._web_scraper),
            "batch-web-scraper": (BatchScraperInput, BatchScraperOutput, self._batch_scraper),
            "site-map-extractor": (SiteMapInput, SiteMapOutput, self._site_map),
            "link-extractor": (LinkExtractorInput, LinkExtractorOutput, self._link_extractor),
            "html-to-markdown": (HtmlToMarkdownInput, HtmlToMarkdownOutput, self._html_to_markdown),
            "list-scraped-content": (ListContentInput, ListContentOutput, self._list_content),
            "content-cleaner": (ContentCleanerInput, ContentCleanerOutput, self._content_cleaner),
        }

    async def __aenter__(self) -> Engine:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()

    @property
    def operations(self) -> List[str]:
        return sorted(self._tools)

    def input_schema(self, operation: str) -> Dict[str, Any]:
        """JSON-схема входа операции (camelCase)."""
        input_model, _, _ = self._tools[operation]
        return input_model.model_json_schema(by_alias=True)

    async def invoke(
        self,
        operation: str,
        payload: Mapping[str, Any],
        *,
        progress: Optional[ProgressCallback] = None,
        cancel: Optional[CancelToken] = None,
    ) -> Dict[str, Any]:
        """Выполняет операцию *operation* с входом *payload* и возвращает JSON-совместимый dict."""
        entry = self._tools.get(operation)
        if entry is None:
            logger.error("Unknown operation: %s", operation)
            return ToolOutput(
                status="failed",
                error_message=f"Unknown operation: {operation}",
                error_code="UNKNOWN_OPERATION",
            ).dump()

        input_model, output_model, handler = entry
        try:
            params = input_model.model_validate(dict(payload))
        except ValidationError as exc:
            logger.error("Invalid input for %s: %s", operation, exc)
            return output_model(status="failed", error_message=str(exc), error_code="INVALID_INPUT").dump()

        reporter = _Progress(operation, progress)
        try:
            output = await handler(params, reporter, cancel)
        except ScrapeCancelledError:
            logger.warning("%s cancelled", operation)
            raise
        except ScrapingError as exc:
            logger.error("%s failed: %s", operation, exc)
            output = output_model(status="failed", error_message=exc.reason, error_code=exc.code)
        except Exception as exc:
            logger.exception("%s failed unexpectedly", operation)
            output = output_model(status="failed", error_message=str(exc), error_code="INTERNAL_ERROR")
        await reporter.done(f"{operation}: {output.status}")
        return output.dump()

    @classmethod
    def run_sync(
        cls,
        config: ScraperConfig,
        operation: str,
        payload: Mapping[str, Any],
        timeout: Optional[float] = None,
    ) -> Dict[str, Any]:
        """Синхронный запуск одной операции для CLI; по таймауту поднимает asyncio.TimeoutError."""

        async def _runner() -> Dict[str, Any]:
            async with cls(config) as engine:
                return await engine.invoke(operation, payload)

        try:
            return asyncio.run(asyncio.wait_for(_runner(), timeout=timeout))
        except asyncio.TimeoutError:
            logger.error("%s did not finish within %s seconds", operation, timeout)
            raise

    # ------------------------------------------------------------------ #
    # Operations                                                          #
    # ------------------------------------------------------------------ #

    async def _save_json(self, file_name: str, data: Any) -> Optional[str]:
        try:
            await self.store.write(file_name, json.dumps(data, ensure_ascii=False, indent=2))
        except OSError as exc:
            logger.error("Failed to save %s: %s", file_name, exc)
            return None
        return file_name

    async def _web_scraper(
        self, params: WebScraperInput, progress: _Progress, cancel: Optional[CancelToken]
    ) -> WebScraperOutput:
        await progress.step(f"Fetching {params.url}")
        headers = dict(params.headers)
        if params.user_agent and params.user_agent.strip():
            headers["User-Agent"] = params.user_agent
        result = await self.scraper.scrape(
            params.url,
            selector=params.selector,
            extract_attributes=params.extract_attributes,
            save_markdown=params.save_markdown,
            markdown_file_name=params.markdown_file_name,
            extract_metadata=params.extract_metadata,
            include_images=params.include_images,
            extract_structured_data=params.extract_structured_data,
            detect_language=params.language_detection,
            timeout=params.timeout,
            headers=headers or None,
            cancel=cancel,
        )
        has_selector = bool(params.selector and params.selector.strip())
        return WebScraperOutput(
            url=result.url,
            extracted_data=[e.as_record() for e in result.extracted_data],
            raw_content=result.sanitized_html if not has_selector and result.sanitized_html.strip() else None,
            markdown_content=escape_markdown(result.markdown) if result.markdown else None,
            saved_file_path=result.saved_file_path,
            metadata=result.metadata or None,
            images=[ImageModel(src=i.src, alt=i.alt, title=i.title) for i in result.images] or None,
            structured_data=result.structured_data or None,
            detected_language=result.detected_language,
        )

    async def _batch_scraper(
        self, params: BatchScraperInput, progress: _Progress, cancel: Optional[CancelToken]
    ) -> BatchScraperOutput:
        await progress.step(f"Batch scraping {len(params.urls)} URLs")

        async def on_chunk(done: int, total: int) -> None:
            await progress.step(f"Processed {done}/{total} URLs")

        batch: BatchResult = await self.batch.scrape_batch(
            params.urls, params.max_concurrent, params.selector, cancel=cancel, on_chunk=on_chunk
        )
        records = [outcome.as_dict() for outcome in batch.results]
        saved = None
        if params.save_results:
            name = f"{sanitize_file_name(params.base_file_name)}_{timestamp_slug()}.json"
            saved = await self._save_json(name, records)
        return BatchScraperOutput(
            results=[PageOutcomeModel.model_validate(r) for r in records],
            saved_file_path=saved,
            total_processed=len(batch.results),
            successful=batch.successful,
            failed=batch.failed,
        )

    async def _site_map(
        self, params: SiteMapInput, progress: _Progress, cancel: Optional[CancelToken]
    ) -> SiteMapOutput:
        await progress.step(f"Crawling {params.url}")

        async def on_page(record: PageRecord) -> None:
            await progress.step(f"Visited {record.url} (depth {record.depth})")

        result = await self.crawler.crawl(
            params.url,
            max_depth=params.max_depth,
            max_pages=params.max_pages,
            include_external=params.include_external,
            cancel=cancel,
            on_page=on_page,
        )
        saved = None
        if params.save_map:
            host = sanitize_file_name(extract_hostname(params.url))
            document = site_map_document(result.base_url, [p.as_dict() for p in result.pages])
            saved = await self._save_json(f"sitemap_{host}_{timestamp_slug()}.json", document)
        return SiteMapOutput(
            base_url=result.base_url,
            pages=[PageModel.model_validate(p.as_dict()) for p in result.pages],
            total_pages=result.total_pages,
            saved_file_path=saved,
        )

    async def _link_extractor(
        self, params: LinkExtractorInput, progress: _Progress, cancel: Optional[CancelToken]
    ) -> LinkExtractorOutput:
        await progress.step(f"Extracting links from {params.url}")
        page = await self.scraper.fetch_page(params.url, cancel=cancel)
        links = extract_links(
            page.sanitized_html,
            page.url,
            link_types=params.link_types,
            include_anchors=params.include_anchors,
            filter_patterns=params.filter_patterns,
        )
        return LinkExtractorOutput(
            url=page.url,
            links=[
                LinkModel(href=link.href, text=link.text, type=link.type, is_valid=link.is_valid)
                for link in links
            ],
            summary=LinkSummary(**summarize(links)),
        )

    async def _html_to_markdown(
        self, params: HtmlToMarkdownInput, progress: _Progress, cancel: Optional[CancelToken]
    ) -> HtmlToMarkdownOutput:
        await progress.step("Converting HTML to Markdown")
        markdown = html_to_markdown(sanitize(params.html))
        saved = None
        if params.save_to_file and markdown.strip():
            saved = await self.scraper.save_markdown(markdown, params.file_name, prefix="converted")
        return HtmlToMarkdownOutput(markdown=escape_markdown(markdown), saved_file_path=saved)

    async def _list_content(
        self, params: ListContentInput, progress: _Progress, cancel: Optional[CancelToken]
    ) -> ListContentOutput:
        await progress.step("Listing scraped content files")
        files = await asyncio.to_thread(self.store.list, params.pattern, params.include_metadata)
        return ListContentOutput(
            files=[
                FileModel(name=f.name, path=f.path, size=f.size, modified=f.modified_at, created=f.created_at)
                for f in files
            ],
            total_files=len(files),
            total_size=ContentStore.total_size(files),
        )

    async def _content_cleaner(
        self, params: ContentCleanerInput, progress: _Progress, cancel: Optional[CancelToken]
    ) -> ContentCleanerOutput:
        await progress.step("Cleaning HTML content")
        cleaned = clean_html(
            params.html,
            remove_comments=params.remove_comments,
            preserve_structure=params.preserve_structure,
        )
        original_size = len(params.html)
        cleaned_size = len(cleaned)
        reduction = (original_size - cleaned_size) / original_size * 100 if original_size else 0.0
        return ContentCleanerOutput(
            cleaned_html=cleaned,
            original_size=original_size,
            cleaned_size=cleaned_size,
            reduction_percent=round(reduction, 2),
        )
