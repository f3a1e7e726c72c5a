# File: site_harvest/schemas.py
"""site_harvest.schemas: Pydantic-схемы входа и выхода операций Engine.

Во внешнем представлении поля именуются в camelCase (``saveMarkdown``,
``extractedData``); внутри используются обычные snake_case имена.
JSON-схема любой модели доступна через ``model_json_schema(by_alias=True)``.
"""
from __future__ import annotations

from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from site_harvest.utils import is_http_url

__all__ = [
    "ToolInput",
    "ToolOutput",
    "ProgressEvent",
    "WebScraperInput",
    "WebScraperOutput",
    "BatchScraperInput",
    "BatchScraperOutput",
    "SiteMapInput",
    "SiteMapOutput",
    "LinkExtractorInput",
    "LinkExtractorOutput",
    "HtmlToMarkdownInput",
    "HtmlToMarkdownOutput",
    "ListContentInput",
    "ListContentOutput",
    "ContentCleanerInput",
    "ContentCleanerOutput",
]


def _check_url(value: str) -> str:
    value = value.strip()
    if not is_http_url(value):
        raise ValueError("Invalid URL format")
    return value


HttpUrlStr = Annotated[str, AfterValidator(_check_url)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def dump(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ToolInput(_CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")


class ToolOutput(_CamelModel):
    status: Literal["success", "failed"] = "success"
    error_message: Optional[str] = None
    error_code: Optional[str] = None


class ProgressEvent(_CamelModel):
    """Событие прогресса; ``stage`` совпадает с именем операции."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    status: Literal["in-progress", "done"]
    message: str
    stage: str


# --------------------------------------------------------------------------- #
# web-scraper                                                                 #
# --------------------------------------------------------------------------- #


class WebScraperInput(ToolInput):
    url: HttpUrlStr = Field(..., description="Адрес страницы (http/https).")
    selector: Optional[str] = Field(None, description="CSS-селектор извлекаемых элементов.")
    extract_attributes: List[str] = Field(default_factory=list, description="Атрибуты выбранных элементов.")
    save_markdown: bool = False
    markdown_file_name: Optional[str] = None
    extract_metadata: bool = True
    include_images: bool = False
    extract_structured_data: bool = False
    language_detection: bool = False
    timeout: Optional[float] = Field(None, gt=0, le=60, description="Таймаут запроса, секунд.")
    user_agent: Optional[str] = None
    headers: Dict[str, str] = Field(default_factory=dict)


class ImageModel(_CamelModel):
    src: str
    alt: Optional[str] = None
    title: Optional[str] = None


class WebScraperOutput(ToolOutput):
    url: str = ""
    extracted_data: List[Dict[str, str]] = Field(default_factory=list)
    raw_content: Optional[str] = None
    markdown_content: Optional[str] = None
    saved_file_path: Optional[str] = None
    metadata: Optional[Dict[str, str]] = None
    images: Optional[List[ImageModel]] = None
    structured_data: Optional[List[Any]] = None
    detected_language: Optional[str] = None


# --------------------------------------------------------------------------- #
# batch-web-scraper                                                           #
# --------------------------------------------------------------------------- #


class BatchScraperInput(ToolInput):
    urls: List[HttpUrlStr] = Field(..., min_length=1, max_length=10)
    selector: Optional[str] = None
    max_concurrent: int = Field(3, ge=1, le=15)
    save_results: bool = False
    base_file_name: str = "batch_scrape"


class PageOutcomeModel(_CamelModel):
    url: str
    success: bool
    extracted_data: Optional[List[Dict[str, str]]] = None
    markdown_content: Optional[str] = None
    error_message: Optional[str] = None


class BatchScraperOutput(ToolOutput):
    results: List[PageOutcomeModel] = Field(default_factory=list)
    saved_file_path: Optional[str] = None
    total_processed: int = 0
    successful: int = 0
    failed: int = 0


# --------------------------------------------------------------------------- #
# site-map-extractor                                                          #
# --------------------------------------------------------------------------- #


class SiteMapInput(ToolInput):
    url: HttpUrlStr
    max_depth: int = Field(2, ge=1, le=5)
    max_pages: int = Field(50, ge=1, le=200)
    include_external: bool = False
    save_map: bool = False


class PageModel(_CamelModel):
    url: str
    title: Optional[str] = None
    depth: int
    internal_links: List[str] = Field(default_factory=list)
    external_links: List[str] = Field(default_factory=list)


class SiteMapOutput(ToolOutput):
    base_url: str = ""
    pages: List[PageModel] = Field(default_factory=list)
    total_pages: int = 0
    saved_file_path: Optional[str] = None


# --------------------------------------------------------------------------- #
# link-extractor                                                              #
# --------------------------------------------------------------------------- #


class LinkExtractorInput(ToolInput):
    url: HttpUrlStr
    link_types: List[Literal["internal", "external", "all"]] = Field(default_factory=lambda: ["all"])
    include_anchors: bool = True
    filter_patterns: List[str] = Field(default_factory=list, description="Подстроки с * для фильтра по href.")


class LinkModel(_CamelModel):
    href: str
    text: str
    type: Literal["internal", "external"]
    is_valid: bool


class LinkSummary(_CamelModel):
    total: int = 0
    internal: int = 0
    external: int = 0
    invalid: int = 0


class LinkExtractorOutput(ToolOutput):
    url: str = ""
    links: List[LinkModel] = Field(default_factory=list)
    summary: LinkSummary = Field(default_factory=LinkSummary)


# --------------------------------------------------------------------------- #
# html-to-markdown / content-cleaner                                          #
# --------------------------------------------------------------------------- #


class HtmlToMarkdownInput(ToolInput):
    html: str
    save_to_file: bool = False
    file_name: Optional[str] = None


class HtmlToMarkdownOutput(ToolOutput):
    markdown: str = ""
    saved_file_path: Optional[str] = None


class ContentCleanerInput(ToolInput):
    html: str
    remove_comments: bool = True
    preserve_structure: bool = True


class ContentCleanerOutput(ToolOutput):
    cleaned_html: str = ""
    original_size: int = 0
    cleaned_size: int = 0
    reduction_percent: float = 0.0


# --------------------------------------------------------------------------- #
# list-scraped-content                                                        #
# --------------------------------------------------------------------------- #


class ListContentInput(ToolInput):
    pattern: Optional[str] = Field(None, description="Шаблон имени, например '*.md' или 'scraped_*'.")
    include_metadata: bool = True


class FileModel(_CamelModel):
    name: str
    path: str
    size: Optional[int] = None
    modified: Optional[str] = None
    created: Optional[str] = None


class ListContentOutput(ToolOutput):
    files: List[FileModel] = Field(default_factory=list)
    total_files: int = 0
    total_size: int = 0
