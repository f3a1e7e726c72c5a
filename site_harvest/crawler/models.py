"""
Data models for the SiteHarvest scraping core.
"""
from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from typing import Any, Deque, Dict, List, Mapping, Optional, Set, Tuple

from bs4 import UnicodeDammit

_BLOCKED_ATTRIBUTE_KEYS = frozenset({"__proto__", "constructor", "prototype"})


def is_safe_attribute_key(key: str) -> bool:
    """Attribute names that may be copied into an extracted record."""
    return bool(key) and key not in _BLOCKED_ATTRIBUTE_KEYS and "<" not in key and ">" not in key


@dataclass(slots=True, frozen=True)
class FetchResult:
    """Raw response of the fetch transport: final URL, status, headers and body bytes."""

    url: str
    status_code: int
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""
    # charset from the Content-Type header, if the server sent one
    encoding: Optional[str] = None

    def text(self) -> str:
        """Decode the body: header charset first, then BOM and <meta charset>, then detection."""
        known = [self.encoding] if self.encoding else []
        dammit = UnicodeDammit(self.body, known_definite_encodings=known, is_html=True)
        return dammit.unicode_markup or ""


@dataclass(slots=True)
class ExtractedElement:
    """Text and selected attributes of one element matched by a CSS selector."""

    text: str
    attributes: Dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.attributes = {k: v for k, v in self.attributes.items() if is_safe_attribute_key(k)}

    def as_record(self) -> Dict[str, str]:
        record = {"text": self.text}
        for key, value in self.attributes.items():
            record[f"attr_{key}"] = value
        return record


@dataclass(slots=True, frozen=True)
class ImageInfo:
    src: str
    alt: Optional[str] = None
    title: Optional[str] = None


@dataclass(slots=True, frozen=True)
class LinkInfo:
    href: str
    text: str
    type: str  # "internal" | "external"
    is_valid: bool


@dataclass(slots=True, frozen=True)
class PageRecord:
    """One visited page of a crawl; depth is the BFS distance from the seed."""

    url: str
    title: Optional[str]
    depth: int
    internal_links: Tuple[str, ...] = ()
    external_links: Tuple[str, ...] = ()

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "url": self.url,
            "depth": self.depth,
            "internalLinks": list(self.internal_links),
            "externalLinks": list(self.external_links),
        }
        if self.title is not None:
            data["title"] = self.title
        return data


@dataclass(slots=True)
class CrawlState:
    """Mutable state of a single crawl; the visited set is the only deduplication."""

    visited: Set[str] = field(default_factory=set)
    frontier: Deque[Tuple[str, int]] = field(default_factory=deque)
    pages: List[PageRecord] = field(default_factory=list)

    def enqueue(self, url: str, depth: int) -> bool:
        if url in self.visited:
            return False
        self.visited.add(url)
        self.frontier.append((url, depth))
        return True


@dataclass(slots=True, frozen=True)
class CrawlResult:
    base_url: str
    pages: Tuple[PageRecord, ...]

    @property
    def total_pages(self) -> int:
        return len(self.pages)


@dataclass(slots=True)
class ScrapeResult:
    """Everything PageScraper produced for one URL."""

    url: str
    sanitized_html: str
    markdown: str
    title: Optional[str] = None
    extracted_data: List[ExtractedElement] = field(default_factory=list)
    saved_file_path: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    images: List[ImageInfo] = field(default_factory=list)
    structured_data: List[Any] = field(default_factory=list)
    detected_language: Optional[str] = None


@dataclass(slots=True, frozen=True)
class PageOutcome:
    """Per-URL result of a batch: success with data, or failure with a message."""

    url: str
    success: bool
    extracted_data: Tuple[Dict[str, str], ...] = ()
    markdown_content: Optional[str] = None
    error_message: Optional[str] = None

    @classmethod
    def failure(cls, url: str, message: str) -> PageOutcome:
        return cls(url=url, success=False, error_message=message)

    def as_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"url": self.url, "success": self.success}
        if self.success:
            data["extractedData"] = list(self.extracted_data)
            if self.markdown_content is not None:
                data["markdownContent"] = self.markdown_content
        else:
            data["errorMessage"] = self.error_message or ""
        return data


@dataclass(slots=True, frozen=True)
class BatchResult:
    results: Tuple[PageOutcome, ...]

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.successful


@dataclass(slots=True, frozen=True)
class FileInfo:
    name: str
    path: str
    size: Optional[int] = None
    modified_at: Optional[str] = None
    created_at: Optional[str] = None
