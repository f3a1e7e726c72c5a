# === FILE: site_harvest/parser/html_parser.py ===
"""HTML inspection helpers for SiteHarvest.

Two kinds of input reach this module:

* **raw** documents, inspected read-only for ``<head>`` data the sanitizer
  discards on purpose (title, ``<meta>`` values, canonical link, JSON-LD,
  ``lang``). Only plain strings and parsed JSON leave these helpers, never
  markup.
* **sanitized** body HTML, used for selector extraction and image discovery.

:class:`ParsedHead` bundles the raw-document fields so callers parse once.
"""
from __future__ import annotations

import json
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag
from soupsieve import SelectorSyntaxError

from site_harvest.crawler.models import ExtractedElement, ImageInfo, is_safe_attribute_key
from site_harvest.errors import InvalidInputError

__all__: Sequence[str] = (
    "ParsedHead",
    "page_title",
    "parse_head",
    "extract_images",
    "select_elements",
)

logger = logging.getLogger("SiteHarvest")

_META_NAMES = ("description", "keywords", "author", "robots", "viewport")


@dataclass(slots=True)
class ParsedHead:
    """Read-only facts taken from an unsanitized document."""

    title: Optional[str] = None
    metadata: Dict[str, str] = field(default_factory=dict)
    structured_data: List[Any] = field(default_factory=list)
    language: Optional[str] = None


def _text(tag: Optional[Tag]) -> Optional[str]:
    if tag is None:
        return None
    value = tag.get_text(strip=True)
    return value or None


def _attr(tag: Optional[Tag], name: str) -> Optional[str]:
    if tag is None:
        return None
    value = tag.get(name)
    if isinstance(value, list):
        value = " ".join(value)
    return value if isinstance(value, str) else None


def _metadata(soup: BeautifulSoup, title: Optional[str]) -> Dict[str, str]:
    data: Dict[str, Optional[str]] = {"title": title}
    for name in _META_NAMES:
        data[name] = _attr(soup.find("meta", attrs={"name": name}), "content")
    data["charset"] = _attr(soup.find("meta", charset=True), "charset")
    data["canonical"] = _attr(soup.find("link", rel="canonical"), "href")
    return {k: v.strip() for k, v in data.items() if v and v.strip()}


def _json_ld(soup: BeautifulSoup) -> List[Any]:
    found: List[Any] = []
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            found.append(json.loads(script.string or script.get_text() or ""))
        except (json.JSONDecodeError, TypeError):
            logger.debug("Skipping invalid JSON-LD block")
    return found


def _microdata(soup: BeautifulSoup) -> List[Dict[str, str]]:
    found: List[Dict[str, str]] = []
    for scope in soup.select("[itemscope]"):
        item_type = (_attr(scope, "itemtype") or "").strip()
        if not item_type:
            continue
        item: Dict[str, str] = {"@type": item_type}
        for prop in scope.select("[itemprop]"):
            name = (_attr(prop, "itemprop") or "").strip()
            value = prop.get_text(strip=True) or (_attr(prop, "content") or "").strip()
            if name and value and is_safe_attribute_key(name):
                item[name] = value
        if len(item) > 1:
            found.append(item)
    return found


def _language(soup: BeautifulSoup) -> Optional[str]:
    html_tag = soup.find("html")
    lang = _attr(html_tag, "lang") if isinstance(html_tag, Tag) else None
    if not lang:
        lang = _attr(soup.find("meta", attrs={"http-equiv": "content-language"}), "content")
    if not lang:
        lang = _attr(soup.find("meta", attrs={"name": "language"}), "content")
    return lang.strip() if lang and lang.strip() else None


def page_title(soup: BeautifulSoup) -> Optional[str]:
    """``<title>`` text, or the first ``<h1>`` when the title is missing or empty."""
    return _text(soup.find("title")) or _text(soup.find("h1"))


def parse_head(raw_html: str, *, structured: bool = False) -> ParsedHead:
    """Read title, metadata, language and (optionally) structured data from *raw_html*.

    Title falls back to the first ``<h1>`` when ``<title>`` is missing or empty.
    Parse problems yield an empty :class:`ParsedHead` rather than an error.
    """
    try:
        soup = BeautifulSoup(raw_html, "lxml")
    except Exception as exc:
        logger.warning("Could not parse document head: %s", exc)
        return ParsedHead()

    title = page_title(soup)
    head = ParsedHead(title=title, metadata=_metadata(soup, title), language=_language(soup))
    if structured:
        head.structured_data = _json_ld(soup) + _microdata(soup)
    return head


def extract_images(sanitized_html: str, base_url: str) -> List[ImageInfo]:
    """Collect ``<img>`` elements with a non-empty ``src``, resolved against *base_url*."""
    soup = BeautifulSoup(sanitized_html, "lxml")
    images: List[ImageInfo] = []
    for img in soup.find_all("img"):
        src = (_attr(img, "src") or "").strip()
        if not src:
            continue
        try:
            absolute = urljoin(base_url, src)
        except ValueError:
            continue
        images.append(ImageInfo(src=absolute, alt=_attr(img, "alt"), title=_attr(img, "title")))
    return images


def select_elements(
    sanitized_html: str,
    selector: str,
    attributes: Iterable[str] = (),
) -> List[ExtractedElement]:
    """Return one :class:`ExtractedElement` per match of the CSS *selector*.

    Requested attribute names that could pollute a re-serialized record
    (``__proto__``, ``constructor``, ``prototype``, anything with ``<``/``>``)
    are ignored.
    """
    selector = selector.strip()
    if not selector:
        return []
    wanted = [a for a in attributes if isinstance(a, str) and is_safe_attribute_key(a)]
    soup = BeautifulSoup(sanitized_html, "lxml")
    try:
        matches = soup.select(selector)
    except (SelectorSyntaxError, ValueError, NotImplementedError) as exc:
        raise InvalidInputError(f"Invalid CSS selector {selector!r}: {exc}", "INVALID_SELECTOR") from exc

    elements: List[ExtractedElement] = []
    for tag in matches:
        attrs: Dict[str, str] = {}
        for name in wanted:
            value = _attr(tag, name)
            if value is not None:
                attrs[name] = value
        elements.append(ExtractedElement(text=tag.get_text().strip(), attributes=attrs))
    return elements
