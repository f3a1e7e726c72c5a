# site_harvest/crawler/link_extractor.py
"""
Link extraction and classification utilities for SiteHarvest.
"""
from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Sequence, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from bs4.element import Tag

from site_harvest.crawler.models import LinkInfo
from site_harvest.parser.markdown import escape_markdown
from site_harvest.security import contains_match
from site_harvest.utils import extract_hostname, is_http_url, strip_fragment

__all__ = ("resolve_href", "iter_anchors", "classify_links", "extract_links", "summarize")


def resolve_href(href: str, page_url: str) -> Optional[str]:
    """
    Resolve *href* against *page_url* and drop the fragment.

    Returns None for malformed values and for anything that is not http(s)
    (mailto:, javascript:, tel:, data: ...).
    """
    raw = href.strip()
    if not raw:
        return None
    try:
        absolute = strip_fragment(urljoin(page_url, raw))
    except ValueError:
        return None
    return absolute if is_http_url(absolute) else None


def iter_anchors(html: str) -> Iterable[Tuple[str, str]]:
    """Yield ``(href, text)`` of every ``<a href>`` in document order."""
    soup = BeautifulSoup(html, "lxml")
    for tag in soup.find_all("a", href=True):
        if not isinstance(tag, Tag):
            continue
        href_val = tag.get("href")
        if not isinstance(href_val, str):
            continue
        yield href_val, tag.get_text(strip=True)


def classify_links(html: str, page_url: str, seed_host: str) -> Tuple[List[str], List[str]]:
    """
    Split the page's http(s) links into (internal, external).

    Internal means the hostname equals *seed_host*. Both lists are deduplicated
    and keep document order.
    """
    internal: Dict[str, None] = {}
    external: Dict[str, None] = {}
    for href, _ in iter_anchors(html):
        absolute = resolve_href(href, page_url)
        if absolute is None:
            continue
        if extract_hostname(absolute) == seed_host:
            internal[absolute] = None
        else:
            external[absolute] = None
    return list(internal), list(external)


def _matches_any(link: LinkInfo, patterns: Sequence[str]) -> bool:
    return any(contains_match(link.href, p) for p in patterns)


def extract_links(
    html: str,
    base_url: str,
    link_types: Sequence[str] = ("all",),
    include_anchors: bool = True,
    filter_patterns: Sequence[str] = (),
) -> List[LinkInfo]:
    """
    Collect every ``<a href>`` of *html* as :class:`LinkInfo`.

    Links that cannot be resolved to http(s) are kept as invalid external
    entries with their href escaped. ``link_types`` holds ``all``, ``internal``
    and/or ``external``; ``filter_patterns`` keep only links whose href
    contains one of the wildcard patterns.
    """
    host = extract_hostname(base_url)
    links: List[LinkInfo] = []
    for href, text in iter_anchors(html):
        anchor = text if include_anchors else ""
        absolute = resolve_href(href, base_url)
        if absolute is None:
            links.append(LinkInfo(href=escape_markdown(href), text=anchor, type="external", is_valid=False))
            continue
        kind = "internal" if extract_hostname(absolute) == host else "external"
        links.append(LinkInfo(href=absolute, text=anchor, type=kind, is_valid=True))

    wanted = set(link_types) if link_types else {"all"}
    if "all" not in wanted:
        links = [link for link in links if link.type in wanted]
    patterns = [p for p in filter_patterns if p and p.strip()]
    if patterns:
        links = [link for link in links if _matches_any(link, patterns)]
    return links


def summarize(links: Sequence[LinkInfo]) -> Dict[str, int]:
    internal = sum(1 for link in links if link.type == "internal")
    return {
        "total": len(links),
        "internal": internal,
        "external": len(links) - internal,
        "invalid": sum(1 for link in links if not link.is_valid),
    }
