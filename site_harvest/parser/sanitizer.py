"""HTML sanitization for SiteHarvest.

:func:`sanitize` is the single gate every piece of fetched or caller-supplied
HTML passes through before it is converted, stored or returned. It removes
executable and form markup, event-handler attributes and ``javascript:`` URLs,
and returns the inner HTML of ``<body>``.

The primary path parses with BeautifulSoup (lxml backend). If parsing fails
for any reason the regex fallback strips the same tag set; it is best-effort
and never raises.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from typing import Optional, Tuple

from bs4 import BeautifulSoup, Comment
from bs4.element import Tag

__all__: Sequence[str] = (
    "DANGEROUS_TAGS",
    "DANGEROUS_ATTRS",
    "sanitize",
    "sanitize_document",
    "sanitize_fallback",
    "clean_html",
    "is_dangerous_attribute",
)

logger = logging.getLogger("SiteHarvest")

DANGEROUS_TAGS: frozenset[str] = frozenset(
    {
        "script",
        "style",
        "iframe",
        "embed",
        "object",
        "noscript",
        "meta",
        "link",
        "form",
        "input",
        "button",
        "select",
        "textarea",
        "frame",
        "frameset",
    }
)

DANGEROUS_ATTRS: frozenset[str] = frozenset(
    {
        "onload",
        "onerror",
        "onclick",
        "onmouseover",
        "onmouseout",
        "onkeydown",
        "onkeyup",
        "onkeypress",
        "onfocus",
        "onblur",
        "formaction",
    }
)

# plus every attribute ending in "href" (xlink:href and friends)
_URL_ATTRS = frozenset({"src", "action", "data", "poster", "background"})
_TAG_NAMES = sorted(DANGEROUS_TAGS)

# --------------------------------------------------------------------------- #
# Regex fallback                                                              #
# --------------------------------------------------------------------------- #

_TAG_ALTERNATION = "|".join(sorted(DANGEROUS_TAGS))
_PAIRED_TAG_RE = re.compile(
    rf"<\s*({_TAG_ALTERNATION})\b[^>]*>[\s\S]*?<\s*/\s*\1\s*>", re.IGNORECASE
)
_LONE_TAG_RE = re.compile(rf"<\s*/?\s*({_TAG_ALTERNATION})\b[^>]*>", re.IGNORECASE)
_EVENT_ATTR_RE = re.compile(r"""\son[\w-]*\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE)
_DENY_ATTR_RE = re.compile(r"""\sformaction\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]+)""", re.IGNORECASE)
_JS_URL_RE = re.compile(
    r"""\b([\w:-]*href|src|action|data|poster|background)\s*=\s*(?:"\s*javascript:[^"]*"|'\s*javascript:[^']*'|javascript:[^\s>]*)""",
    re.IGNORECASE,
)
_COMMENT_RE = re.compile(r"<!--[\s\S]*?(?:-->|$)")


def is_dangerous_attribute(name: str) -> bool:
    lowered = name.lower()
    return lowered.startswith("on") or lowered in DANGEROUS_ATTRS


def _is_url_attribute(name: str) -> bool:
    lowered = name.lower()
    return lowered.endswith("href") or lowered in _URL_ATTRS


def _is_javascript_url(value: object) -> bool:
    if isinstance(value, list):
        value = " ".join(value)
    if not isinstance(value, str):
        return False
    # Browsers ignore embedded whitespace/control chars in the scheme.
    compact = "".join(ch for ch in value if not ch.isspace() and ord(ch) >= 0x20)
    return compact.lower().startswith("javascript:")


def sanitize_fallback(html: str) -> str:
    """String-based stripping used when the parser is unavailable. Never raises."""
    try:
        text = str(html)
        text = _COMMENT_RE.sub("", text)
        # Repeat until stable so that nested/overlapping pairs cannot survive.
        previous = None
        while previous != text:
            previous = text
            text = _PAIRED_TAG_RE.sub("", text)
        text = _LONE_TAG_RE.sub("", text)
        text = _EVENT_ATTR_RE.sub(" ", text)
        text = _DENY_ATTR_RE.sub(" ", text)
        text = _JS_URL_RE.sub(lambda m: f'{m.group(1)}="#"', text)
        return text
    except Exception as exc:  # pragma: no cover - regex on str does not fail in practice
        logger.error("Regex sanitization failed: %s", exc)
        return ""


def _strip_tree(root: BeautifulSoup | Tag, *, remove_comments: bool) -> None:
    while True:
        tag = root.find(_TAG_NAMES)
        if tag is None:
            break
        tag.decompose()

    if remove_comments:
        for comment in root.find_all(string=lambda s: isinstance(s, Comment)):
            comment.extract()

    for element in root.find_all(True):
        for attr in list(element.attrs):
            if is_dangerous_attribute(attr):
                del element.attrs[attr]
            elif _is_url_attribute(attr) and _is_javascript_url(element.attrs[attr]):
                element.attrs[attr] = "#"


def _parse(html: str) -> BeautifulSoup:
    return BeautifulSoup(str(html), "lxml")


def sanitize_document(html: str) -> Tuple[str, Optional[BeautifulSoup]]:
    """Like :func:`sanitize`, but also hand back the stripped tree.

    The tree keeps ``<head>`` (minus ``<meta>``/``<link>``) so callers can
    read the title without parsing the document again. It is ``None`` when
    the regex fallback was used.
    """
    try:
        soup = _parse(html)
        _strip_tree(soup, remove_comments=True)
        body = soup.body
        return (body.decode_contents() if body is not None else ""), soup
    except Exception as exc:
        logger.warning("DOM sanitization failed, using regex fallback: %s", exc)
        return sanitize_fallback(html), None


def sanitize(html: str) -> str:
    """Return the sanitized inner HTML of *html*'s ``<body>``."""
    return sanitize_document(html)[0]


def clean_html(html: str, *, remove_comments: bool = True, preserve_structure: bool = True) -> str:
    """Sanitize with caller options: keep comments, or return body text only."""
    try:
        soup = _parse(html)
        _strip_tree(soup, remove_comments=remove_comments)
        body = soup.body
        if body is None:
            return ""
        if not preserve_structure:
            return body.get_text()
        return body.decode_contents()
    except Exception as exc:
        logger.warning("DOM cleaning failed, using regex fallback: %s", exc)
        cleaned = sanitize_fallback(html)
        if not preserve_structure:
            return re.sub(r"<[^>]*>", "", cleaned)
        return cleaned
