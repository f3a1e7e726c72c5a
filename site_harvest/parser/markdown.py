"""HTML → Markdown conversion.

The sanitized HTML is parsed once with BeautifulSoup and copied into a small
typed tree (:class:`Element`, :class:`Text`, :class:`Comment`). Rendering is
a depth-first walk driven by :func:`visit`, which dispatches on the node type
to a :class:`NodeVisitor`. :class:`MarkdownRenderer` maps each element to a
fixed textual template; unknown elements render their children unchanged.

:func:`html_to_markdown` never raises: if building or walking the tree fails,
it degrades to :func:`extract_text`. :func:`escape_markdown` is the second
pass applied to every Markdown value placed in a tool response.
"""
from __future__ import annotations

import logging
import re
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Dict, List, Union

from bs4 import BeautifulSoup
from bs4.element import Comment as SoupComment
from bs4.element import NavigableString, PreformattedString, Tag

__all__: Sequence[str] = (
    "Element",
    "Text",
    "Comment",
    "Node",
    "NodeVisitor",
    "visit",
    "build_tree",
    "MarkdownRenderer",
    "html_to_markdown",
    "extract_text",
    "escape_markdown",
)

logger = logging.getLogger("SiteHarvest")


@dataclass(slots=True)
class Text:
    content: str


@dataclass(slots=True)
class Comment:
    content: str


@dataclass(slots=True)
class Element:
    tag: str
    attrs: Dict[str, str] = field(default_factory=dict)
    children: List["Node"] = field(default_factory=list)


Node = Union[Element, Text, Comment]


class NodeVisitor:
    """Base visitor; subclasses override the three ``visit_*`` hooks."""

    def visit_element(self, node: Element) -> str:
        return "".join(visit(child, self) for child in node.children)

    def visit_text(self, node: Text) -> str:
        return node.content

    def visit_comment(self, node: Comment) -> str:
        return ""


def visit(node: Node, visitor: NodeVisitor) -> str:
    if isinstance(node, Element):
        return visitor.visit_element(node)
    if isinstance(node, Text):
        return visitor.visit_text(node)
    if isinstance(node, Comment):
        return visitor.visit_comment(node)
    raise TypeError(f"Unsupported node type: {type(node).__name__}")


# --------------------------------------------------------------------------- #
# Tree construction                                                           #
# --------------------------------------------------------------------------- #


def _attr_value(value: object) -> str:
    if isinstance(value, (list, tuple)):
        return " ".join(str(v) for v in value)
    return str(value)


def _convert(soup_node: Tag) -> Element:
    children: List[Node] = []
    for child in soup_node.children:
        if isinstance(child, Tag):
            children.append(_convert(child))
        elif isinstance(child, SoupComment):
            children.append(Comment(str(child)))
        elif isinstance(child, PreformattedString):
            # doctype, CDATA, processing instructions
            continue
        elif isinstance(child, NavigableString):
            children.append(Text(str(child)))
    attrs = {str(k): _attr_value(v) for k, v in soup_node.attrs.items()}
    return Element(tag=(soup_node.name or "").lower(), attrs=attrs, children=children)


def build_tree(html: str) -> Element:
    """Parse *html* and return the ``<body>`` (or document root) as an :class:`Element`."""
    soup = BeautifulSoup(html, "lxml")
    root = soup.body or soup
    return _convert(root)


def _raw_text(node: Node) -> str:
    if isinstance(node, Text):
        return node.content
    if isinstance(node, Element):
        return "".join(_raw_text(child) for child in node.children)
    return ""


def _descendants(node: Element, tags: frozenset[str]) -> List[Element]:
    found: List[Element] = []
    for child in node.children:
        if isinstance(child, Element):
            if child.tag in tags:
                found.append(child)
            found.extend(_descendants(child, tags))
    return found


# --------------------------------------------------------------------------- #
# Rendering                                                                   #
# --------------------------------------------------------------------------- #

_ROW_TAGS = frozenset({"tr"})
_CELL_TAGS = frozenset({"td", "th"})


class MarkdownRenderer(NodeVisitor):
    """Renders a typed tree as Markdown text."""

    def __init__(self) -> None:
        self._handlers: Dict[str, Callable[[Element], str]] = {
            "p": lambda n: f"{self._inner(n)}\n\n",
            "br": lambda n: "\n",
            "strong": lambda n: f"**{self._inner(n)}**",
            "b": lambda n: f"**{self._inner(n)}**",
            "em": lambda n: f"*{self._inner(n)}*",
            "i": lambda n: f"*{self._inner(n)}*",
            "code": lambda n: f"`{self._inner(n)}`",
            "pre": self._pre,
            "a": self._link,
            "ul": lambda n: f"{self._inner(n)}\n",
            "ol": lambda n: f"{self._inner(n)}\n",
            "li": lambda n: f"- {self._inner(n)}\n",
            "blockquote": lambda n: f"> {self._inner(n)}\n\n",
            "hr": lambda n: "---\n\n",
            "img": self._image,
            "table": self._table,
        }
        for level in range(1, 7):
            self._handlers[f"h{level}"] = self._heading(level)

    def _inner(self, node: Element) -> str:
        return "".join(visit(child, self) for child in node.children)

    def visit_element(self, node: Element) -> str:
        handler = self._handlers.get(node.tag)
        if handler is None:
            return self._inner(node)
        return handler(node)

    def visit_text(self, node: Text) -> str:
        return node.content.strip()

    def _heading(self, level: int) -> Callable[[Element], str]:
        prefix = "#" * level
        return lambda n: f"{prefix} {self._inner(n)}\n\n"

    def _pre(self, node: Element) -> str:
        return f"```\n{_raw_text(node).strip()}\n```\n\n"

    def _link(self, node: Element) -> str:
        text = self._inner(node)
        href = node.attrs.get("href")
        if href is None:
            return text
        return f"[{text}]({href})"

    def _image(self, node: Element) -> str:
        src = node.attrs.get("src", "").strip()
        if not src:
            return ""
        alt = node.attrs.get("alt", "").strip()
        return f"![{alt}]({src})"

    def _table(self, node: Element) -> str:
        rows = _descendants(node, _ROW_TAGS)
        if not rows:
            return ""
        lines: List[str] = []
        for index, row in enumerate(rows):
            cells = [self._inner(cell) for cell in _descendants(row, _CELL_TAGS)]
            lines.append("| " + " | ".join(cells) + " |")
            if index == 0:
                lines.append("| " + " | ".join("---" for _ in cells) + " |")
        return "\n".join(lines) + "\n\n"


def extract_text(html: str) -> str:
    """Plain-text fallback: concatenated text nodes of *html*, trimmed."""
    try:
        return BeautifulSoup(html, "lxml").get_text().strip()
    except Exception as exc:
        logger.warning("Text extraction failed, stripping tags: %s", exc)
        return re.sub(r"<[^>]*>", "", str(html)).strip()


def html_to_markdown(html: str) -> str:
    """Convert sanitized *html* to Markdown, falling back to plain text on failure."""
    try:
        tree = build_tree(html)
        return visit(tree, MarkdownRenderer()).strip()
    except Exception as exc:
        logger.warning("DOM conversion failed, using plain-text fallback: %s", exc)
        return extract_text(html)


_ESCAPES = str.maketrans(
    {
        "&": "&amp;",
        "<": "&lt;",
        ">": "&gt;",
        "'": "&#39;",
        '"': "&quot;",
        "\\": "&#92;",
        "\n": "\\n",
        "\r": "\\r",
        "\t": "\\t",
        "\f": "\\f",
        "\0": "\\0",
    }
)


def escape_markdown(markdown: str) -> str:
    """Escape characters that would break JSON/HTML embedding of *markdown*.

    Single-pass translation, so ``&`` produced by an earlier replacement is
    never escaped twice.
    """
    return str(markdown).translate(_ESCAPES)
