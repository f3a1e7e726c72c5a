"""
Guards applied to caller-controlled strings.

``wildcard_match`` is the only matcher used for user-supplied file and link
filters; it never hands caller text to a regex engine. ``is_contained`` is
checked before every filesystem write.
"""
from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Union

__all__ = ("wildcard_match", "contains_match", "is_safe_file_pattern", "is_contained")

# Fixed regex over the pattern's own characters, not a regex built from it.
_SAFE_FILE_PATTERN = re.compile(r"^[a-zA-Z0-9_\-. *]+$")

PathLike = Union[str, "os.PathLike[str]"]


def wildcard_match(candidate: str, pattern: str) -> bool:
    """Match *candidate* against *pattern* where ``*`` means "zero or more characters".

    Every other character is literal. The first segment is anchored to the
    start unless the pattern starts with ``*``; the last segment is anchored to
    the end unless the pattern ends with ``*``; the segments in between must
    appear in order without overlapping.
    """
    parts = pattern.split("*")
    if len(parts) == 1:
        return candidate == pattern

    head, tail = parts[0], parts[-1]
    if not candidate.startswith(head):
        return False
    pos = len(head)
    end = len(candidate) - len(tail)
    if end < pos or not candidate.endswith(tail):
        return False

    for segment in parts[1:-1]:
        if not segment:
            continue
        idx = candidate.find(segment, pos, end)
        if idx == -1:
            return False
        pos = idx + len(segment)
    return True


def contains_match(candidate: str, pattern: str) -> bool:
    """Unanchored variant used for link filters: ``docs`` behaves like ``*docs*``."""
    pattern = pattern.strip()
    if not pattern:
        return False
    return wildcard_match(candidate, f"*{pattern}*")


def is_safe_file_pattern(pattern: str) -> bool:
    """File-listing patterns may only use letters, digits, ``_-.``, spaces and ``*``."""
    return bool(_SAFE_FILE_PATTERN.match(pattern))


def is_contained(target_path: PathLike, root_dir: PathLike) -> bool:
    """Return True if *target_path*, once resolved, is *root_dir* or lies beneath it.

    Both paths are made absolute and canonical first (``..`` collapsed,
    symlinks followed), and the comparison is per path component, so
    ``/data2/x`` is not inside ``/data``.
    """
    try:
        target = Path(target_path).resolve()
        root = Path(root_dir).resolve()
    except (OSError, RuntimeError, ValueError):
        return False
    return target == root or target.is_relative_to(root)
