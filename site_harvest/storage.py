# site_harvest/storage.py
"""
Модуль хранения артефактов SiteHarvest (Markdown, JSON) в каталоге данных.

Каждая запись сначала проходит проверку ``is_contained``: путь, выходящий
за пределы корня, отклоняется до любой операции с файловой системой.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Sequence, Union

from site_harvest.crawler.models import FileInfo
from site_harvest.errors import InvalidInputError, PathEscapeError
from site_harvest.security import is_contained, is_safe_file_pattern, wildcard_match

__all__: Sequence[str] = ("ContentStore",)

logger = logging.getLogger("SiteHarvest")


def _iso(ts: float) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ContentStore:
    """Файловое хранилище с корнем ``root``; подкаталоги создаются по требованию."""

    def __init__(self, root: Union[str, Path]) -> None:
        self.root = Path(root)

    def resolve(self, relative_path: Union[str, Path]) -> Path:
        """Абсолютный путь внутри корня или PathEscapeError."""
        target = self.root / relative_path
        if not is_contained(target, self.root):
            logger.warning("Rejected write outside data dir: %s", relative_path)
            raise PathEscapeError(str(relative_path))
        return target.resolve()

    async def write(self, relative_path: Union[str, Path], content: Union[str, bytes]) -> Path:
        """Записывает *content* (str в UTF-8 или bytes) и возвращает итоговый путь."""
        target = self.resolve(relative_path)
        data = content.encode("utf-8") if isinstance(content, str) else content

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        logger.info("Saved %d bytes to %s", len(data), target)
        return target

    def list(self, pattern: Optional[str] = None, include_metadata: bool = True) -> List[FileInfo]:
        """
        Список файлов верхнего уровня каталога данных, отсортированный по имени.

        ``pattern`` сопоставляется с именем целиком (``*`` = любая подстрока);
        допускаются только буквы, цифры, пробел и ``_-.*``.
        """
        pattern = (pattern or "").strip()
        if pattern and not is_safe_file_pattern(pattern):
            raise InvalidInputError(f"Unsupported characters in file pattern: {pattern!r}", "INVALID_PATTERN")
        if not self.root.is_dir():
            return []

        files: List[FileInfo] = []
        for entry in sorted(self.root.iterdir(), key=lambda p: p.name):
            if not entry.is_file():
                continue
            if pattern and not wildcard_match(entry.name, pattern):
                continue
            info = FileInfo(name=entry.name, path=entry.name)
            if include_metadata:
                try:
                    st = entry.stat()
                except OSError as exc:
                    logger.debug("Cannot stat %s: %s", entry, exc)
                else:
                    created = getattr(st, "st_birthtime", st.st_ctime)
                    info = FileInfo(
                        name=entry.name,
                        path=entry.name,
                        size=st.st_size,
                        modified_at=_iso(st.st_mtime),
                        created_at=_iso(created),
                    )
            files.append(info)
        return files

    @staticmethod
    def total_size(files: Sequence[FileInfo]) -> int:
        return sum(f.size or 0 for f in files)
