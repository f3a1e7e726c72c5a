# File: site_harvest/utils.py
"""site_harvest.utils: Утилиты для URL, имён файлов, отметок времени и отмены операций."""

from __future__ import annotations

import asyncio
import inspect
import re
from datetime import datetime, timezone
from typing import Any, Callable, Collection, Optional, Sequence
from urllib.parse import urldefrag, urlparse

from site_harvest.errors import ScrapeCancelledError
from site_harvest.logger import logger

__all__: Sequence[str] = (
    "CancelToken",
    "pause",
    "notify",
    "is_http_url",
    "extract_hostname",
    "strip_fragment",
    "is_url_allowed",
    "sanitize_file_name",
    "timestamp_slug",
    "iso_now",
)

_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9\-_.]")


class CancelToken:
    """Флаг отмены, который проверяется в каждой точке ожидания.

    ``sleep()`` заменяет ``asyncio.sleep`` для пауз между запросами:
    при отмене ожидание прерывается сразу же.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self, url: Optional[str] = None) -> None:
        if self._event.is_set():
            raise ScrapeCancelledError(url=url)

    async def sleep(self, delay: float) -> None:
        self.raise_if_cancelled()
        if delay <= 0:
            return
        try:
            await asyncio.wait_for(self._event.wait(), timeout=delay)
        except asyncio.TimeoutError:
            return
        raise ScrapeCancelledError()


async def pause(delay: float, cancel: Optional[CancelToken] = None) -> None:
    """Пауза с учётом отмены; без токена это обычный asyncio.sleep."""
    if cancel is not None:
        await cancel.sleep(delay)
    elif delay > 0:
        await asyncio.sleep(delay)


async def notify(callback: Optional[Callable[..., Any]], *args: Any) -> None:
    """Вызывает обработчик прогресса; корутину дожидается."""
    if callback is None:
        return
    result = callback(*args)
    if inspect.isawaitable(result):
        await result


def is_http_url(url: str) -> bool:
    """Проверяет, что строка является абсолютным http(s) URL с хостом."""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.hostname)


def extract_hostname(url: str) -> str:
    """Возвращает имя хоста в нижнем регистре без порта ('' при ошибке разбора)."""
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def strip_fragment(url: str) -> str:
    """Убирает #fragment: /page#a и /page считаются одной страницей."""
    return urldefrag(url).url


def is_url_allowed(url: str, allowed_domains: Collection[str]) -> bool:
    """Разрешён ли хост URL списком доменов (включая поддомены). Пустой список разрешает всё."""
    if not allowed_domains:
        return True
    host = extract_hostname(url)
    if not host:
        return False
    allowed = any(host == d or host.endswith(f".{d}") for d in allowed_domains)
    if not allowed:
        logger.debug("Host %s is outside allowed domains", host)
    return allowed


def sanitize_file_name(file_name: str) -> str:
    """Заменяет все символы вне [a-zA-Z0-9-_.] на подчёркивание."""
    return _UNSAFE_FILENAME_CHARS.sub("_", file_name)


def iso_now() -> str:
    """Текущее время UTC в ISO-8601 с миллисекундами и суффиксом Z."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def timestamp_slug() -> str:
    """Отметка времени для имён файлов: ':' и '.' заменены на '-'."""
    return iso_now().replace(":", "-").replace(".", "-")
