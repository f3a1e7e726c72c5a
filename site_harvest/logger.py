# === FILE: site_harvest/logger.py ===
"""Logging setup for SiteHarvest.

Все модули пишут в один логгер ``SiteHarvest``::

    from site_harvest.logger import logger
    logger.info("Batch started")

Консольный вывод идёт в stderr: stdout у CLI занят JSON-результатом.
"""
from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Final, Iterable, Optional, Union

DEFAULT_FORMAT: Final[str] = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
LOGGER_NAME: Final[str] = "SiteHarvest"
# aiohttp logs every request at DEBUG/INFO
NOISY_LOGGERS: Final[tuple] = ("aiohttp.access", "aiohttp.client", "aiohttp.internal")

LevelT = Union[int, str]


def _build_handlers(log_file: Optional[Union[str, Path]], fmt: str) -> Iterable[logging.Handler]:
    formatter = logging.Formatter(fmt)
    console = logging.StreamHandler(sys.stderr)
    console.setFormatter(formatter)
    yield console
    if log_file is not None:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        rotating = RotatingFileHandler(path, maxBytes=2 * 1024 * 1024, backupCount=5, encoding="utf-8")
        rotating.setFormatter(formatter)
        yield rotating


def init_logging(
    level: LevelT = "INFO",
    log_file: Optional[Union[str, Path]] = None,
    log_format: str = DEFAULT_FORMAT,
    library_level: LevelT = "WARNING",
) -> logging.Logger:
    """Настроить логгер проекта заново.

    Старые обработчики закрываются и заменяются: повторный вызов из CLI
    не дублирует строки. ``library_level`` применяется к логгерам aiohttp.
    """
    lg = logging.getLogger(LOGGER_NAME)
    for handler in list(lg.handlers):
        lg.removeHandler(handler)
        handler.close()
    for handler in _build_handlers(log_file, log_format):
        lg.addHandler(handler)
    lg.setLevel(level)
    lg.propagate = False

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(library_level)
    return lg


logger: logging.Logger = init_logging()

__all__ = ["logger", "init_logging", "LOGGER_NAME", "DEFAULT_FORMAT"]
