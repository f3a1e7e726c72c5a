# === FILE: site_harvest/config.py ===
"""
Модуль для загрузки и валидации конфигурации SiteHarvest.
Используется Pydantic для описания схемы и проверки данных.
"""
from __future__ import annotations

import errno
import json
import os
from pathlib import Path
from typing import Any, Dict, List, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator


class ScraperConfig(BaseModel):
    """Настройки загрузки, обхода и сохранения результатов."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    user_agent: str = Field("SiteHarvestBot/1.0", min_length=1, description="Заголовок User-Agent.")
    timeout: float = Field(30.0, gt=0, le=60, description="Таймаут на один запрос (секунд).")
    retry_times: int = Field(2, ge=0, le=5, description="Число повторных попыток при 429/5xx и сетевых ошибках.")
    retry_backoff: float = Field(1.0, ge=0, description="Базовая пауза экспоненциального backoff (секунд).")
    batch_delay: float = Field(1.0, ge=0, description="Пауза между пачками пакетной загрузки (секунд).")
    link_delay: float = Field(0.2, ge=0, description="Пауза между страницами при обходе сайта (секунд).")
    max_concurrent: int = Field(3, ge=1, le=15, description="Размер пачки пакетной загрузки.")
    max_depth: int = Field(2, ge=1, le=5, description="Глубина обхода по умолчанию.")
    max_pages: int = Field(50, ge=1, le=200, description="Лимит страниц обхода по умолчанию.")
    data_dir: Path = Field(Path("data"), description="Каталог для сохранённых артефактов.")
    allowed_domains: List[str] = Field(
        default_factory=list, description="Разрешённые домены; пустой список разрешает все."
    )
    headers: Dict[str, str] = Field(default_factory=dict, description="Дополнительные HTTP-заголовки.")

    @field_validator("allowed_domains", mode="before")
    def _normalize_domains(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.split(",")
        if isinstance(v, (list, tuple)):
            return [str(d).strip().lower() for d in v if str(d).strip()]
        return v


_DEFAULT_CFG = Path("configs/default.yaml")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise ValueError(f"Неправильный YAML в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень YAML должен быть mapping, получено {type(data).__name__}")
    return data


def _read_json(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8")) or {}
    except json.JSONDecodeError as exc:
        raise ValueError(f"Неправильный JSON в {path}: {exc}") from exc
    if not isinstance(data, dict):
        raise TypeError(f"Верхний уровень JSON должен быть mapping, получено {type(data).__name__}")
    return data


def load_config(path: Union[str, Path, None]) -> ScraperConfig:
    """
    Читает YAML или JSON и возвращает проверенный объект ScraperConfig.
    Без явного пути читает configs/default.yaml, а при его отсутствии
    возвращает значения по умолчанию. Явно указанный, но отсутствующий
    файл приводит к FileNotFoundError.
    """
    if path is None:
        if not _DEFAULT_CFG.exists():
            return ScraperConfig()
        path_obj = _DEFAULT_CFG
    else:
        path_obj = Path(path).expanduser().resolve()
        if not path_obj.is_file():
            raise FileNotFoundError(errno.ENOENT, os.strerror(errno.ENOENT), str(path_obj))

    suffix = path_obj.suffix.lower()
    if suffix in (".yaml", ".yml"):
        data = _read_yaml(path_obj)
    elif suffix == ".json":
        data = _read_json(path_obj)
    else:
        raise ValueError(f"Неподдерживаемый формат конфига: {suffix}")

    try:
        return ScraperConfig(**data)
    except ValidationError:
        raise
