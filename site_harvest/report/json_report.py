# site_harvest/report/json_report.py

"""
Генерация JSON-артефакта карты сайта для проекта SiteHarvest.

Формат файла: ``{"baseUrl": ..., "crawledAt": ISO-8601, "pages": [...]}``.
"""
import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Sequence

from site_harvest.utils import iso_now


def site_map_document(
    base_url: str,
    pages: Sequence[Mapping[str, Any]],
    crawled_at: Optional[str] = None,
) -> Dict[str, Any]:
    """Собирает документ карты сайта из записей страниц (ключи в camelCase)."""
    return {
        "baseUrl": base_url,
        "crawledAt": crawled_at or iso_now(),
        "pages": [dict(p) for p in pages],
    }


def render_json(document: Mapping[str, Any], output_path: Path | str, pretty: bool = True) -> Path:
    """
    Сохраняет документ карты сайта в формате JSON по указанному пути.

    :param document: результат site_map_document()
    :param output_path: путь к JSON-файлу
    :param pretty: отступы в 2 пробела
    :return: Path сохранённого файла
    """
    output = Path(output_path)
    output.parent.mkdir(parents=True, exist_ok=True)

    with output.open("w", encoding="utf-8") as f:
        json.dump(document, f, ensure_ascii=False, indent=2 if pretty else None)

    return output
