# File: site_harvest/report/html_report.py
"""site_harvest.report.html_report: HTML-отчёт по карте сайта с помощью Jinja2."""

from __future__ import annotations

from collections import Counter
from pathlib import Path
from typing import Any, Mapping, Optional, Union

from jinja2 import Environment, FileSystemLoader, select_autoescape

TEMPLATE_NAME = "site_map.html.j2"
DEFAULT_TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def render_html(
    document: Mapping[str, Any],
    output_path: Union[Path, str],
    template_dir: Optional[Union[Path, str]] = None,
) -> Path:
    """Рендерит HTML-отчёт по карте сайта и сохраняет его по указанному пути.

    Args:
        document: результат ``site_map_document()``.
        output_path: путь к итоговому HTML-файлу.
        template_dir: каталог с шаблоном ``site_map.html.j2``;
            по умолчанию используется шаблон из пакета.

    Returns:
        Path до сохранённого HTML-файла.
    """
    template_dir = Path(template_dir) if template_dir is not None else DEFAULT_TEMPLATE_DIR
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)

    env = Environment(
        loader=FileSystemLoader(str(template_dir)),
        autoescape=select_autoescape(["html", "xml", "j2"]),
    )
    template = env.get_template(TEMPLATE_NAME)

    pages = list(document.get("pages", []))
    depths = Counter(p.get("depth", 0) for p in pages)
    context: dict[str, Any] = {
        "base_url": document.get("baseUrl", ""),
        "crawled_at": document.get("crawledAt", ""),
        "pages": pages,
        "depths": sorted(depths.items()),
    }

    html_content = template.render(**context)
    output_path.write_text(html_content, encoding="utf-8")

    return output_path
