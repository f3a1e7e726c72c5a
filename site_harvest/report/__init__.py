# File: site_harvest/report/__init__.py
"""site_harvest.report: Отчёты по карте сайта (JSON и HTML), используемые CLI и Engine."""

from __future__ import annotations

from site_harvest.report.html_report import render_html
from site_harvest.report.json_report import render_json, site_map_document

__all__ = ["render_json", "render_html", "site_map_document"]
