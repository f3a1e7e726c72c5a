# File: tests/test_reports.py
import json

from site_harvest.report import render_html, render_json, site_map_document

PAGES = [
    {"url": "https://site.test/", "title": "<Home>", "depth": 0,
     "internalLinks": ["https://site.test/a"], "externalLinks": []},
    {"url": "https://site.test/a", "depth": 1, "internalLinks": [], "externalLinks": ["https://x.org/"]},
]


def test_site_map_document_shape():
    doc = site_map_document("https://site.test/", PAGES, crawled_at="2024-01-01T00:00:00.000Z")
    assert doc == {"baseUrl": "https://site.test/", "crawledAt": "2024-01-01T00:00:00.000Z", "pages": PAGES}
    assert site_map_document("https://site.test/", [])["crawledAt"].endswith("Z")


def test_render_json(tmp_path):
    doc = site_map_document("https://site.test/", PAGES)
    out = render_json(doc, tmp_path / "reports" / "map.json")
    assert out.exists()
    text = out.read_text(encoding="utf-8")
    assert json.loads(text) == doc
    assert "\n  " in text

    compact = render_json(doc, tmp_path / "compact.json", pretty=False)
    assert "\n" not in compact.read_text(encoding="utf-8")


def test_render_html_escapes_and_counts(tmp_path):
    doc = site_map_document("https://site.test/", PAGES)
    out = render_html(doc, tmp_path / "map.html")
    html = out.read_text(encoding="utf-8")
    assert "&lt;Home&gt;" in html and "<Home>" not in html
    assert "Глубина 0: 1" in html
    assert "Глубина 1: 1" in html
    assert "https://site.test/a" in html


def test_render_html_custom_template(tmp_path):
    tpl_dir = tmp_path / "tpl"
    tpl_dir.mkdir()
    (tpl_dir / "site_map.html.j2").write_text("{{ base_url }}|{{ pages|length }}", encoding="utf-8")
    out = render_html(site_map_document("https://site.test/", PAGES), tmp_path / "custom.html", tpl_dir)
    assert out.read_text(encoding="utf-8") == "https://site.test/|2"
