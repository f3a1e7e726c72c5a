# File: tests/test_cli.py
"""Тесты для CLI (`site_harvest.cli`) с использованием click.testing.CliRunner.
Проверяют команды `scrape`, `crawl`, `convert`, `config`, `--version`, а также обработку ошибок.
"""
import asyncio
import importlib
import json

import pytest
from click.testing import CliRunner

cli_module = importlib.import_module("site_harvest.cli")
from site_harvest.cli import cli
from site_harvest.logger import init_logging

SITE_MAP = {
    "status": "success",
    "baseUrl": "https://example.com/",
    "pages": [
        {"url": "https://example.com/", "title": "Home", "depth": 0,
         "internalLinks": ["https://example.com/a"], "externalLinks": []},
        {"url": "https://example.com/a", "title": "A", "depth": 1, "internalLinks": [], "externalLinks": []},
    ],
    "totalPages": 2,
}


@pytest.fixture(autouse=True)
def isolated_cwd(tmp_path, monkeypatch):
    """Запуск из пустого каталога: configs/default.yaml не подхватывается."""
    monkeypatch.chdir(tmp_path)
    yield tmp_path
    # CliRunner подменяет stderr; возвращаем обработчик логов на настоящий поток
    init_logging()


@pytest.fixture()
def calls(monkeypatch):
    """Патчим run_operation: запоминаем вызовы и отдаём заготовленные ответы."""
    recorded = []

    def fake_run(cfg, operation, payload, timeout=None):
        recorded.append((cfg, operation, payload, timeout))
        if operation == "site-map-extractor":
            return SITE_MAP
        return {"status": "success", "operation": operation}

    monkeypatch.setattr(cli_module, "run_operation", fake_run)
    return recorded


def test_version_option():
    runner = CliRunner()
    result = runner.invoke(cli, ["--version"])
    assert result.exit_code == 0
    assert "SiteHarvest" in result.output


def test_help_points_console_logs_to_stderr():
    result = CliRunner().invoke(cli, ["--help"])
    assert result.exit_code == 0
    assert "stderr" in result.output
    assert "stdout" not in result.output


def test_show_config(tmp_path):
    cfg_file = tmp_path / "custom.yaml"
    cfg_file.write_text("max_depth: 4\nuser_agent: Agent/1.0\n", encoding="utf-8")

    runner = CliRunner()
    result = runner.invoke(cli, ["--config", str(cfg_file), "--limit", "9", "config"])
    assert result.exit_code == 0
    data = json.loads(result.output)
    assert data["max_depth"] == 4
    assert data["user_agent"] == "Agent/1.0"
    assert data["max_pages"] == 9


def test_broken_config_is_reported(tmp_path):
    cfg_file = tmp_path / "broken.yaml"
    cfg_file.write_text("max_depth: 99\n", encoding="utf-8")
    result = CliRunner().invoke(cli, ["--config", str(cfg_file), "config"])
    assert result.exit_code == 1
    assert "Ошибка загрузки конфигурации" in result.output


def test_scrape_builds_payload(calls):
    runner = CliRunner()
    result = runner.invoke(
        cli,
        ["scrape", "https://example.com/", "-s", "h1", "-a", "href", "-a", "title", "--images", "--pretty"],
    )
    assert result.exit_code == 0
    _, operation, payload, timeout = calls[0]
    assert operation == "web-scraper"
    assert payload["url"] == "https://example.com/"
    assert payload["selector"] == "h1"
    assert payload["extractAttributes"] == ["href", "title"]
    assert payload["includeImages"] is True
    assert payload["saveMarkdown"] is False
    assert timeout is None
    assert json.loads(result.output) == {"status": "success", "operation": "web-scraper"}


def test_batch_uses_config_default_concurrency(calls):
    result = CliRunner().invoke(cli, ["batch", "https://a.test/", "https://b.test/", "--save"])
    assert result.exit_code == 0
    _, operation, payload, _ = calls[0]
    assert operation == "batch-web-scraper"
    assert payload["urls"] == ["https://a.test/", "https://b.test/"]
    assert payload["maxConcurrent"] == 3
    assert payload["saveResults"] is True


def test_crawl_stdout(calls):
    result = CliRunner().invoke(cli, ["--limit", "20", "crawl", "https://example.com/", "--max-depth", "3"])
    assert result.exit_code == 0
    cfg, operation, payload, _ = calls[0]
    assert operation == "site-map-extractor"
    assert payload["maxDepth"] == 3
    assert payload["maxPages"] == 20
    assert cfg.max_pages == 20
    assert json.loads(result.output)["totalPages"] == 2


def test_crawl_reports(calls, tmp_path):
    json_path = tmp_path / "out" / "map.json"
    html_path = tmp_path / "out" / "map.html"
    result = CliRunner().invoke(
        cli,
        ["crawl", "https://example.com/", "--json", str(json_path), "--html", str(html_path), "--pretty"],
    )
    assert result.exit_code == 0
    assert f"JSON report: {json_path}" in result.output
    assert f"HTML report: {html_path}" in result.output

    document = json.loads(json_path.read_text(encoding="utf-8"))
    assert document["baseUrl"] == "https://example.com/"
    assert [p["url"] for p in document["pages"]] == ["https://example.com/", "https://example.com/a"]
    assert "crawledAt" in document
    assert "https://example.com/a" in html_path.read_text(encoding="utf-8")


def test_crawl_timeout(monkeypatch):
    def fake_timeout(cfg, operation, payload, timeout=None):
        raise asyncio.TimeoutError

    monkeypatch.setattr(cli_module, "run_operation", fake_timeout)
    result = CliRunner().invoke(cli, ["crawl", "https://example.com/", "--crawl-timeout", "0.5"])
    assert result.exit_code == 1
    assert "не завершена за 0.5 секунд" in result.output


def test_failed_operation_exits_nonzero(monkeypatch):
    def fake_failed(cfg, operation, payload, timeout=None):
        return {"status": "failed", "errorMessage": "HTTP 404: Not Found", "errorCode": "HTTP_ERROR"}

    monkeypatch.setattr(cli_module, "run_operation", fake_failed)
    result = CliRunner().invoke(cli, ["scrape", "https://example.com/missing"])
    assert result.exit_code == 1
    assert "HTTP 404: Not Found (HTTP_ERROR)" in result.output


def test_convert_reads_file(calls, tmp_path):
    source = tmp_path / "page.html"
    source.write_text("<h1>Привет</h1>", encoding="utf-8")
    result = CliRunner().invoke(cli, ["convert", str(source), "--save", "--file-name", "page.md"])
    assert result.exit_code == 0
    _, operation, payload, _ = calls[0]
    assert operation == "html-to-markdown"
    assert payload == {"html": "<h1>Привет</h1>", "saveToFile": True, "fileName": "page.md"}


def test_convert_reads_stdin(calls):
    result = CliRunner().invoke(cli, ["convert"], input="<p>stdin</p>")
    assert result.exit_code == 0
    assert calls[0][2]["html"] == "<p>stdin</p>"


def test_links_and_list_payloads(calls):
    runner = CliRunner()
    assert runner.invoke(cli, ["links", "https://example.com/", "--type", "external", "-f", "docs"]).exit_code == 0
    assert runner.invoke(cli, ["list", "-p", "*.md", "--no-metadata"]).exit_code == 0
    assert calls[0][1:3] == (
        "link-extractor",
        {"url": "https://example.com/", "linkTypes": ["external"], "includeAnchors": True, "filterPatterns": ["docs"]},
    )
    assert calls[1][1:3] == ("list-scraped-content", {"pattern": "*.md", "includeMetadata": False})


def test_end_to_end_convert_without_patching(tmp_path):
    """Без подмены: html-to-markdown не требует сети и пишет в data_dir."""
    result = CliRunner().invoke(
        cli, ["--log-level", "ERROR", "convert", "--save", "--file-name", "e2e.md"], input="<h2>E2E</h2><p>ok</p>"
    )
    assert result.exit_code == 0
    output = json.loads(result.output)
    assert output["markdown"] == "## E2E\\n\\nok"
    assert (tmp_path / "data" / "e2e.md").read_text(encoding="utf-8") == "## E2E\n\nok"
