# === FILE: site_harvest/cli.py ===
#!/usr/bin/env python3
"""
Точка входа SiteHarvest для командной строки.

Команды:
  scrape    Загрузить страницу, извлечь данные и Markdown
  batch     Загрузить несколько страниц пачками
  crawl     Обойти сайт и построить карту страниц
  links     Извлечь ссылки страницы
  convert   Очистить HTML из файла и преобразовать в Markdown
  list      Показать сохранённые артефакты
  config    Показать текущую конфигурацию

Общие опции:
  --config PATH       Путь к YAML/JSON-конфигу (default: configs/default.yaml, если есть)
  --limit INT         Макс. число страниц обхода (override max_pages)
  --log-level LEVEL   Уровень логирования (DEBUG, INFO, ...)
  --log-file PATH     Файл для логов (вдобавок к stderr)
  --log-format FORMAT Формат логирования

Команда crawl опции:
  --json PATH          Сохранить карту сайта в JSON-файл
  --html PATH          Сохранить HTML-отчёт
  --template DIR       Папка с шаблоном site_map.html.j2
  --pretty             Преформатировать JSON-вывод (отступ 2)
  --crawl-timeout SEC  Таймаут всего обхода (секунд)

Пример:
  site_harvest crawl https://example.com --max-depth 2 --json sitemap.json --pretty
"""
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click

from site_harvest import __version__
from site_harvest.config import load_config
from site_harvest.engine import Engine
from site_harvest.logger import init_logging
from site_harvest.report.html_report import render_html
from site_harvest.report.json_report import render_json, site_map_document

CONTEXT_SETTINGS = dict(help_option_names=["--help"])


def print_error(message: str):
    click.secho(message, fg='red', err=True)
    sys.exit(1)


def run_operation(cfg, operation: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
    return Engine.run_sync(cfg, operation, payload, timeout=timeout)


def _execute(ctx, operation: str, payload: Dict[str, Any], timeout: Optional[float] = None) -> Dict[str, Any]:
    cfg = ctx.obj['config']
    try:
        output = run_operation(cfg, operation, payload, timeout)
    except asyncio.TimeoutError:
        print_error(f'Операция {operation} не завершена за {timeout} секунд')
    except KeyboardInterrupt:
        print_error('Операция прервана пользователем')
    if output.get('status') == 'failed':
        print_error(f"Ошибка {operation}: {output.get('errorMessage')} ({output.get('errorCode')})")
    return output


def _echo(data: Any, pretty: bool) -> None:
    indent = 2 if pretty else None
    click.echo(json.dumps(data, ensure_ascii=False, indent=indent))


pretty_option = click.option('--pretty', is_flag=True, help='Преформатировать JSON-вывод (отступ 2)')


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(__version__, '--version', '-v', message='SiteHarvest, version %(version)s')
@click.option(
    '--config', '-c', 'config_path',
    default=None,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help='Путь к файлу конфигурации YAML/JSON.'
)
@click.option(
    '--limit', '-l', 'limit',
    type=click.IntRange(1, 200),
    default=None,
    help='Макс. число страниц обхода (override max_pages)'
)
@click.option(
    '--log-level', 'log_level',
    default='INFO', show_default=True,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']),
    help='Уровень логирования'
)
@click.option(
    '--log-file', 'log_file',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Путь к файлу логов; консольный вывод логов всегда идёт в stderr'
)
@click.option(
    '--log-format', 'log_format',
    default='%(asctime)s %(levelname)s %(message)s',
    show_default=True,
    help='Строка формата для логов'
)
@click.pass_context
def cli(ctx, config_path, limit, log_level, log_file, log_format):
    """Группа команд SiteHarvest CLI."""
    init_logging(
        level=log_level,
        log_file=str(log_file) if log_file else None,
        log_format=log_format
    )
    try:
        cfg = load_config(config_path)
    except Exception as e:
        print_error(f'Ошибка загрузки конфигурации: {e}')
    if limit is not None:
        cfg = cfg.model_copy(update={'max_pages': limit})
    ctx.ensure_object(dict)
    ctx.obj['config'] = cfg


@cli.command('scrape', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--selector', '-s', default=None, help='CSS-селектор извлекаемых элементов')
@click.option('--attr', '-a', 'attributes', multiple=True, help='Атрибут выбранных элементов (можно несколько)')
@click.option('--save-markdown', is_flag=True, help='Сохранить Markdown в каталог данных')
@click.option('--file-name', default=None, help='Имя Markdown-файла')
@click.option('--images', is_flag=True, help='Извлечь изображения')
@click.option('--structured', is_flag=True, help='Извлечь JSON-LD и microdata')
@click.option('--language', is_flag=True, help='Определить язык страницы')
@pretty_option
@click.pass_context
def scrape(ctx, url, selector, attributes, save_markdown, file_name, images, structured, language, pretty):
    """Загрузить одну страницу."""
    payload = {
        'url': url,
        'selector': selector,
        'extractAttributes': list(attributes),
        'saveMarkdown': save_markdown,
        'markdownFileName': file_name,
        'includeImages': images,
        'extractStructuredData': structured,
        'languageDetection': language,
    }
    _echo(_execute(ctx, 'web-scraper', payload), pretty)


@cli.command('batch', context_settings=CONTEXT_SETTINGS)
@click.argument('urls', nargs=-1, required=True)
@click.option('--selector', '-s', default=None, help='CSS-селектор для каждой страницы')
@click.option('--max-concurrent', type=click.IntRange(1, 15), default=None, help='Размер пачки')
@click.option('--save', is_flag=True, help='Сохранить результаты в JSON')
@click.option('--base-name', default='batch_scrape', show_default=True, help='Базовое имя JSON-файла')
@pretty_option
@click.pass_context
def batch(ctx, urls, selector, max_concurrent, save, base_name, pretty):
    """Загрузить до 10 страниц пачками."""
    cfg = ctx.obj['config']
    payload = {
        'urls': list(urls),
        'selector': selector,
        'maxConcurrent': max_concurrent or cfg.max_concurrent,
        'saveResults': save,
        'baseFileName': base_name,
    }
    _echo(_execute(ctx, 'batch-web-scraper', payload), pretty)


@cli.command('crawl', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option('--max-depth', type=click.IntRange(1, 5), default=None, help='Глубина обхода')
@click.option('--max-pages', type=click.IntRange(1, 200), default=None, help='Лимит страниц')
@click.option('--include-external', is_flag=True, help='Сохранять внешние ссылки')
@click.option('--save', is_flag=True, help='Сохранить карту в каталог данных')
@click.option(
    '--json', '-j', 'json_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить карту сайта в JSON-файл'
)
@click.option(
    '--html', 'html_output',
    default=None,
    type=click.Path(writable=True, dir_okay=False, path_type=Path),
    help='Сохранить HTML-отчёт в файл'
)
@click.option(
    '--template', '-t', 'template_dir',
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help='Папка с Jinja2-шаблоном site_map.html.j2'
)
@pretty_option
@click.option(
    '--crawl-timeout', 'crawl_timeout',
    type=float,
    default=None,
    help='Таймаут всего обхода (секунд)'
)
@click.pass_context
def crawl(ctx, url, max_depth, max_pages, include_external, save, json_output, html_output,
          template_dir, pretty, crawl_timeout):
    """Обойти сайт и построить карту страниц."""
    cfg = ctx.obj['config']
    payload = {
        'url': url,
        'maxDepth': max_depth or cfg.max_depth,
        'maxPages': max_pages or cfg.max_pages,
        'includeExternal': include_external,
        'saveMap': save,
    }
    output = _execute(ctx, 'site-map-extractor', payload, crawl_timeout)

    # Без --json и --html печатаем в stdout
    if not json_output and not html_output:
        _echo(output, pretty)
        return

    document = site_map_document(output.get('baseUrl', url), output.get('pages', []))

    if json_output:
        try:
            saved_json = render_json(document, json_output, pretty=pretty)
            click.echo(f'JSON report: {saved_json}')
        except Exception as e:
            print_error(f'Ошибка при сохранении JSON: {e}')

    if html_output:
        try:
            saved_html = render_html(document, html_output, template_dir)
            click.echo(f'HTML report: {saved_html}')
        except Exception as e:
            print_error(f'Ошибка при сохранении HTML: {e}')


@cli.command('links', context_settings=CONTEXT_SETTINGS)
@click.argument('url')
@click.option(
    '--type', 'link_types',
    multiple=True,
    type=click.Choice(['all', 'internal', 'external']),
    help='Типы ссылок (можно несколько)'
)
@click.option('--no-anchors', is_flag=True, help='Не включать текст ссылок')
@click.option('--filter', '-f', 'filters', multiple=True, help='Фильтр href с * (можно несколько)')
@pretty_option
@click.pass_context
def links(ctx, url, link_types, no_anchors, filters, pretty):
    """Извлечь ссылки страницы."""
    payload = {
        'url': url,
        'linkTypes': list(link_types) or ['all'],
        'includeAnchors': not no_anchors,
        'filterPatterns': list(filters),
    }
    _echo(_execute(ctx, 'link-extractor', payload), pretty)


@cli.command('convert', context_settings=CONTEXT_SETTINGS)
@click.argument('source', type=click.File('r', encoding='utf-8'), default='-')
@click.option('--save', is_flag=True, help='Сохранить Markdown в каталог данных')
@click.option('--file-name', default=None, help='Имя Markdown-файла')
@pretty_option
@click.pass_context
def convert(ctx, source, save, file_name, pretty):
    """Очистить HTML из файла (или stdin) и преобразовать в Markdown."""
    payload = {'html': source.read(), 'saveToFile': save, 'fileName': file_name}
    _echo(_execute(ctx, 'html-to-markdown', payload), pretty)


@cli.command('list', context_settings=CONTEXT_SETTINGS)
@click.option('--pattern', '-p', default=None, help="Шаблон имени, например '*.md'")
@click.option('--no-metadata', is_flag=True, help='Без размера и дат')
@pretty_option
@click.pass_context
def list_content(ctx, pattern, no_metadata, pretty):
    """Показать сохранённые артефакты."""
    payload = {'pattern': pattern, 'includeMetadata': not no_metadata}
    _echo(_execute(ctx, 'list-scraped-content', payload), pretty)


@cli.command('config', context_settings=CONTEXT_SETTINGS)
@click.pass_context
def show_config(ctx):
    """Показать текущую конфигурацию в JSON."""
    cfg = ctx.obj['config']
    click.echo(cfg.model_dump_json(indent=2))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
