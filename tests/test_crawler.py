# File: tests/test_crawler.py
from __future__ import annotations

import asyncio

import pytest
import pytest_asyncio
from aiohttp import web

from site_harvest.crawler.crawler import SiteCrawler
from site_harvest.crawler.fetcher import Fetcher, SessionPool
from site_harvest.crawler.scraper import PageScraper
from site_harvest.errors import InvalidInputError, ScrapeCancelledError
from site_harvest.parser import html_parser
from site_harvest.utils import CancelToken

ROOT = "https://site.test/"


def _doc(title: str, *hrefs: str) -> str:
    links = "".join(f'<a href="{h}">{h}</a>' for h in hrefs)
    return f"<html><head><title>{title}</title></head><body>{links}</body></html>"


SITE = {
    ROOT: _doc("Home", "/a", "/b", "/a#frag", "https://ext.org/x", "mailto:me@site.test", "/"),
    f"{ROOT}a": _doc("A", "/", "/c", "/b"),
    f"{ROOT}b": _doc("B", "/missing"),
    f"{ROOT}c": _doc("C", "/d", "javascript:void(0)"),
    f"{ROOT}d": _doc("D"),
}


@pytest.fixture()
def make_crawler(make_scraper, fast_config):
    def _make(pages=SITE, config=None):
        scraper, fetcher = make_scraper(pages, config=config)
        return SiteCrawler(scraper, config or fast_config), fetcher

    return _make


# --------------------------------------------------------------------------- #
#                             In-memory site                                  #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_bfs_order_depths_and_skipped_errors(make_crawler):
    crawler, fetcher = make_crawler()
    result = await crawler.crawl(ROOT, max_depth=5, max_pages=50)

    assert [p.url for p in result.pages] == [ROOT, f"{ROOT}a", f"{ROOT}b", f"{ROOT}c", f"{ROOT}d"]
    assert [p.depth for p in result.pages] == [0, 1, 1, 2, 3]
    assert [p.title for p in result.pages] == ["Home", "A", "B", "C", "D"]
    assert result.total_pages == 5
    assert result.base_url == ROOT
    # the 404 page was requested but left out of the map
    assert f"{ROOT}missing" in fetcher.calls
    # cycles and fragments never cause a second fetch
    assert len(fetcher.calls) == len(set(fetcher.calls))


@pytest.mark.asyncio()
async def test_titles_come_from_the_fetch_time_parse(make_crawler, monkeypatch):
    pages = {
        ROOT: _doc("Home", "/untitled"),
        f"{ROOT}untitled": "<html><body><h1>Heading only</h1></body></html>",
    }
    crawler, _ = make_crawler(pages)

    def _no_reparse(*args, **kwargs):
        raise AssertionError("raw document parsed again")

    monkeypatch.setattr(html_parser, "BeautifulSoup", _no_reparse)
    result = await crawler.crawl(ROOT, max_depth=1)
    assert [p.title for p in result.pages] == ["Home", "Heading only"]


@pytest.mark.asyncio()
async def test_internal_links_are_resolved_and_deduplicated(make_crawler):
    crawler, _ = make_crawler()
    result = await crawler.crawl(ROOT, max_depth=1)
    root = result.pages[0]
    assert root.internal_links == (f"{ROOT}a", f"{ROOT}b", ROOT)
    assert root.external_links == ()


@pytest.mark.asyncio()
async def test_external_links_only_on_request(make_crawler):
    crawler, fetcher = make_crawler()
    result = await crawler.crawl(ROOT, max_depth=1, include_external=True)
    assert result.pages[0].external_links == ("https://ext.org/x",)
    assert "https://ext.org/x" not in fetcher.calls


@pytest.mark.asyncio()
async def test_depth_limit(make_crawler):
    crawler, fetcher = make_crawler()
    result = await crawler.crawl(ROOT, max_depth=1)
    assert [p.url for p in result.pages] == [ROOT, f"{ROOT}a", f"{ROOT}b"]
    assert fetcher.calls == [ROOT, f"{ROOT}a", f"{ROOT}b"]
    assert max(p.depth for p in result.pages) == 1


@pytest.mark.asyncio()
async def test_page_limit(make_crawler):
    crawler, fetcher = make_crawler()
    result = await crawler.crawl(ROOT, max_depth=5, max_pages=2)
    assert [p.url for p in result.pages] == [ROOT, f"{ROOT}a"]
    assert len(fetcher.calls) == 2


@pytest.mark.asyncio()
async def test_seed_fragment_is_dropped(make_crawler):
    crawler, fetcher = make_crawler()
    result = await crawler.crawl(f"{ROOT}#top", max_depth=1, max_pages=1)
    assert fetcher.calls == [ROOT]
    assert result.pages[0].url == ROOT


@pytest.mark.asyncio()
async def test_unreachable_seed_gives_empty_map(make_crawler):
    crawler, _ = make_crawler(pages={})
    result = await crawler.crawl(ROOT)
    assert result.pages == ()


@pytest.mark.asyncio()
async def test_allowed_domains_limit_followed_links(make_crawler, fast_config):
    config = fast_config.model_copy(update={"allowed_domains": ["site.test"]})
    pages = {ROOT: _doc("Home", "/a"), f"{ROOT}a": _doc("A")}
    crawler, _ = make_crawler(pages=pages, config=config)
    result = await crawler.crawl(ROOT)
    assert [p.url for p in result.pages] == [ROOT, f"{ROOT}a"]

    with pytest.raises(InvalidInputError):
        await crawler.crawl("https://elsewhere.test/")


@pytest.mark.asyncio()
@pytest.mark.parametrize(
    "kwargs",
    [{"max_depth": 0}, {"max_depth": 6}, {"max_pages": 0}, {"max_pages": 201}],
)
async def test_limits_are_validated(make_crawler, kwargs):
    crawler, fetcher = make_crawler()
    with pytest.raises(InvalidInputError):
        await crawler.crawl(ROOT, **kwargs)
    assert fetcher.calls == []


@pytest.mark.asyncio()
async def test_invalid_seed(make_crawler):
    crawler, _ = make_crawler()
    with pytest.raises(InvalidInputError) as exc_info:
        await crawler.crawl("ftp://site.test/")
    assert exc_info.value.code == "INVALID_URL"


@pytest.mark.asyncio()
async def test_on_page_callback_and_cancellation(make_crawler):
    crawler, fetcher = make_crawler()
    token = CancelToken()
    seen = []

    async def on_page(record):
        seen.append(record.url)
        token.cancel()

    with pytest.raises(ScrapeCancelledError):
        await crawler.crawl(ROOT, max_depth=3, cancel=token, on_page=on_page)
    assert seen == [ROOT]
    assert fetcher.calls == [ROOT]


# --------------------------------------------------------------------------- #
#                          Live aiohttp site                                  #
# --------------------------------------------------------------------------- #


@pytest_asyncio.fixture()
async def chain_site(serve_app):
    """root -> /old (redirects to /page2) and root -> /page1 -> /page2."""
    hits = {"page2": 0}

    async def root(request: web.Request) -> web.Response:
        return web.Response(text=_doc("Root", "/old", "/page1"), content_type="text/html")

    async def page1(request: web.Request) -> web.Response:
        return web.Response(text=_doc("Page 1", "/page2"), content_type="text/html")

    async def page2(request: web.Request) -> web.Response:
        hits["page2"] += 1
        return web.Response(text=_doc("Page 2", "/"), content_type="text/html")

    async def old(request: web.Request) -> web.Response:
        raise web.HTTPMovedPermanently("/page2")

    app = web.Application()
    app.router.add_get("/", root)
    app.router.add_get("/page1", page1)
    app.router.add_get("/page2", page2)
    app.router.add_get("/old", old)
    async for base in serve_app(app):
        yield base, hits


@pytest.mark.asyncio()
async def test_crawl_live_site(chain_site, fast_config):
    base, hits = chain_site
    async with SessionPool(fast_config) as pool:
        scraper = PageScraper(Fetcher(pool, fast_config), fast_config)
        crawler = SiteCrawler(scraper, fast_config)
        result = await asyncio.wait_for(crawler.crawl(f"{base}/", max_depth=3), timeout=15)

    assert [p.url for p in result.pages] == [f"{base}/", f"{base}/old", f"{base}/page1"]
    assert [p.title for p in result.pages] == ["Root", "Page 2", "Page 1"]
    assert [p.depth for p in result.pages] == [0, 1, 1]
    # /old landed on /page2, which then counts as visited and is not fetched again
    assert hits["page2"] == 1


@pytest.mark.asyncio()
async def test_shared_page_yields_one_record_and_external_is_never_a_page(make_crawler):
    pages = {
        ROOT: _doc("Home", "/one", "/two", "/three", "https://ext.org/"),
        f"{ROOT}one": _doc("1", "/shared"),
        f"{ROOT}two": _doc("2", "/shared"),
        f"{ROOT}three": _doc("3"),
        f"{ROOT}shared": _doc("S"),
        "https://ext.org/": _doc("External"),
    }
    crawler, _ = make_crawler(pages=pages)

    shallow = await crawler.crawl(ROOT, max_depth=1, max_pages=50, include_external=True)
    assert len(shallow.pages) <= 4
    assert all(p.depth <= 1 for p in shallow.pages)
    assert "https://ext.org/" not in [p.url for p in shallow.pages]
    assert shallow.pages[0].external_links == ("https://ext.org/",)

    deep = await crawler.crawl(ROOT, max_depth=2, max_pages=50)
    assert [p.url for p in deep.pages].count(f"{ROOT}shared") == 1
