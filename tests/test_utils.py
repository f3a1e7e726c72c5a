# File: tests/test_utils.py
from __future__ import annotations

import asyncio
import time

import pytest

from site_harvest.errors import ScrapeCancelledError
from site_harvest.utils import (
    CancelToken,
    extract_hostname,
    is_http_url,
    is_url_allowed,
    notify,
    pause,
    sanitize_file_name,
    strip_fragment,
    timestamp_slug,
)


@pytest.mark.parametrize(
    "url,ok",
    [
        ("https://example.com", True),
        ("http://example.com/a?b=1", True),
        ("ftp://example.com", False),
        ("javascript:alert(1)", False),
        ("http://", False),
        ("example.com", False),
        ("", False),
    ],
)
def test_is_http_url(url, ok):
    assert is_http_url(url) is ok


def test_extract_hostname_lowercases_and_drops_port():
    assert extract_hostname("https://Sub.Example.COM:8443/x") == "sub.example.com"
    assert extract_hostname("not a url") == ""


def test_strip_fragment():
    assert strip_fragment("https://example.com/page#section") == "https://example.com/page"
    assert strip_fragment("https://example.com/page") == "https://example.com/page"


def test_is_url_allowed_matches_subdomains_only():
    allowed = ["example.com"]
    assert is_url_allowed("https://example.com/a", allowed)
    assert is_url_allowed("https://docs.example.com/a", allowed)
    assert not is_url_allowed("https://badexample.com/a", allowed)
    assert not is_url_allowed("https://example.com.evil.org/a", allowed)
    assert is_url_allowed("https://anything.org", [])


@pytest.mark.parametrize(
    "name,expected",
    [
        ("report.md", "report.md"),
        ("my report.md", "my_report.md"),
        ("../../etc/passwd", ".._.._etc_passwd"),
        ("отчёт.md", "_____.md"),
    ],
)
def test_sanitize_file_name(name, expected):
    assert sanitize_file_name(name) == expected


def test_timestamp_slug_is_filename_safe():
    slug = timestamp_slug()
    assert ":" not in slug and "." not in slug
    assert slug.endswith("Z")


# --------------------------------------------------------------------------- #
#                               CancelToken                                   #
# --------------------------------------------------------------------------- #


@pytest.mark.asyncio()
async def test_cancel_token_interrupts_sleep():
    token = CancelToken()

    async def cancel_soon():
        await asyncio.sleep(0.05)
        token.cancel()

    asyncio.create_task(cancel_soon())
    start = time.monotonic()
    with pytest.raises(ScrapeCancelledError):
        await token.sleep(5)
    assert time.monotonic() - start < 1.0


@pytest.mark.asyncio()
async def test_pause_without_token_sleeps():
    start = time.monotonic()
    await pause(0.05)
    assert time.monotonic() - start >= 0.04


@pytest.mark.asyncio()
async def test_pause_with_cancelled_token_raises_immediately():
    token = CancelToken()
    token.cancel()
    assert token.cancelled
    with pytest.raises(ScrapeCancelledError) as exc_info:
        await pause(0, token)
    assert exc_info.value.code == "CANCELLED"


@pytest.mark.asyncio()
async def test_notify_supports_sync_and_async_callbacks():
    seen = []

    def sync_cb(value):
        seen.append(("sync", value))

    async def async_cb(value):
        seen.append(("async", value))

    await notify(sync_cb, 1)
    await notify(async_cb, 2)
    await notify(None, 3)
    assert seen == [("sync", 1), ("async", 2)]
