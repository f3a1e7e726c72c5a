# site_harvest/crawler/fetcher.py
"""
Fetcher module: HTTP transport with retry/backoff and per-request timeouts.

:class:`SessionPool` owns the one long-lived :class:`aiohttp.ClientSession`
shared across calls. It is created lazily, reused while open and recreated
after it has been closed; (re)creation happens under an :class:`asyncio.Lock`
so concurrent callers never build two sessions.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Literal, Mapping, Optional, Protocol, Sequence

from aiohttp import ClientError, ClientSession, ClientTimeout

from site_harvest.config import ScraperConfig
from site_harvest.crawler.models import FetchResult
from site_harvest.errors import TransportError
from site_harvest.utils import CancelToken, pause

__all__ = ("FetchClient", "SessionPool", "Fetcher", "RETRY_STATUS", "WaitStrategy")

logger = logging.getLogger("SiteHarvest")

RETRY_STATUS: Sequence[int] = tuple(range(500, 600)) + (429,)

WaitStrategy = Literal["load", "domcontentloaded", "networkidle"]


class FetchClient(Protocol):
    """Boundary of the fetch transport used by PageScraper."""

    async def fetch(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        wait_strategy: WaitStrategy = "load",
        headers: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> FetchResult:
        ...


class SessionPool:
    """Lazily created, lock-guarded, reusable client session."""

    def __init__(self, config: ScraperConfig) -> None:
        self.config = config
        self._session: Optional[ClientSession] = None
        self._lock = asyncio.Lock()
        self.created = 0

    async def acquire(self) -> ClientSession:
        async with self._lock:
            if self._session is None or self._session.closed:
                if self._session is not None:
                    logger.info("Client session was closed, recreating")
                headers = {"User-Agent": self.config.user_agent, **self.config.headers}
                self._session = ClientSession(
                    timeout=ClientTimeout(total=self.config.timeout),
                    headers=headers,
                    raise_for_status=False,
                )
                self.created += 1
            return self._session

    async def close(self) -> None:
        async with self._lock:
            if self._session is not None and not self._session.closed:
                await self._session.close()
            self._session = None

    async def __aenter__(self) -> SessionPool:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


class Fetcher:
    """aiohttp implementation of :class:`FetchClient`.

    Connection errors and 429/5xx responses are retried up to
    ``config.retry_times`` with exponential backoff (capped at 60 s).
    Timeouts are not retried. When retries run out on a retryable status the
    last response is returned so the caller can report the HTTP status.
    """

    def __init__(
        self,
        pool: SessionPool,
        config: ScraperConfig,
        retry_status: Sequence[int] = RETRY_STATUS,
    ) -> None:
        self.pool = pool
        self.config = config
        self._retry_status = retry_status

    def _backoff(self, attempts: int) -> float:
        return min(self.config.retry_backoff * 2**attempts, 60.0)

    async def fetch(
        self,
        url: str,
        *,
        timeout: Optional[float] = None,
        wait_strategy: WaitStrategy = "load",
        headers: Optional[Mapping[str, str]] = None,
        cancel: Optional[CancelToken] = None,
    ) -> FetchResult:
        # A plain HTTP transport has nothing to wait for beyond the full body.
        logger.debug("GET %s (wait=%s)", url, wait_strategy)
        session = await self.pool.acquire()
        request_timeout = ClientTimeout(total=timeout or self.config.timeout)

        attempts = 0
        while True:
            if cancel is not None:
                cancel.raise_if_cancelled(url)
            try:
                async with session.get(url, timeout=request_timeout, headers=headers) as resp:
                    body = await resp.read()
                    result = FetchResult(
                        url=str(resp.url),
                        status_code=resp.status,
                        headers=dict(resp.headers),
                        body=body,
                        encoding=resp.charset,
                    )
                if result.status_code in self._retry_status and attempts < self.config.retry_times:
                    attempts += 1
                    delay = self._backoff(attempts)
                    logger.debug(
                        "Retry %d/%d for %s after HTTP %d (%.2f s)",
                        attempts, self.config.retry_times, url, result.status_code, delay,
                    )
                    await pause(delay, cancel)
                    continue
                return result
            except asyncio.TimeoutError as exc:
                raise TransportError(f"Request timed out for {url}", url, code="TIMEOUT") from exc
            except ClientError as exc:
                attempts += 1
                if attempts > self.config.retry_times:
                    raise TransportError(f"Failed to fetch {url}: {exc}", url) from exc
                delay = self._backoff(attempts)
                logger.debug(
                    "Retry %d/%d for %s after %s (%.2f s)",
                    attempts, self.config.retry_times, url, exc, delay,
                )
                await pause(delay, cancel)
