"""
Error taxonomy for SiteHarvest.

Every error raised by the scraping core derives from :class:`ScrapingError`
and carries a machine-readable ``code`` plus the triggering URL or HTTP
status where one exists.
"""
from __future__ import annotations

from typing import Optional

__all__ = (
    "ScrapingError",
    "TransportError",
    "HttpStatusError",
    "InvalidInputError",
    "DomainNotAllowedError",
    "PathEscapeError",
    "ScrapeCancelledError",
)


class ScrapingError(Exception):
    """Base error; ``str()`` includes the code so log lines stay self-describing."""

    def __init__(
        self,
        message: str,
        code: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
    ) -> None:
        self.code = code
        self.status_code = status_code
        self.url = url
        self.reason = message
        super().__init__(f"{message} (code={code})" if code else message)


class TransportError(ScrapingError):
    """Connection failure or timeout; the server never produced a usable response."""

    def __init__(self, message: str, url: str, code: str = "FETCH_FAILED") -> None:
        super().__init__(message, code, url=url)


class HttpStatusError(ScrapingError):
    """The server answered with a status >= 400."""

    def __init__(self, message: str, status_code: int, url: str) -> None:
        super().__init__(message, "HTTP_ERROR", status_code=status_code, url=url)


class InvalidInputError(ScrapingError):
    """Caller-supplied value rejected before any I/O."""

    def __init__(self, message: str, code: str = "INVALID_INPUT", url: Optional[str] = None) -> None:
        super().__init__(message, code, url=url)


class DomainNotAllowedError(InvalidInputError):
    def __init__(self, url: str) -> None:
        super().__init__(f"Domain is not allowlisted for scraping: {url}", "DOMAIN_NOT_ALLOWED", url=url)


class PathEscapeError(InvalidInputError):
    def __init__(self, path: str) -> None:
        super().__init__(f"Invalid file path: {path}", "INVALID_FILE_PATH")
        self.path = path


class ScrapeCancelledError(ScrapingError):
    """Raised at a suspension point once the caller has requested cancellation."""

    def __init__(self, message: str = "Operation cancelled", url: Optional[str] = None) -> None:
        super().__init__(message, "CANCELLED", url=url)
