from __future__ import annotations

from typing import Optional


class CrawlerError(Exception):
    """Base class for every error raised by the crawler."""


class ConfigError(CrawlerError, ValueError):
    """Invalid or missing configuration. Fatal before the engine starts."""


class DependencyError(CrawlerError):
    """A backend (record store, visited set) could not be reached at startup."""


class InvalidSeed(CrawlerError):
    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"invalid seed URL {url!r}: {reason}")
        self.url = url
        self.reason = reason


class StateUnavailable(CrawlerError):
    """The visited set failed while admitting the seed."""


class CrawlCancelled(CrawlerError):
    """The run was stopped through its cancel signal."""


class FrontierClosed(CrawlerError):
    """A task was pushed after the frontier was closed."""


# ---- Per-task errors (logged, task dropped) --------------------------------


class FetchError(CrawlerError):
    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message} for {url}")
        self.url = url


class TransportError(FetchError):
    pass


class UnexpectedStatus(FetchError):
    def __init__(self, url: str, status: int) -> None:
        super().__init__(url, f"unexpected status code {status}")
        self.status = status


class BodyReadError(FetchError):
    pass


class ExtractError(CrawlerError):
    pass


class InvalidBase(ExtractError):
    def __init__(self, base_url: str, cause: Optional[BaseException] = None) -> None:
        detail = f": {cause}" if cause else ""
        super().__init__(f"cannot use {base_url!r} as base URL{detail}")
        self.base_url = base_url


class SaveError(CrawlerError):
    pass


class VisitedSetError(CrawlerError):
    pass
