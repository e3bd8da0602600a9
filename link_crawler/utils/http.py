from __future__ import annotations

from typing import Optional, Protocol
import asyncio
import logging

import aiohttp
from aiohttp import ClientResponse, ClientSession, ClientTimeout

from ..errors import BodyReadError, TransportError, UnexpectedStatus

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
)


class PageStream(Protocol):
    """Body of a successful response. The caller must close it."""

    async def read(self) -> bytes:
        ...

    def close(self) -> None:
        ...


class Fetcher(Protocol):
    async def fetch(self, url: str) -> PageStream:
        ...


class ResponseStream:
    """Wraps an open aiohttp response so the engine only sees read/close."""

    def __init__(self, url: str, response: ClientResponse) -> None:
        self.url = url
        self._response = response

    async def read(self) -> bytes:
        try:
            return await self._response.read()
        except (aiohttp.ClientError, asyncio.TimeoutError) as exc:
            raise BodyReadError(self.url, f"failed to read body: {exc!r}") from exc

    def close(self) -> None:
        self._response.release()

    async def __aenter__(self) -> "ResponseStream":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.close()


class HTTPFetcher:
    """
    GET pages through one shared ClientSession.
    The timeout covers the whole request including the body read and is
    independent of the crawl's own cancellation.
    """

    def __init__(
        self,
        timeout: float = 30.0,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[ClientSession] = None,
    ) -> None:
        self.timeout = timeout
        self.user_agent = user_agent
        self._session = session

    @property
    def session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = create_session()
        return self._session

    async def fetch(self, url: str) -> ResponseStream:
        headers = {"User-Agent": self.user_agent}
        try:
            resp = await self.session.get(
                url, headers=headers, timeout=ClientTimeout(total=self.timeout)
            )
        except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
            raise TransportError(url, f"request failed: {exc!r}") from exc

        if resp.status != 200:
            resp.release()
            raise UnexpectedStatus(url, resp.status)
        return ResponseStream(url, resp)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()


def create_session() -> ClientSession:
    """
    Create a shared aiohttp ClientSession.
    """
    # Note: caller is responsible for closing the session (await session.close()).
    connector = aiohttp.TCPConnector(limit=0)  # unlimited; concurrency bounded by the worker pool
    return aiohttp.ClientSession(connector=connector)
