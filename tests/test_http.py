from __future__ import annotations

import asyncio
import socket

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from link_crawler.errors import TransportError, UnexpectedStatus
from link_crawler.utils.http import DEFAULT_USER_AGENT, HTTPFetcher


def make_app() -> web.Application:
    async def index(request: web.Request) -> web.Response:
        return web.Response(text='<a href="/next">next</a>', content_type="text/html")

    async def agent(request: web.Request) -> web.Response:
        return web.Response(text=request.headers.get("User-Agent", ""))

    async def boom(request: web.Request) -> web.Response:
        return web.Response(status=500, text="nope")

    async def moved(request: web.Request) -> web.Response:
        return web.Response(status=204)

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(1)
        return web.Response(text="late")

    app = web.Application()
    app.router.add_get("/", index)
    app.router.add_get("/agent", agent)
    app.router.add_get("/boom", boom)
    app.router.add_get("/empty", moved)
    app.router.add_get("/slow", slow)
    return app


async def fetch_body(path: str, timeout: float = 2.0) -> bytes:
    async with TestServer(make_app()) as server:
        fetcher = HTTPFetcher(timeout=timeout)
        try:
            async with await fetcher.fetch(str(server.make_url(path))) as stream:
                return await stream.read()
        finally:
            await fetcher.close()


def test_fetch_returns_body_stream():
    assert asyncio.run(fetch_body("/")) == b'<a href="/next">next</a>'


def test_browser_like_user_agent_is_sent():
    agent = asyncio.run(fetch_body("/agent")).decode()
    assert agent == DEFAULT_USER_AGENT
    assert agent.startswith("Mozilla/5.0")


@pytest.mark.parametrize("path,status", [("/boom", 500), ("/missing", 404), ("/empty", 204)])
def test_non_200_is_unexpected_status(path, status):
    with pytest.raises(UnexpectedStatus) as info:
        asyncio.run(fetch_body(path))
    assert info.value.status == status


def test_timeout_is_a_transport_error():
    with pytest.raises(TransportError):
        asyncio.run(fetch_body("/slow", timeout=0.2))


def test_connection_refused_is_a_transport_error():
    with socket.socket() as sock:
        sock.bind(("127.0.0.1", 0))
        port = sock.getsockname()[1]

    async def scenario():
        fetcher = HTTPFetcher(timeout=2)
        try:
            await fetcher.fetch(f"http://127.0.0.1:{port}/")
        finally:
            await fetcher.close()

    with pytest.raises(TransportError):
        asyncio.run(scenario())
