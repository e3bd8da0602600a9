from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from link_crawler.apis import app as api
from link_crawler.engines.base import CrawlReport
from link_crawler.errors import DependencyError


@pytest.fixture
def client(monkeypatch):
    seen = {}

    async def _run_crawl(cfg, cancel=None):
        seen["cfg"] = cfg
        if "fail" in cfg.start_url:
            raise DependencyError("cannot connect to MongoDB")
        return CrawlReport(start_url=cfg.start_url, seed_admitted=True, records_saved=2)

    monkeypatch.setattr(api, "run_crawl", _run_crawl)
    monkeypatch.delenv("CRAWLER_START_URL", raising=False)
    with TestClient(api.app) as test_client:
        yield test_client, seen


def test_health(client):
    test_client, _ = client
    assert test_client.get("/health").json() == {"status": "ok"}


def test_crawl_returns_report(client):
    test_client, seen = client
    resp = test_client.post("/crawl", json={"start_url": "http://example.com/", "max_depth": 1, "same_host": False})

    assert resp.status_code == 200
    body = resp.json()
    assert body["records_saved"] == 2
    assert body["cancelled"] is False
    assert seen["cfg"].max_depth == 1
    assert seen["cfg"].same_host is False


@pytest.mark.parametrize("payload", [{"start_url": "nope"}, {"start_url": "http://example.com/", "max_depth": -1}])
def test_invalid_requests_are_rejected(client, payload):
    test_client, _ = client
    assert test_client.post("/crawl", json=payload).status_code == 422


def test_unreachable_backend_is_503(client):
    test_client, _ = client
    assert test_client.post("/crawl", json={"start_url": "http://fail.example.com/"}).status_code == 503
