from __future__ import annotations

import pytest

from link_crawler.engines.base import CrawlReport
from link_crawler.errors import DependencyError
from link_crawler.ui import cli


@pytest.fixture
def fake_crawl(monkeypatch):
    calls = []
    outcome = {"report": CrawlReport(start_url="http://example.com/", records_saved=3), "error": None}

    async def _run_crawl(cfg, cancel=None):
        calls.append((cfg, cancel))
        if outcome["error"] is not None:
            raise outcome["error"]
        return outcome["report"]

    monkeypatch.setattr(cli, "run_crawl", _run_crawl)
    for var in ("CRAWLER_START_URL", "CRAWLER_MAX_DEPTH", "CRAWLER_WORKER_COUNT"):
        monkeypatch.delenv(var, raising=False)
    return calls, outcome


def test_flags_reach_the_config(fake_crawl):
    calls, _ = fake_crawl
    code = cli.run_cli([
        "http://example.com/", "--max-depth", "3", "--worker-count", "5", "--no-same-host",
        "--force-recrawl", "--http-timeout", "10s", "--redis-addr", "cache:6379",
        "--state-backend", "memory", "--storage-backend", "memory",
    ])

    assert code == cli.EXIT_OK
    cfg, cancel = calls[0]
    assert cfg.start_url == "http://example.com/"
    assert cfg.max_depth == 3
    assert cfg.worker_count == 5
    assert cfg.same_host is False
    assert cfg.force_recrawl is True
    assert cfg.http.timeout == 10.0
    assert cfg.redis.addr == "cache:6379"
    assert cancel is not None and not cancel.is_set()


def test_flags_override_environment_and_file(fake_crawl, tmp_path, monkeypatch):
    calls, _ = fake_crawl
    path = tmp_path / "config.yaml"
    path.write_text("start_url: http://file.example.com/\nmax_depth: 1\nworker_count: 2\n", encoding="utf-8")
    monkeypatch.setenv("CRAWLER_MAX_DEPTH", "4")

    assert cli.run_cli(["--config", str(path), "--worker-count", "8"]) == cli.EXIT_OK

    cfg, _ = calls[0]
    assert cfg.start_url == "http://file.example.com/"
    assert cfg.max_depth == 4
    assert cfg.worker_count == 8


@pytest.mark.parametrize("argv", [[], ["not-a-url"], ["http://example.com/", "--worker-count", "0"]])
def test_config_errors_exit_before_crawling(fake_crawl, argv):
    calls, _ = fake_crawl
    assert cli.run_cli(argv) == cli.EXIT_CONFIG
    assert calls == []


def test_dependency_failure_exits_non_zero(fake_crawl):
    _, outcome = fake_crawl
    outcome["error"] = DependencyError("cannot connect to Redis")
    assert cli.run_cli(["http://example.com/"]) == cli.EXIT_FAILURE


def test_cancelled_crawl_exits_zero(fake_crawl):
    _, outcome = fake_crawl
    outcome["report"] = CrawlReport(start_url="http://example.com/", cancelled=True)
    assert cli.run_cli(["http://example.com/"]) == cli.EXIT_OK
