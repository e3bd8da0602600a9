from __future__ import annotations

import argparse
import asyncio
import logging
import signal
from typing import List

from ..bootstrap import run_crawl
from ..config import CrawlConfig
from ..engines.base import CrawlReport
from ..errors import ConfigError, CrawlerError, DependencyError, InvalidSeed, StateUnavailable
from ..utils.logging import setup_logging

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CONFIG = 2


def build_arg_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Breadth-first link crawler")
    p.add_argument("start_url", nargs="?", default=None, help="Seed URL (http or https)")
    p.add_argument("--config", type=str, default=None, help="Path to a JSON or YAML config file")
    p.add_argument("--same-host", action=argparse.BooleanOptionalAction, default=None,
                   help="Only follow links on the seed host (default: on)")
    p.add_argument("--max-depth", type=int, default=None, help="Max crawl depth, seed is 0 (default 2)")
    p.add_argument("--worker-count", type=int, default=None, help="Number of concurrent workers (default 10)")
    p.add_argument("--force-recrawl", action="store_true", default=None,
                   help="Clear the visited set before starting")
    p.add_argument("--http-timeout", type=str, default=None, help="Per-request timeout, e.g. 30s or 1m")
    p.add_argument("--mongo-uri", type=str, default=None, help="MongoDB connection URI")
    p.add_argument("--redis-addr", type=str, default=None, help="Redis address host:port")
    p.add_argument("--storage-backend", type=str, default=None,
                   help="Record store: mongo, json, memory or module:Class")
    p.add_argument("--storage-path", type=str, default=None, help="Output file for the json record store")
    p.add_argument("--state-backend", type=str, default=None, help="Visited set: redis, memory or module:Class")
    p.add_argument("--log-level", type=str, default=None, help="Log level (debug, info, warn, error)")
    p.add_argument("--serve", action="store_true", help="Run the REST API server instead of a crawl")
    p.add_argument("--host", type=str, default="127.0.0.1", help="API host (when --serve)")
    p.add_argument("--port", type=int, default=8000, help="API port (when --serve)")
    return p


_FLAG_OPTIONS = {
    "start_url": "start_url",
    "same_host": "same_host",
    "max_depth": "max_depth",
    "worker_count": "worker_count",
    "force_recrawl": "force_recrawl",
    "http_timeout": "http.timeout",
    "mongo_uri": "mongo.uri",
    "redis_addr": "redis.addr",
    "storage_backend": "storage.backend",
    "storage_path": "storage.path",
    "state_backend": "state.backend",
    "log_level": "log.level",
}


def load_config(args: argparse.Namespace) -> CrawlConfig:
    cfg = CrawlConfig.from_file(args.config) if args.config else CrawlConfig()
    cfg = CrawlConfig.from_env(cfg)
    cfg.apply({option: getattr(args, dest) for dest, option in _FLAG_OPTIONS.items()
               if getattr(args, dest) is not None})
    cfg.validate()
    return cfg


def run_server(host: str, port: int) -> None:
    try:
        import uvicorn  # type: ignore
    except Exception as exc:  # pragma: no cover - optional dep
        raise SystemExit("To run the API, install dependencies: pip install fastapi uvicorn pydantic") from exc
    uvicorn.run("link_crawler.apis.app:app", host=host, port=port)


def _install_signal_handlers(cancel: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _on_signal(signame: str) -> None:
        if not cancel.is_set():
            logger.info("Received %s, finishing in-flight work and stopping", signame)
            cancel.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _on_signal, sig.name)
        except (NotImplementedError, RuntimeError):  # pragma: no cover - Windows
            signal.signal(sig, lambda *_: loop.call_soon_threadsafe(_on_signal, "signal"))


async def crawl_with_signals(cfg: CrawlConfig) -> CrawlReport:
    cancel = asyncio.Event()
    _install_signal_handlers(cancel)
    return await run_crawl(cfg, cancel)


def run_cli(argv: List[str] | None = None) -> int:
    args = build_arg_parser().parse_args(argv)
    setup_logging(args.log_level)

    if args.serve:
        run_server(args.host, args.port)
        return EXIT_OK

    try:
        cfg = load_config(args)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG

    if args.log_level is None:
        setup_logging(cfg.log.level)
    logger.info("Crawler starting with config %s", cfg.redacted())

    try:
        report = asyncio.run(crawl_with_signals(cfg))
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        return EXIT_CONFIG
    except (InvalidSeed, StateUnavailable, DependencyError) as exc:
        logger.error("Crawl could not start: %s", exc)
        return EXIT_FAILURE
    except CrawlerError as exc:
        logger.error("Crawl failed: %s", exc)
        return EXIT_FAILURE

    if report.cancelled:
        logger.info("Crawl interrupted by signal | Saved: %s | Fetch failures: %s",
                    report.records_saved, report.fetch_failures)
    else:
        logger.info("Crawl complete | Fetched: %s | Saved: %s | Admitted: %s | Fetch failures: %s",
                    report.pages_fetched, report.records_saved, report.links_admitted, report.fetch_failures)
    return EXIT_OK
