from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from .config import CrawlConfig
from .engines.base import CrawlReport
from .engines.bfs_engine import BreadthFirstCrawlEngine
from .errors import ConfigError, CrawlCancelled, StateUnavailable, VisitedSetError
from .state.base import VisitedSet
from .storage.base import RecordStore
from .utils.http import Fetcher, HTTPFetcher
from .utils.loader import resolve_backend
from .utils.parsing import LinkExtractor

logger = logging.getLogger(__name__)

SHUTDOWN_TIMEOUT = 5.0

# Backend modules are imported on demand; the memory backends need neither
# pymongo nor redis.
STORAGE_BACKENDS = {
    "mongo": "link_crawler.storage.mongo_store:MongoRecordStore",
    "json": "link_crawler.storage.json_store:JSONRecordStore",
    "memory": "link_crawler.storage.memory_store:MemoryRecordStore",
}
STATE_BACKENDS = {
    "redis": "link_crawler.state.redis_state:RedisVisitedSet",
    "memory": "link_crawler.state.memory_state:MemoryVisitedSet",
}


def _build(kind: str, name: str, builtins: dict, cfg: CrawlConfig) -> Any:
    try:
        cls = resolve_backend(name, builtins)
    except (LookupError, ImportError, AttributeError, ValueError) as exc:
        raise ConfigError(f"cannot load {kind} backend {name!r}: {exc}") from exc
    factory = getattr(cls, "from_config", None)
    return factory(cfg) if factory is not None else cls()


def build_record_store(cfg: CrawlConfig) -> RecordStore:
    return _build("storage", cfg.storage.backend, STORAGE_BACKENDS, cfg)


def build_visited_set(cfg: CrawlConfig) -> VisitedSet:
    return _build("state", cfg.state.backend, STATE_BACKENDS, cfg)


async def _connect(backend: Any) -> None:
    connect = getattr(backend, "connect", None)
    if connect is not None:
        await connect()


async def _close_quietly(name: str, closer: Any) -> None:
    # Separate timeout so a cancelled crawl still closes its backends.
    try:
        await asyncio.wait_for(closer(), timeout=SHUTDOWN_TIMEOUT)
    except asyncio.TimeoutError:
        logger.error("Closing %s timed out after %.0fs", name, SHUTDOWN_TIMEOUT)
    except Exception as exc:
        logger.error("Failed to close %s cleanly: %r", name, exc)


async def run_crawl(
    cfg: CrawlConfig,
    cancel: Optional[asyncio.Event] = None,
    *,
    store: Optional[RecordStore] = None,
    visited: Optional[VisitedSet] = None,
    fetcher: Optional[Fetcher] = None,
) -> CrawlReport:
    """
    Wire the backends described by `cfg` into an engine and run one crawl.
    Backends passed in explicitly are used as-is and still closed afterwards.
    A cancelled crawl returns its report with `cancelled=True`.
    """
    store = store if store is not None else build_record_store(cfg)
    visited = visited if visited is not None else build_visited_set(cfg)
    http_fetcher = fetcher if fetcher is not None else HTTPFetcher(cfg.http.timeout, user_agent=cfg.http.user_agent)

    try:
        await _connect(store)
        await _connect(visited)

        if cfg.force_recrawl:
            logger.info("force_recrawl is set, clearing the visited set")
            try:
                await visited.clear()
            except VisitedSetError as exc:
                raise StateUnavailable(f"cannot clear the visited set: {exc}") from exc

        engine = BreadthFirstCrawlEngine(
            worker_count=cfg.worker_count,
            max_depth=cfg.max_depth,
            same_host=cfg.same_host,
            fetcher=http_fetcher,
            extractor=LinkExtractor(),
            store=store,
            visited=visited,
        )
        try:
            return await engine.run(cfg.start_url, cancel)
        except CrawlCancelled:
            return engine.report
    finally:
        close_fetcher = getattr(http_fetcher, "close", None)
        if close_fetcher is not None:
            await _close_quietly("fetcher", close_fetcher)
        await _close_quietly("record store", store.close)
        await _close_quietly("visited set", visited.close)

