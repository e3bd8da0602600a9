from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Set
from urllib.parse import urlsplit

from .base import CrawlEngine, CrawlReport
from .frontier import Frontier, InFlightCounter
from ..errors import (
    CrawlCancelled,
    ExtractError,
    FetchError,
    InvalidSeed,
    SaveError,
    StateUnavailable,
    VisitedSetError,
)
from ..models import CrawledRecord, Task
from ..state.base import VisitedSet
from ..storage.base import RecordStore
from ..utils.http import Fetcher
from ..utils.parsing import ALLOWED_SCHEMES, Extractor, host_of

logger = logging.getLogger(__name__)

DEFAULT_SAVE_TIMEOUT = 10.0


class BreadthFirstCrawlEngine(CrawlEngine):
    """
    Crawl from one seed with a fixed pool of worker tasks.

    - Workers pull tasks from a bounded frontier, fetch, extract and save.
    - Every admitted task holds one unit of the in-flight counter until it
      and all of its link admissions are finished.
    - The reaper closes the frontier when the counter drops to zero; that is
      how natural completion is detected.
    - Link admission for a page runs in its own task so a worker blocked on
      a full frontier never starves the consumers.
    """

    def __init__(
        self,
        *,
        worker_count: int,
        max_depth: int,
        same_host: bool,
        fetcher: Fetcher,
        extractor: Extractor,
        store: RecordStore,
        visited: VisitedSet,
        save_timeout: float = DEFAULT_SAVE_TIMEOUT,
        log: Optional[logging.Logger] = None,
    ) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be >= 1")
        if max_depth < 0:
            raise ValueError("max_depth must be >= 0")
        self.worker_count = worker_count
        self.max_depth = max_depth
        self.same_host = same_host
        self.fetcher = fetcher
        self.extractor = extractor
        self.store = store
        self.visited = visited
        self.save_timeout = save_timeout
        self.log = log or logger

        self.report = CrawlReport()
        self.in_flight = InFlightCounter()
        self._frontier: Optional[Frontier] = None
        self._start_host = ""
        self._workers: List[asyncio.Task] = []
        self._admissions: Set[asyncio.Task] = set()
        self._failure: Optional[BaseException] = None
        self._failed = asyncio.Event()
        self._cancelled = False

    # ---- Lifecycle ----------------------------------------------------------

    async def run(self, start_url: str, cancel: Optional[asyncio.Event] = None) -> CrawlReport:
        self._start_host = self._seed_host(start_url)
        cancel = cancel or asyncio.Event()

        self.report = CrawlReport(start_url=start_url)
        self.in_flight = InFlightCounter()
        self._frontier = Frontier(self.worker_count)
        self._admissions = set()
        self._failure = None
        self._failed = asyncio.Event()
        self._cancelled = False

        self._workers = []
        for i in range(self.worker_count):
            worker = asyncio.create_task(self._worker(), name=f"crawl-worker-{i}")
            worker.add_done_callback(self._on_task_done)
            self._workers.append(worker)
        watcher = asyncio.create_task(self._watch(cancel), name="crawl-watcher")
        reaper: Optional[asyncio.Task] = None

        self.log.info(
            "Crawl starting url=%s workers=%s max_depth=%s same_host=%s",
            start_url, self.worker_count, self.max_depth, self.same_host,
        )
        try:
            try:
                await self._seed(start_url, cancel)
            except StateUnavailable:
                self._frontier.close()
                raise
            reaper = asyncio.create_task(self._reap(), name="crawl-reaper")
            await asyncio.gather(*self._workers, return_exceptions=True)
        finally:
            await self._teardown(watcher, reaper)

        if self._failure is not None:
            raise self._failure
        if self._cancelled:
            self.report.cancelled = True
            self.log.info("Crawl cancelled url=%s saved=%s", start_url, self.report.records_saved)
            raise CrawlCancelled(f"crawl of {start_url} was cancelled")

        self.log.info(
            "Crawl finished url=%s fetched=%s saved=%s admitted=%s",
            start_url, self.report.pages_fetched, self.report.records_saved, self.report.links_admitted,
        )
        return self.report

    def _seed_host(self, start_url: str) -> str:
        try:
            parts = urlsplit(start_url)
        except ValueError as exc:
            raise InvalidSeed(start_url, str(exc)) from exc
        if parts.scheme.lower() not in ALLOWED_SCHEMES:
            raise InvalidSeed(start_url, "scheme must be http or https")
        if not parts.netloc:
            raise InvalidSeed(start_url, "missing host")
        return parts.netloc

    async def _seed(self, start_url: str, cancel: asyncio.Event) -> None:
        assert self._frontier is not None
        if cancel.is_set():
            self.log.info("Cancelled before the seed was admitted")
            return
        try:
            inserted = await self.visited.try_insert(start_url)
        except VisitedSetError as exc:
            raise StateUnavailable(f"visited set unavailable while admitting seed: {exc}") from exc
        if not inserted:
            self.log.info("Seed already visited, nothing to crawl url=%s", start_url)
            return

        self.in_flight.acquire()
        push = asyncio.ensure_future(self._frontier.put(Task(url=start_url, depth=0, parent_url="")))
        stop = asyncio.ensure_future(cancel.wait())
        try:
            await asyncio.wait({push, stop}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            pushed = push.done() and not push.cancelled() and push.exception() is None
            if not pushed:
                push.cancel()
                self.in_flight.release()
        self.report.seed_admitted = pushed

    async def _reap(self) -> None:
        assert self._frontier is not None
        await self.in_flight.wait_idle()
        if not self._frontier.closed:
            self.log.debug("In-flight counter reached zero, closing frontier")
            self._frontier.close()

    async def _watch(self, cancel: asyncio.Event) -> None:
        stop = asyncio.ensure_future(cancel.wait())
        failed = asyncio.ensure_future(self._failed.wait())
        try:
            await asyncio.wait({stop, failed}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop.cancel()
            failed.cancel()
        if cancel.is_set() and self._failure is None:
            self._cancelled = True
            self.log.info("Cancellation requested, stopping %s workers", len(self._workers))
        self._stop_all()

    def _stop_all(self) -> None:
        for task in [*self._workers, *self._admissions]:
            task.cancel()

    def _on_task_done(self, task: asyncio.Task) -> None:
        self._admissions.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None and self._failure is None:
            self.log.error("Crawl task %s failed: %r", task.get_name(), exc)
            self._failure = exc
            self._failed.set()

    def _on_admission_done(self, task: asyncio.Task) -> None:
        # Runs even when the task was cancelled before its first step.
        self.in_flight.release()
        self._on_task_done(task)

    async def _teardown(self, watcher: asyncio.Task, reaper: Optional[asyncio.Task]) -> None:
        assert self._frontier is not None
        watcher.cancel()
        self._stop_all()
        await asyncio.gather(watcher, *self._workers, return_exceptions=True)
        while self._admissions:
            pending = list(self._admissions)
            for task in pending:
                task.cancel()
            await asyncio.gather(*pending, return_exceptions=True)
            self._admissions.difference_update(pending)

        # Tasks still queued after cancellation will never be processed.
        for _ in self._frontier.drain():
            self.in_flight.release()

        if reaper is not None:
            await reaper
        elif not self._frontier.closed:
            self._frontier.close()

    # ---- Workers ------------------------------------------------------------

    async def _worker(self) -> None:
        assert self._frontier is not None
        while True:
            task = await self._frontier.get()
            if task is None:
                return
            await self._process(task)

    async def _process(self, task: Task) -> None:
        handed_off = False
        try:
            links = await self._crawl_page(task)
            if links and task.depth < self.max_depth:
                admission = asyncio.create_task(self._admit_links(task, links), name=f"admit:{task.url}")
                self._admissions.add(admission)
                admission.add_done_callback(self._on_admission_done)
                handed_off = True
            elif links:
                self.log.debug("Max depth reached, not descending url=%s depth=%s", task.url, task.depth)
        finally:
            if not handed_off:
                self.in_flight.release()

    async def _crawl_page(self, task: Task) -> Optional[List[str]]:
        """Fetch, extract and save one page. Returns its links, or None if dropped."""
        self.log.info("Processing page url=%s depth=%s", task.url, task.depth)
        try:
            stream = await self.fetcher.fetch(task.url)
        except FetchError as exc:
            self.report.fetch_failures += 1
            self.log.warning("Fetch failed url=%s depth=%s: %s", task.url, task.depth, exc)
            return None
        try:
            body = await stream.read()
        except FetchError as exc:
            self.report.fetch_failures += 1
            self.log.warning("Reading body failed url=%s depth=%s: %s", task.url, task.depth, exc)
            return None
        finally:
            stream.close()
        self.report.pages_fetched += 1

        try:
            links = self.extractor.parse_links(task.url, body)
        except ExtractError as exc:
            self.report.extract_failures += 1
            self.log.warning("Link extraction failed url=%s depth=%s: %s", task.url, task.depth, exc)
            return None

        record = CrawledRecord(url=task.url, depth=task.depth, parent_url=task.parent_url, found_links=links)
        await self._save(record)
        return links

    async def _save(self, record: CrawledRecord) -> None:
        try:
            await asyncio.wait_for(self.store.save(record), timeout=self.save_timeout)
        except asyncio.TimeoutError:
            self.report.save_failures += 1
            self.log.warning("Saving record timed out after %.1fs url=%s", self.save_timeout, record.url)
        except SaveError as exc:
            self.report.save_failures += 1
            self.log.warning("Saving record failed url=%s: %s", record.url, exc)
        else:
            self.report.records_saved += 1

    # ---- Admission ----------------------------------------------------------

    async def _admit_links(self, task: Task, links: List[str]) -> None:
        for link in links:
            await self._admit(link, task)

    def in_scope(self, link: str) -> bool:
        host = host_of(link)
        if host is None:
            return False
        return not self.same_host or host == self._start_host

    async def _admit(self, link: str, parent: Task) -> None:
        assert self._frontier is not None
        if not self.in_scope(link):
            self.log.debug("Out of scope, skipping url=%s", link)
            return
        try:
            inserted = await self.visited.try_insert(link)
        except VisitedSetError as exc:
            self.log.warning("Visited set insert failed url=%s: %s", link, exc)
            return
        if not inserted:
            return

        self.in_flight.acquire()
        try:
            await self._frontier.put(Task(url=link, depth=parent.depth + 1, parent_url=parent.url))
        except BaseException:
            self.in_flight.release()
            raise
        self.report.links_admitted += 1
