from __future__ import annotations

import asyncio
import json
import logging
import os
import threading
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List

from ..errors import DependencyError, SaveError
from ..models import CrawledRecord

if TYPE_CHECKING:
    from ..config import CrawlConfig

logger = logging.getLogger(__name__)


class JSONRecordStore:
    """
    File-backed record store: one JSON array of documents, upserted by URL.
    Existing documents are loaded on connect so repeated runs accumulate.
    The file is rewritten every `flush_every` saves and on close.
    """

    def __init__(self, path: str, flush_every: int = 50) -> None:
        self.path = Path(path)
        self.flush_every = max(1, flush_every)
        self._docs: Dict[str, dict] = {}
        self._dirty = 0
        self._lock = asyncio.Lock()
        self._write_lock = threading.Lock()

    @classmethod
    def from_config(cls, cfg: "CrawlConfig") -> "JSONRecordStore":
        return cls(cfg.storage.path)

    async def connect(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        if not self.path.exists():
            return
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as exc:
            raise DependencyError(f"cannot load records from {self.path}: {exc}") from exc
        if not isinstance(data, list):
            raise DependencyError(f"cannot load records from {self.path}: expected a JSON array of documents")
        for doc in data:
            if not isinstance(doc, dict) or not isinstance(doc.get("url"), str):
                raise DependencyError(f"cannot load records from {self.path}: bad document {doc!r:.80}")
            try:
                loaded = CrawledRecord.from_document(doc)
            except (TypeError, ValueError) as exc:
                raise DependencyError(f"cannot load records from {self.path}: {exc}") from exc
            self._docs[loaded.url] = loaded.to_document()
        logger.info("Loaded %s existing records from %s", len(self._docs), self.path)

    async def save(self, record: CrawledRecord) -> None:
        async with self._lock:
            self._docs[record.url] = record.to_document()
            self._dirty += 1
            if self._dirty >= self.flush_every:
                await self._flush_locked()

    async def flush(self) -> None:
        async with self._lock:
            await self._flush_locked()

    async def close(self) -> None:
        await self.flush()

    async def _flush_locked(self) -> None:
        docs = list(self._docs.values())
        self._dirty = 0
        await asyncio.to_thread(self._write, docs)

    def _write(self, docs: List[dict]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        with self._write_lock:
            try:
                with open(tmp, "w", encoding="utf-8") as f:
                    json.dump(docs, f, indent=2, ensure_ascii=False)
                os.replace(tmp, self.path)
            except OSError as exc:
                raise SaveError(f"cannot write records to {self.path}: {exc}") from exc
