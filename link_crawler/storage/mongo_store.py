from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Optional

from pymongo import ASCENDING, AsyncMongoClient
from pymongo.errors import PyMongoError

from ..errors import DependencyError, SaveError
from ..models import CrawledRecord

if TYPE_CHECKING:
    from ..config import CrawlConfig

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT_MS = 10_000


class MongoRecordStore:
    """Upserts one document per URL into a MongoDB collection."""

    def __init__(
        self,
        uri: str = "mongodb://localhost:27017",
        database: str = "crawler_db",
        collection: str = "links",
        *,
        client: Optional[AsyncMongoClient] = None,
    ) -> None:
        self.uri = uri
        self.database = database
        self.collection_name = collection
        self.client = client or AsyncMongoClient(uri, serverSelectionTimeoutMS=CONNECT_TIMEOUT_MS)
        self.collection: Any = self.client[database][collection]

    @classmethod
    def from_config(cls, cfg: "CrawlConfig") -> "MongoRecordStore":
        return cls(cfg.mongo.uri, cfg.mongo.database, cfg.mongo.collection)

    async def connect(self) -> None:
        """Ping the server and make sure `url` is a unique key."""
        try:
            await self.client.admin.command("ping")
            await self.collection.create_index([("url", ASCENDING)], unique=True)
        except PyMongoError as exc:
            raise DependencyError(f"cannot connect to MongoDB at {self.uri}: {exc}") from exc
        logger.info("Connected to MongoDB %s/%s", self.database, self.collection_name)

    async def save(self, record: CrawledRecord) -> None:
        doc = record.to_document()
        try:
            await self.collection.update_one({"url": record.url}, {"$set": doc}, upsert=True)
        except PyMongoError as exc:
            raise SaveError(f"cannot save {record.url}: {exc}") from exc

    async def close(self) -> None:
        await self.client.close()
