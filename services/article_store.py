# services/article_store.py
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Literal, Optional

from pymongo import ASCENDING, DESCENDING, AsyncMongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.core.config import settings
from app.core.logging import get_logger
from app.models.article import ArticleRecord

logger = get_logger()

UpsertOutcome = Literal["inserted", "updated"]

SERVER_SELECTION_TIMEOUT_MS = 10_000
# Listing order; article_id keeps pages stable when pubDate ties
LIST_SORT = [("pubDate", DESCENDING), ("article_id", ASCENDING)]
_HIDE_INTERNAL_ID = {"_id": 0}


class ArticleStore:
    """
    The `articles` collection: one document per article_id.

    The ingestion job is the only writer (`upsert_article`); everything else
    is read-only and used by the query endpoints.
    """

    def __init__(self, collection: Any, *, client: Optional[AsyncMongoClient] = None) -> None:
        self.collection = collection
        self._client = client

    @classmethod
    def from_settings(cls) -> "ArticleStore":
        client: AsyncMongoClient = AsyncMongoClient(
            settings.mongo_uri(),
            tz_aware=True,
            serverSelectionTimeoutMS=SERVER_SELECTION_TIMEOUT_MS,
            appname="newsfeed-sync",
        )
        collection = client[settings.MONGO_DB_NAME][settings.MONGO_COLLECTION]
        return cls(collection, client=client)

    async def ensure_indexes(self) -> None:
        """Create the unique article_id index and the listing index (idempotent)."""
        await self.collection.create_index([("article_id", ASCENDING)], unique=True)
        await self.collection.create_index([("pubDate", DESCENDING)])
        logger.info("article_store_indexes_ready", collection=settings.MONGO_COLLECTION)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.close()
            self._client = None

    async def ping(self) -> bool:
        try:
            await self.collection.database.command("ping")
            return True
        except PyMongoError as exc:
            logger.warning("article_store_ping_failed", error=str(exc))
            return False

    # -------- writes ---------------------------------------------------------

    async def upsert_article(self, record: ArticleRecord) -> UpsertOutcome:
        """
        Insert the record, or replace every field of the existing one.
        createdAt is only written on insert; updatedAt on every call.
        """
        now = datetime.now(timezone.utc)
        key = {"article_id": record.article_id}
        update = {
            "$set": {**record.to_document(), "updatedAt": now},
            "$setOnInsert": {"createdAt": now},
        }
        try:
            result = await self.collection.update_one(key, update, upsert=True)
        except DuplicateKeyError:
            # A concurrent upsert inserted the same article_id first.
            await self.collection.update_one(key, {"$set": update["$set"]})
            return "updated"
        if result.upserted_id is not None:
            return "inserted"
        return "updated"

    # -------- reads ----------------------------------------------------------

    async def find_articles(self, filter_doc: Dict[str, Any], *, skip: int, limit: int) -> List[Dict[str, Any]]:
        cursor = (
            self.collection.find(filter_doc, _HIDE_INTERNAL_ID)
            .sort(LIST_SORT)
            .skip(skip)
            .limit(limit)
        )
        return await cursor.to_list(length=None)

    async def count_articles(self, filter_doc: Optional[Dict[str, Any]] = None) -> int:
        return await self.collection.count_documents(filter_doc or {})

    async def distinct_values(self, field: str) -> List[Any]:
        return await self.collection.distinct(field)

    async def latest_pub_date(self) -> Optional[datetime]:
        doc = await self.collection.find_one(
            {"pubDate": {"$ne": None}},
            {"pubDate": 1, "_id": 0},
            sort=[("pubDate", DESCENDING)],
        )
        return doc.get("pubDate") if doc else None


# --------------------------------------------------------------------
# Process-wide store
# --------------------------------------------------------------------
_store: ArticleStore | None = None


def get_article_store() -> ArticleStore:
    global _store
    if _store is None:
        _store = ArticleStore.from_settings()
    return _store


async def init_article_store() -> ArticleStore:
    """Startup hook: build the client and make sure indexes exist."""
    store = get_article_store()
    await store.ensure_indexes()
    return store


async def close_article_store() -> None:
    global _store
    if _store is not None:
        await _store.close()
        _store = None
