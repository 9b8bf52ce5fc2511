# tests/fixtures/__init__.py
"""
Test fixtures for the article store, query API and ingestion tests.

- InMemoryCollection: the subset of pymongo's asyncio collection API that
  ArticleStore uses, with enough query-operator support to evaluate the
  filters built for GET /articles.
- make_feed_article(): one element of a NewsData.io `results` array.
- make_feed_response(): a full NewsData.io response body.
"""

from __future__ import annotations

import copy
import itertools
import re
from datetime import datetime
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError


# ---------------------------------------------------------------------------
# Query evaluation
# ---------------------------------------------------------------------------

def _regex(spec: Dict[str, Any]) -> re.Pattern:
    flags = re.IGNORECASE if "i" in spec.get("$options", "") else 0
    return re.compile(spec["$regex"], flags)


def _match_scalar(value: Any, condition: Any) -> bool:
    if isinstance(condition, dict) and any(k.startswith("$") for k in condition):
        for op, arg in condition.items():
            if op == "$options":
                continue
            if op == "$regex":
                if not isinstance(value, str) or not _regex(condition).search(value):
                    return False
            elif op == "$gte":
                if value is None or not value >= arg:
                    return False
            elif op == "$lte":
                if value is None or not value <= arg:
                    return False
            elif op == "$ne":
                if value == arg:
                    return False
            elif op == "$in":
                if value not in arg:
                    return False
            else:
                raise NotImplementedError(op)
        return True
    return value == condition


def _match_field(value: Any, condition: Any) -> bool:
    if isinstance(value, list):
        if isinstance(condition, dict):
            if "$all" in condition:
                return all(item in value for item in condition["$all"])
            if "$elemMatch" in condition:
                return any(_match_scalar(item, condition["$elemMatch"]) for item in value)
            if "$in" in condition:
                return any(item in condition["$in"] for item in value)
        return any(_match_scalar(item, condition) for item in value)
    if isinstance(condition, dict) and ("$all" in condition or "$elemMatch" in condition):
        return False
    return _match_scalar(value, condition)


def matches(doc: Dict[str, Any], filter_doc: Dict[str, Any]) -> bool:
    for key, condition in filter_doc.items():
        if key == "$or":
            if not any(matches(doc, sub) for sub in condition):
                return False
            continue
        if not _match_field(doc.get(key), condition):
            return False
    return True


def _project(doc: Dict[str, Any], projection: Optional[Dict[str, int]]) -> Dict[str, Any]:
    doc = copy.deepcopy(doc)
    if not projection:
        return doc
    included = [k for k, v in projection.items() if v]
    if included:
        return {k: doc[k] for k in included if k in doc}
    for key, flag in projection.items():
        if not flag:
            doc.pop(key, None)
    return doc


def _sorted(docs: List[Dict[str, Any]], sort: List[tuple]) -> List[Dict[str, Any]]:
    # Mongo orders null below every value
    result = list(docs)
    for field, direction in reversed(sort):
        result.sort(
            key=lambda d: (d.get(field) is not None, d.get(field) if d.get(field) is not None else 0),
            reverse=direction < 0,
        )
    return result


# ---------------------------------------------------------------------------
# Collection
# ---------------------------------------------------------------------------

class InMemoryCursor:
    def __init__(self, docs: List[Dict[str, Any]], projection: Optional[Dict[str, int]]):
        self._docs = docs
        self._projection = projection
        self._sort: List[tuple] = []
        self._skip = 0
        self._limit = 0

    def sort(self, spec):
        self._sort = list(spec)
        return self

    def skip(self, n: int):
        self._skip = n
        return self

    def limit(self, n: int):
        self._limit = n
        return self

    async def to_list(self, length: Optional[int] = None) -> List[Dict[str, Any]]:
        docs = _sorted(self._docs, self._sort) if self._sort else list(self._docs)
        docs = docs[self._skip:]
        if self._limit:
            docs = docs[: self._limit]
        return [_project(d, self._projection) for d in docs]


class _InMemoryDatabase:
    def __init__(self, owner: "InMemoryCollection"):
        self._owner = owner

    async def command(self, name: str) -> Dict[str, Any]:
        if not self._owner.available:
            raise ServerSelectionTimeoutError("in-memory store offline")
        return {"ok": 1.0}


class InMemoryCollection:
    def __init__(self, docs: Optional[List[Dict[str, Any]]] = None):
        self.docs: List[Dict[str, Any]] = [copy.deepcopy(d) for d in docs or []]
        self.indexes: List[Dict[str, Any]] = []
        self.available = True
        # article_id -> exception raised by update_one
        self.fail_on: Dict[str, Exception] = {}
        self.database = _InMemoryDatabase(self)
        self._ids = itertools.count(1)

    def _check_available(self) -> None:
        if not self.available:
            raise ServerSelectionTimeoutError("in-memory store offline")

    async def create_index(self, keys, unique: bool = False, name: Optional[str] = None) -> str:
        self.indexes.append({"keys": list(keys), "unique": unique, "name": name})
        return name or "_".join(f"{k}_{d}" for k, d in keys)

    async def update_one(self, filter_doc: Dict[str, Any], update: Dict[str, Any], upsert: bool = False):
        self._check_available()
        key = filter_doc.get("article_id")
        if key in self.fail_on:
            raise self.fail_on[key]

        existing = [d for d in self.docs if matches(d, filter_doc)]
        if existing:
            doc = existing[0]
            doc.update(copy.deepcopy(update.get("$set", {})))
            return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if not upsert:
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

        doc = dict(filter_doc)
        doc.update(copy.deepcopy(update.get("$set", {})))
        doc.update(copy.deepcopy(update.get("$setOnInsert", {})))
        if any(d.get("article_id") == doc.get("article_id") for d in self.docs):
            raise DuplicateKeyError("E11000 duplicate key error")
        new_id = next(self._ids)
        self.docs.append(doc)
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=new_id)

    def find(self, filter_doc: Optional[Dict[str, Any]] = None, projection: Optional[Dict[str, int]] = None):
        self._check_available()
        return InMemoryCursor([d for d in self.docs if matches(d, filter_doc or {})], projection)

    async def find_one(self, filter_doc=None, projection=None, sort=None):
        docs = await self.find(filter_doc, projection).sort(sort or []).limit(1).to_list()
        return docs[0] if docs else None

    async def count_documents(self, filter_doc: Dict[str, Any]) -> int:
        self._check_available()
        return sum(1 for d in self.docs if matches(d, filter_doc))

    async def distinct(self, field: str) -> List[Any]:
        self._check_available()
        seen: List[Any] = []
        for doc in self.docs:
            if field not in doc:
                continue
            value = doc[field]
            for item in value if isinstance(value, list) else [value]:
                if item not in seen:
                    seen.append(item)
        return seen


# ---------------------------------------------------------------------------
# Feed payloads
# ---------------------------------------------------------------------------

def make_feed_article(
    article_id: str = "a1",
    title: str = "Test headline",
    description: Optional[str] = "Short description",
    pub_date: Optional[str] = "2024-05-01 12:00:00",
    **overrides: Any,
) -> Dict[str, Any]:
    """Factory for one NewsData.io article object."""
    article = {
        "article_id": article_id,
        "title": title,
        "link": f"https://example.com/{article_id}",
        "keywords": ["world"],
        "creator": ["Jane Reporter"],
        "video_url": None,
        "description": description,
        "content": "ONLY AVAILABLE IN PAID PLANS",
        "pubDate": pub_date,
        "pubDateTZ": "UTC",
        "image_url": None,
        "source_id": "example",
        "source_priority": 1234,
        "source_name": "Example News",
        "source_url": "https://example.com",
        "source_icon": "https://example.com/icon.png",
        "language": "english",
        "country": ["united states of america"],
        "category": ["top"],
        "ai_tag": "ONLY AVAILABLE IN PROFESSIONAL AND CORPORATE PLANS",
        "sentiment": "neutral",
        "sentiment_stats": {"positive": 0.1, "neutral": 99.8, "negative": 0.1},
        "ai_region": None,
        "ai_org": None,
        "duplicate": False,
    }
    article.update(overrides)
    return article


def make_feed_response(articles: List[Dict[str, Any]], next_page: Optional[str] = None) -> Dict[str, Any]:
    return {
        "status": "success",
        "totalResults": len(articles),
        "results": articles,
        "nextPage": next_page,
    }


def make_stored_article(
    article_id: str,
    pub_date: Optional[datetime] = None,
    **fields: Any,
) -> Dict[str, Any]:
    """A document as it sits in the collection after an upsert."""
    doc = {
        "article_id": article_id,
        "title": f"Title {article_id}",
        "description": None,
        "keywords": [],
        "creator": [],
        "country": [],
        "category": [],
        "language": "english",
        "datatype": "news",
        "pubDate": pub_date,
    }
    doc.update(fields)
    return doc
