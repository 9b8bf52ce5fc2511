from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from app.models.article import ArticleRecord

_TEXT_FIELDS = (
    "title",
    "link",
    "video_url",
    "description",
    "content",
    "image_url",
    "source_id",
    "source_url",
    "source_icon",
    "language",
    "sentiment",
)
_LIST_FIELDS = ("keywords", "creator", "country", "category")
_PASSTHROUGH_FIELDS = ("ai_tag", "sentiment_stats", "ai_region", "ai_org")
DEFAULT_DATATYPE = "news"


class ArticleNormalizationError(Exception):
    """
    A single feed article that cannot become a record (no usable article_id).
    Logged and counted by the ingest run; never aborts the batch.
    """

    def __init__(self, message: str, raw: Dict[str, Any] | None = None):
        super().__init__(message)
        self.raw = raw or {}


def parse_pub_date(value: Any) -> Optional[datetime]:
    """
    Parse the feed's pubDate ("2024-05-01 12:34:56") or any ISO-8601 string.
    Naive values are UTC. Anything unparseable becomes None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def _as_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    return value if isinstance(value, str) else str(value)


def _as_list(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value if v is not None]
    return [str(value)]


def _as_number(value: Any) -> Optional[int | float]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    try:
        number = float(str(value).strip())
    except ValueError:
        return None
    return int(number) if number.is_integer() else number


def normalize_article(raw: Dict[str, Any]) -> ArticleRecord:
    """
    Map one element of the feed's `results` array onto the canonical record.

    Descriptive fields are copied verbatim, list fields default to [], pubDate
    is parsed (None when missing or invalid) and datatype defaults to "news".
    """
    if not isinstance(raw, dict):
        raise ArticleNormalizationError("feed article is not an object")

    article_id = raw.get("article_id")
    if article_id is None or str(article_id).strip() == "":
        raise ArticleNormalizationError("feed article has no article_id", raw)

    doc: Dict[str, Any] = {"article_id": str(article_id)}
    for field in _TEXT_FIELDS:
        doc[field] = _as_text(raw.get(field))
    for field in _LIST_FIELDS:
        doc[field] = _as_list(raw.get(field))
    for field in _PASSTHROUGH_FIELDS:
        doc[field] = raw.get(field)

    doc["pubDate"] = parse_pub_date(raw.get("pubDate"))
    doc["source_priority"] = _as_number(raw.get("source_priority"))
    duplicate = raw.get("duplicate")
    doc["duplicate"] = bool(duplicate) if duplicate is not None else None
    doc["datatype"] = _as_text(raw.get("datatype")) or DEFAULT_DATATYPE

    try:
        return ArticleRecord(**doc)
    except ValidationError as exc:
        raise ArticleNormalizationError(f"invalid feed article: {exc}", raw) from exc
