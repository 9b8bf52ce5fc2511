from __future__ import annotations

import math
import re
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Dict, List, Optional

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 20
# skip/limit travel as BSON int64
MAX_PAGING_VALUE = 2**63 - 1

# Mongo keeps millisecond precision; this is 23:59:59.999.
_END_OF_DAY = time(23, 59, 59, 999_000)


def parse_positive_int(value: Any, default: int, maximum: int = MAX_PAGING_VALUE) -> int:
    """Parse-or-default for page/limit: junk, blanks and values outside 1..maximum give `default`."""
    if value is None:
        return default
    try:
        number = int(str(value).strip())
    except ValueError:
        return default
    return number if 1 <= number <= maximum else default


def parse_calendar_date(value: Optional[str]) -> Optional[date]:
    """Accept "YYYY-MM-DD" or a full ISO timestamp; None when missing or invalid."""
    if not value or not value.strip():
        return None
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        return None


def split_csv(value: Optional[str]) -> List[str]:
    if not value:
        return []
    return [part.strip().lower() for part in value.split(",") if part.strip()]


def _contains(text: str) -> Dict[str, Any]:
    return {"$regex": re.escape(text), "$options": "i"}


@dataclass
class ArticleQuery:
    """Raw /articles query parameters, exactly as the client sent them."""

    startDate: Optional[str] = None
    endDate: Optional[str] = None
    author: Optional[str] = None
    language: Optional[str] = None
    country: Optional[str] = None
    category: Optional[str] = None
    datatype: Optional[str] = None
    search: Optional[str] = None
    page: Optional[str] = None
    limit: Optional[str] = None

    @property
    def page_number(self) -> int:
        page = parse_positive_int(self.page, DEFAULT_PAGE)
        # a page whose offset does not fit in int64 is as invalid as junk
        if (page - 1) * self.page_size > MAX_PAGING_VALUE:
            return DEFAULT_PAGE
        return page

    @property
    def page_size(self) -> int:
        return parse_positive_int(self.limit, DEFAULT_LIMIT)

    @property
    def skip(self) -> int:
        return (self.page_number - 1) * self.page_size

    def build_filter(self) -> Dict[str, Any]:
        """
        Compose every supplied filter into one Mongo filter document (AND).

        - startDate/endDate: pubDate range, endDate inclusive to end of day (UTC)
        - author: case-insensitive substring on any creator entry
        - language, datatype: exact, lower-cased
        - country: any of the listed values
        - category: all of the listed values
        - search: case-insensitive substring on title or description
        """
        filter_doc: Dict[str, Any] = {}

        start = parse_calendar_date(self.startDate)
        end = parse_calendar_date(self.endDate)
        if start or end:
            date_range: Dict[str, datetime] = {}
            if start:
                date_range["$gte"] = datetime.combine(start, time.min, tzinfo=timezone.utc)
            if end:
                date_range["$lte"] = datetime.combine(end, _END_OF_DAY, tzinfo=timezone.utc)
            filter_doc["pubDate"] = date_range

        if self.author and self.author.strip():
            filter_doc["creator"] = {"$elemMatch": _contains(self.author.strip())}

        if self.language and self.language.strip():
            filter_doc["language"] = self.language.strip().lower()

        countries = split_csv(self.country)
        if countries:
            filter_doc["country"] = {"$in": countries}

        categories = split_csv(self.category)
        if categories:
            filter_doc["category"] = {"$all": categories}

        if self.datatype and self.datatype.strip():
            filter_doc["datatype"] = self.datatype.strip().lower()

        if self.search and self.search.strip():
            needle = self.search.strip()
            filter_doc["$or"] = [
                {"title": _contains(needle)},
                {"description": _contains(needle)},
            ]

        return filter_doc


def total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit > 0 else 0


def distinct_options(values: List[Any]) -> List[str]:
    """Flatten, drop null/empty, dedupe and sort distinct values for a dropdown."""
    flat: set[str] = set()
    for value in values:
        items = value if isinstance(value, (list, tuple)) else [value]
        for item in items:
            if item is None:
                continue
            text = str(item)
            if text.strip():
                flat.add(text)
    return sorted(flat)
