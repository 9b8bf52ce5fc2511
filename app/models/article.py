from __future__ import annotations

from datetime import datetime
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class ArticleRecord(BaseModel):
    """
    Canonical article document as stored in the `articles` collection.

    Field names follow the NewsData.io payload so stored documents and API
    responses line up with what the feed sends. `createdAt` / `updatedAt` are
    owned by the store and absent on freshly normalized records.
    """

    model_config = ConfigDict(extra="ignore")

    article_id: str
    title: Optional[str] = None
    link: Optional[str] = None
    keywords: List[str] = Field(default_factory=list)
    creator: List[str] = Field(default_factory=list)
    video_url: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    pubDate: Optional[datetime] = None
    image_url: Optional[str] = None
    source_id: Optional[str] = None
    source_priority: Optional[Union[int, float]] = None
    source_url: Optional[str] = None
    source_icon: Optional[str] = None
    language: Optional[str] = None
    country: List[str] = Field(default_factory=list)
    category: List[str] = Field(default_factory=list)
    ai_tag: Optional[Any] = None
    sentiment: Optional[str] = None
    # Upstream shape is not contractual; stored verbatim.
    sentiment_stats: Optional[Any] = None
    ai_region: Optional[Any] = None
    ai_org: Optional[Any] = None
    duplicate: Optional[bool] = None
    datatype: str = "news"
    createdAt: Optional[datetime] = None
    updatedAt: Optional[datetime] = None

    def to_document(self) -> dict[str, Any]:
        """Fields written on every upsert (store timestamps excluded)."""
        return self.model_dump(exclude={"createdAt", "updatedAt"})


class ArticleListResponse(BaseModel):
    """Paginated response for GET /articles."""

    success: bool = True
    total: int
    page: int
    totalPages: int
    articles: List[ArticleRecord]


class FilterOptionsResponse(BaseModel):
    success: bool = True
    languages: List[str] = Field(default_factory=list)
    countries: List[str] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    datatypes: List[str] = Field(default_factory=list)


class StatusResponse(BaseModel):
    success: bool = True
    totalArticles: int
    latestArticle: Optional[datetime] = None
    dbStatus: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    # only set by /status when the store is unreachable
    dbStatus: Optional[str] = None

    def body(self) -> dict:
        return self.model_dump(exclude_none=True)
