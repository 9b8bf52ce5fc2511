from __future__ import annotations

import asyncio
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from fastapi.responses import JSONResponse

from app.core.logging import get_logger
from app.models.article import (
    ArticleListResponse,
    ArticleRecord,
    ErrorResponse,
    FilterOptionsResponse,
    StatusResponse,
)
from services.article_query import ArticleQuery, distinct_options, total_pages
from services.article_store import get_article_store

logger = get_logger()

router = APIRouter(tags=["articles"])

_FILTER_FIELDS = ("language", "country", "category", "datatype")

_STORE_ERRORS = {500: {"model": ErrorResponse, "description": "Article store query failed"}}


# page/limit are taken as strings so junk falls back to defaults instead of a 422.
@router.get("/articles", response_model=ArticleListResponse, responses=_STORE_ERRORS)
async def list_articles(
    startDate: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive."),
    endDate: Optional[str] = Query(default=None, description="YYYY-MM-DD, inclusive through end of day."),
    author: Optional[str] = Query(default=None, description="Substring of any creator (case-insensitive)."),
    language: Optional[str] = Query(default=None),
    country: Optional[str] = Query(default=None, description="Comma-separated; any may match."),
    category: Optional[str] = Query(default=None, description="Comma-separated; all must match."),
    datatype: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None, description="Substring of title or description."),
    page: Optional[str] = Query(default=None, description="1-based page, default 1."),
    limit: Optional[str] = Query(default=None, description="Page size, default 20."),
) -> ArticleListResponse:
    """Filtered, paginated article listing, newest pubDate first."""
    query = ArticleQuery(
        startDate=startDate,
        endDate=endDate,
        author=author,
        language=language,
        country=country,
        category=category,
        datatype=datatype,
        search=search,
        page=page,
        limit=limit,
    )
    filter_doc = query.build_filter()
    store = get_article_store()
    try:
        docs, total = await asyncio.gather(
            store.find_articles(filter_doc, skip=query.skip, limit=query.page_size),
            store.count_articles(filter_doc),
        )
    except Exception as e:
        logger.error("list_articles_failed", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    return ArticleListResponse(
        total=total,
        page=query.page_number,
        totalPages=total_pages(total, query.page_size),
        articles=[ArticleRecord.model_validate(doc) for doc in docs],
    )


@router.get("/filters", response_model=FilterOptionsResponse, responses=_STORE_ERRORS)
async def get_filter_options() -> FilterOptionsResponse:
    """Distinct values for the client's filter dropdowns."""
    store = get_article_store()
    try:
        languages, countries, categories, datatypes = await asyncio.gather(
            *(store.distinct_values(field) for field in _FILTER_FIELDS)
        )
    except Exception as e:
        logger.error("filter_options_failed", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    return FilterOptionsResponse(
        languages=distinct_options(languages),
        countries=distinct_options(countries),
        categories=distinct_options(categories),
        datatypes=distinct_options(datatypes),
    )


@router.get(
    "/status",
    response_model=StatusResponse,
    responses={**_STORE_ERRORS, 503: {"model": ErrorResponse, "description": "Article store unreachable"}},
)
async def get_status():
    """Record count, newest pubDate and store connectivity."""
    store = get_article_store()
    if not await store.ping():
        return JSONResponse(
            status_code=503,
            content=ErrorResponse(error="Article store unavailable", dbStatus="disconnected").body(),
        )
    try:
        total, latest = await asyncio.gather(store.count_articles(), store.latest_pub_date())
    except Exception as e:
        logger.error("status_failed", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))

    return StatusResponse(totalArticles=total, latestArticle=latest, dbStatus="connected")
