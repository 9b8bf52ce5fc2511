from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from app.core.config import require_news_api_key, settings
from app.core.logging import get_logger
from services.article_normalization import ArticleNormalizationError, normalize_article
from services.article_store import ArticleStore, get_article_store

logger = get_logger()

USER_AGENT = "newsfeed-sync/1.0"


class FeedError(Exception):
    """The feed could not be fetched or answered with an error body."""


def _error_detail(response: httpx.Response) -> str:
    # NewsData.io error bodies look like {"status": "error", "results": {"message": ...}}
    try:
        payload = response.json()
    except ValueError:
        return response.text[:300]
    if isinstance(payload, dict):
        results = payload.get("results")
        if isinstance(results, dict) and results.get("message"):
            return str(results["message"])
        if payload.get("message"):
            return str(payload["message"])
    return str(payload)[:300]


def _summary(status: str, *, fetched: int = 0, inserted: int = 0, updated: int = 0,
             skipped: int = 0, error: Optional[str] = None) -> Dict[str, Any]:
    return {
        "status": status,
        "fetched": fetched,
        "inserted": inserted,
        "updated": updated,
        "skipped": skipped,
        "error": error,
    }


class NewsIngestService:
    """
    One ingestion run against the NewsData.io `news` endpoint.

    Use as an async context manager so the HTTP client is opened and closed
    around the run:

        async with NewsIngestService(api_key=...) as service:
            articles = await service.fetch_latest_articles()
            counts = await service.store_articles(articles)
    """

    def __init__(
        self,
        *,
        api_key: str,
        url: Optional[str] = None,
        language: Optional[str] = None,
        timeout_s: Optional[float] = None,
        store: Optional[ArticleStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.url = url or settings.NEWS_API_URL
        self.language = language or settings.NEWS_LANGUAGE
        self.timeout_s = timeout_s if timeout_s is not None else settings.NEWS_FETCH_TIMEOUT_S
        self.store = store or get_article_store()
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "NewsIngestService":
        self._client = httpx.AsyncClient(
            timeout=self.timeout_s,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def fetch_latest_articles(self) -> List[Dict[str, Any]]:
        if not self._client:
            raise RuntimeError("NewsIngestService client not initialized")
        try:
            response = await self._client.get(
                self.url,
                params={"apikey": self.api_key, "language": self.language},
            )
        except httpx.HTTPError as exc:
            raise FeedError(f"feed request failed: {exc.__class__.__name__}: {exc}") from exc

        if response.status_code >= 400:
            raise FeedError(f"feed returned HTTP {response.status_code}: {_error_detail(response)}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise FeedError("feed returned a non-JSON body") from exc

        if not isinstance(payload, dict):
            raise FeedError("feed returned an unexpected body")
        if str(payload.get("status", "")).lower() == "error":
            raise FeedError(f"feed reported an error: {_error_detail(response)}")

        results = payload.get("results") or []
        if not isinstance(results, list):
            raise FeedError("feed `results` is not a list")
        return results

    async def store_articles(self, articles: List[Dict[str, Any]]) -> Dict[str, int]:
        """
        Normalize and upsert one article at a time, in feed order.
        A store error propagates and ends the batch; articles without an
        article_id are skipped and counted.
        """
        inserted = 0
        updated = 0
        skipped = 0
        for raw in articles:
            try:
                record = normalize_article(raw)
            except ArticleNormalizationError as exc:
                skipped += 1
                logger.warning(
                    "news_ingest_article_skipped",
                    error=str(exc),
                    title=exc.raw.get("title"),
                    link=exc.raw.get("link"),
                )
                continue

            outcome = await self.store.upsert_article(record)
            if outcome == "inserted":
                inserted += 1
            else:
                updated += 1
        return {"inserted": inserted, "updated": updated, "skipped": skipped}


async def fetch_and_store_news(
    *,
    store: Optional[ArticleStore] = None,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> Dict[str, Any]:
    """
    Fetch the latest feed page and upsert it into the article store.

    Never raises: any failure is logged and reported through the returned
    summary, and the next scheduled run tries again.
    """
    logger.info("news_ingest_started", url=settings.NEWS_API_URL, language=settings.NEWS_LANGUAGE)

    try:
        api_key = require_news_api_key()
    except RuntimeError as exc:
        logger.error("news_ingest_failed", error=str(exc))
        return _summary("failed", error=str(exc))

    fetched = 0
    try:
        async with NewsIngestService(api_key=api_key, store=store, transport=transport) as service:
            articles = await service.fetch_latest_articles()
            fetched = len(articles)
            if not articles:
                logger.info("news_ingest_no_articles")
                return _summary("empty")

            counts = await service.store_articles(articles)
    except Exception as exc:
        logger.error(
            "news_ingest_failed",
            error=str(exc),
            error_type=exc.__class__.__name__,
            fetched=fetched,
        )
        return _summary("failed", fetched=fetched, error=str(exc))

    logger.info(
        "news_ingest_summary",
        inserted=counts["inserted"],
        updated=counts["updated"],
        skipped=counts["skipped"],
        total=fetched,
    )
    return _summary("ok", fetched=fetched, **counts)
