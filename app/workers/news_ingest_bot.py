from __future__ import annotations

import argparse
import asyncio

from app.core.config import settings
from app.core.logging import configure_logging, get_logger
from app.core.request_id import with_run_id
from services.article_store import close_article_store, init_article_store
from services.news_ingest_service import fetch_and_store_news

configure_logging(service_name="worker", level=settings.LOG_LEVEL)
logger = get_logger().bind(worker="news_ingest_bot")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="NewsIngestBot: fetch the latest NewsData.io articles once and upsert them."
    )
    parser.add_argument(
        "--run-id",
        default=None,
        help="Optional run id to tag log lines with (default: generated).",
    )
    return parser.parse_args()


async def run_ingest(run_id: str | None = None) -> int:
    with with_run_id(run_id):
        try:
            await init_article_store()
            result = await fetch_and_store_news()
        finally:
            await close_article_store()

    logger.info(
        "news_ingest_bot_finished",
        status=result["status"],
        inserted=result["inserted"],
        updated=result["updated"],
    )
    return 1 if result["status"] == "failed" else 0


async def main_async() -> int:
    args = parse_args()
    try:
        return await run_ingest(run_id=args.run_id)
    except Exception as exc:
        logger.error("news_ingest_bot_failed", error=str(exc))
        return 1


def main() -> None:
    exit_code = asyncio.run(main_async())
    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
