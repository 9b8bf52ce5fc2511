# app/main.py
from __future__ import annotations

from typing import Optional

from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

# --- Logging & request-id ---
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.requests import Request
from starlette.responses import Response as StarletteResponse

from api.routers.articles import router as articles_router
from app.core.config import settings
from app.core.ingest_scheduler import IngestScheduler
from app.core.logging import configure_logging, get_logger
from app.core.request_id import clear_request_id, new_id, set_request_id
from app.models.article import ErrorResponse
from services.article_store import close_article_store, init_article_store
from services.news_ingest_service import fetch_and_store_news

configure_logging(service_name="api", level=settings.LOG_LEVEL)
logger = get_logger()

app = FastAPI(
    title="Newsfeed Sync API",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

ingest_scheduler: Optional[IngestScheduler] = None


@app.on_event("startup")
async def _startup() -> None:
    global ingest_scheduler
    try:
        await init_article_store()
    except Exception as exc:
        # Serve anyway; /status reports the store as disconnected.
        logger.error("article_store_init_failed", error=str(exc))

    if settings.INGEST_ENABLED:
        ingest_scheduler = IngestScheduler(
            fetch_and_store_news,
            interval_hours=settings.INGEST_INTERVAL_HOURS,
        )
        ingest_scheduler.start()


@app.on_event("shutdown")
async def _shutdown() -> None:
    global ingest_scheduler
    if ingest_scheduler is not None:
        await ingest_scheduler.stop()
        ingest_scheduler = None
    await close_article_store()


class RequestIdMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        req_id = request.headers.get("x-request-id") or new_id()
        set_request_id(req_id)

        logger.info("request_started", method=request.method, path=str(request.url.path))
        try:
            response: StarletteResponse = await call_next(request)
        except Exception as exc:
            logger.error("request_exception", error=str(exc.__class__.__name__))
            clear_request_id()
            raise
        logger.info("request_ended", status_code=response.status_code)
        response.headers["X-Request-Id"] = req_id
        clear_request_id()
        return response


app.add_middleware(RequestIdMiddleware)
# Added last, so it wraps the request-id middleware and the routers.
# Unhandled-exception 500s are rendered outside it and carry no CORS headers.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_methods=["GET", "OPTIONS", "HEAD"],
    allow_headers=["*"],
)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(error=str(exc.detail)).body(),
        headers=dict(exc.headers or {}),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(status_code=422, content=ErrorResponse(error=str(exc.errors())).body())


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_exception", exc_info=True)
    return JSONResponse(status_code=500, content=ErrorResponse(error=str(exc)).body())


app.include_router(articles_router)

logger.info("routers_registered", routers=["articles"])


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
