# app/core/config.py
from __future__ import annotations

from pathlib import Path
from typing import List, Optional
from urllib.parse import quote_plus

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# .env lives next to the packages (project root)
ENV_FILE = Path(__file__).resolve().parents[2] / ".env"
load_dotenv(ENV_FILE, override=False)

LOCAL_MONGO_URI = "mongodb://localhost:27017"


class Settings(BaseSettings):
    # ---- App ----
    APP_VERSION: str = "1.0.0"
    PORT: int = 5000
    LOG_LEVEL: str = "INFO"
    CORS_ORIGINS: List[str] = ["*"]

    # ---- MongoDB ----
    MONGO_URI: Optional[str] = None
    DB_USERNAME: Optional[str] = None
    DB_PASSWORD: Optional[str] = None
    MONGO_CLUSTER_HOST: str = "cluster0.mongodb.net"
    MONGO_DB_NAME: str = "newsdb"
    MONGO_COLLECTION: str = "articles"

    # ---- NewsData.io feed ----
    NEWS_API_KEY: Optional[str] = None
    NEWS_API_URL: str = "https://newsdata.io/api/1/news"
    NEWS_LANGUAGE: str = "en"
    NEWS_FETCH_TIMEOUT_S: float = 30.0

    # ---- Ingestion schedule ----
    INGEST_ENABLED: bool = True
    INGEST_INTERVAL_HOURS: int = 6

    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    def mongo_uri(self) -> str:
        """
        Connection string for the article store.

        An explicit MONGO_URI wins. Otherwise Atlas credentials are turned into
        an SRV URI; without either we talk to a local mongod.
        """
        if self.MONGO_URI:
            return self.MONGO_URI
        if self.DB_USERNAME and self.DB_PASSWORD:
            user = quote_plus(self.DB_USERNAME)
            password = quote_plus(self.DB_PASSWORD)
            return (
                f"mongodb+srv://{user}:{password}@{self.MONGO_CLUSTER_HOST}/"
                f"{self.MONGO_DB_NAME}?retryWrites=true&w=majority"
            )
        return LOCAL_MONGO_URI


settings = Settings()


def require_news_api_key() -> str:
    """
    Runtime check with a clear message when the feed credential is missing.
    """
    if not settings.NEWS_API_KEY:
        raise RuntimeError(
            "NEWS_API_KEY is not set. Add it to the environment or .env "
            f"(looked in: {ENV_FILE})."
        )
    return settings.NEWS_API_KEY
