from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import TypeAdapter, ValidationError

from musicnews.core.config import Settings, get_settings
from musicnews.services.ingestion.common import SourceFailure

logger = logging.getLogger(__name__)

STATIC_SOURCE = "static"
STATIC_CONFIG_FAILURE_MESSAGE = "静的ニュース設定の読み込みに失敗しました。"
STATIC_FETCH_FAILURE_MESSAGE = "静的ニュース記事の取得に失敗しました。"

_URL_LIST = TypeAdapter(list[str])


@dataclass
class UrlListResult:
    urls: list[str] = field(default_factory=list)
    failure: SourceFailure | None = None


class StaticUrlListLoader:
    """Reads the JSON list of statically hosted page URLs to scrape."""

    def __init__(self, settings: Settings | None = None, path: str | Path | None = None):
        self.settings = settings or get_settings()
        self.path = Path(path or self.settings.static_news_config_path)

    def load(self) -> UrlListResult:
        try:
            urls = _URL_LIST.validate_json(self.path.read_bytes())
        except (OSError, ValidationError) as exc:
            logger.error("Failed to read or parse static news config file %s: %s", self.path, exc)
            return UrlListResult(failure=SourceFailure(source=STATIC_SOURCE, message=STATIC_CONFIG_FAILURE_MESSAGE))

        urls = [url.strip() for url in urls if url.strip()]
        logger.info("Loaded %s URLs from %s", len(urls), self.path)
        return UrlListResult(urls=urls)
