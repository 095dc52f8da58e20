from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx
from pydantic import ValidationError

from musicnews.core.config import Settings, get_settings
from musicnews.services.ingestion.common import (
    NormalizedArticle,
    SourceFailure,
    SourceKind,
    format_display_date,
    normalize_text,
    parse_publish_date,
    truncate_description,
)

logger = logging.getLogger(__name__)

CATALOG_SOURCE = "catalog"
CATALOG_FAILURE_MESSAGE = "推し楽ニュースの取得に失敗しました。"
_NORMALIZED_KEYS = {"articleId", "title", "description", "url", "thumbnailImage", "openDate"}


class CatalogError(RuntimeError):
    pass


@dataclass
class CatalogFetchResult:
    articles: list[NormalizedArticle] = field(default_factory=list)
    failure: SourceFailure | None = None
    pages_requested: int = 0


def _as_text(value: Any) -> str | None:
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value)


def normalize_catalog_record(record: dict[str, Any], settings: Settings | None = None) -> NormalizedArticle:
    settings = settings or get_settings()
    article_id = _as_text(record.get("articleId")) or ""
    published = parse_publish_date(_as_text(record.get("openDate")))
    thumbnail = record.get("thumbnailImage") or {}

    fields: dict[str, Any] = {
        "id": article_id,
        "source_kind": SourceKind.catalog,
        "title": normalize_text(_as_text(record.get("title"))) or f"No Title ({article_id})",
        "description": truncate_description(_as_text(record.get("description")), settings.description_max_length),
        "url": _as_text(record.get("url")) or "",
        "thumbnail_url": _as_text(thumbnail.get("url")) if isinstance(thumbnail, dict) else None,
        "display_date": format_display_date(published, settings.display_timezone),
        "extra": {key: value for key, value in record.items() if key not in _NORMALIZED_KEYS},
    }
    if published is not None:
        fields["sort_date"] = published
    return NormalizedArticle(**fields)


class CatalogClient:
    """Client for the paginated catalog article-search endpoint."""

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.settings.http_timeout_seconds, transport=self._transport)

    def _params(self, page: int, page_size: int, labels: bool = True) -> dict[str, Any]:
        params: dict[str, Any] = {
            "oshTagId": self.settings.oshiraku_tag_id,
            "page": page,
            "pageSize": page_size,
            "sortType": "opendate",
        }
        if labels and self.settings.oshiraku_labels:
            params["label"] = self.settings.oshiraku_labels
        return params

    async def _get_articles(self, client: httpx.AsyncClient, params: dict[str, Any]) -> list[dict[str, Any]]:
        headers = {"apikey": self.settings.oshiraku_api_key or ""}
        response = await client.get(self.settings.oshiraku_api_endpoint, params=params, headers=headers)
        response.raise_for_status()
        try:
            body = response.json()
        except ValueError as exc:
            raise CatalogError(f"Invalid JSON from catalog: {exc}") from exc
        if not isinstance(body, dict):
            raise CatalogError("Catalog response is not an object")
        articles = body.get("articles") or []
        if not isinstance(articles, list):
            raise CatalogError("Catalog 'articles' is not a list")
        return articles

    def _normalize_all(self, records: list[Any]) -> list[NormalizedArticle]:
        articles: list[NormalizedArticle] = []
        for record in records:
            if not isinstance(record, dict):
                logger.warning("Skipping non-object catalog record: %r", record)
                continue
            try:
                articles.append(normalize_catalog_record(record, self.settings))
            except (ValidationError, TypeError, ValueError, AttributeError, OverflowError) as exc:
                logger.warning("Skipping catalog record %s: %s", record.get("articleId"), exc)
        return articles

    async def fetch_page(self, page: int, page_size: int) -> list[dict[str, Any]]:
        async with self._client() as client:
            return await self._get_articles(client, self._params(page, page_size))

    async def fetch_latest(self, limit: int | None = None) -> list[dict[str, Any]]:
        limit = limit or self.settings.oshiraku_latest_page_size
        async with self._client() as client:
            return await self._get_articles(client, self._params(1, limit, labels=False))

    async def fetch_all(self) -> CatalogFetchResult:
        """Page through the endpoint until a short page; failures keep what was gathered."""
        page_size = self.settings.oshiraku_max_page_size
        result = CatalogFetchResult()
        page = 1
        try:
            async with self._client() as client:
                while True:
                    records = await self._get_articles(client, self._params(page, page_size))
                    result.pages_requested += 1
                    result.articles.extend(self._normalize_all(records))
                    # A short page is taken as the last one; no total count is available.
                    if len(records) < page_size:
                        break
                    page += 1
        except (httpx.HTTPError, CatalogError) as exc:
            logger.error("Failed to fetch catalog articles on page %s: %s", page, exc)
            result.failure = SourceFailure(source=CATALOG_SOURCE, message=CATALOG_FAILURE_MESSAGE)
            return result

        logger.info("Fetched %s catalog articles in %s page(s)", len(result.articles), result.pages_requested)
        return result
