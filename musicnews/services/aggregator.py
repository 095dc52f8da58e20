"""Interview/column feed: merges catalog and scraped articles behind a timed cache."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from time import perf_counter

from musicnews.core.observability import CACHE_LOOKUPS, REFRESH_LATENCY, SOURCE_FETCH_COUNT
from musicnews.services.cache import AggregationCache, Snapshot
from musicnews.services.ingestion.catalog import (
    CATALOG_FAILURE_MESSAGE,
    CATALOG_SOURCE,
    CatalogClient,
    CatalogFetchResult,
)
from musicnews.services.ingestion.common import NormalizedArticle, SourceFailure
from musicnews.services.ingestion.html import HtmlArticleExtractor
from musicnews.services.ingestion.static_urls import (
    STATIC_FETCH_FAILURE_MESSAGE,
    STATIC_SOURCE,
    StaticUrlListLoader,
)

logger = logging.getLogger(__name__)


class InvalidPageRequest(ValueError):
    pass


@dataclass
class PageResult:
    items: list[NormalizedArticle]
    total_count: int
    failures: list[SourceFailure] = field(default_factory=list)
    from_cache: bool = False

    @property
    def error_message(self) -> str | None:
        if not self.failures:
            return None
        return " ".join(failure.message for failure in self.failures)


def validate_page_request(page: object, page_size: object) -> tuple[int, int]:
    for name, value in (("page", page), ("page_size", page_size)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise InvalidPageRequest(f"{name} must be an integer")
        if value < 1:
            raise InvalidPageRequest(f"{name} must be >= 1")
    return page, page_size  # type: ignore[return-value]


def sort_newest_first(articles: list[NormalizedArticle]) -> list[NormalizedArticle]:
    # sorted() is stable, so equal dates keep source order.
    return sorted(articles, key=lambda article: article.sort_date, reverse=True)


class ArticleAggregator:
    def __init__(
        self,
        cache: AggregationCache,
        catalog: CatalogClient,
        url_loader: StaticUrlListLoader,
        extractor: HtmlArticleExtractor,
    ):
        self.cache = cache
        self.catalog = catalog
        self.url_loader = url_loader
        self.extractor = extractor

    async def scrape_static(self) -> tuple[list[NormalizedArticle], list[SourceFailure]]:
        loaded = self.url_loader.load()
        if loaded.failure is not None:
            SOURCE_FETCH_COUNT.labels(STATIC_SOURCE, "failure").inc()
            return [], [loaded.failure]
        if not loaded.urls:
            return [], []

        try:
            outcomes = await asyncio.gather(*(self.extractor.fetch_outcome(url) for url in loaded.urls))
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to fetch and parse static articles: %r", exc)
            SOURCE_FETCH_COUNT.labels(STATIC_SOURCE, "failure").inc()
            return [], [SourceFailure(source=STATIC_SOURCE, message=STATIC_FETCH_FAILURE_MESSAGE)]
        articles = [outcome.article for outcome in outcomes if outcome.article is not None]
        skipped = len(outcomes) - len(articles)
        if skipped:
            logger.warning("Dropped %s of %s static pages", skipped, len(outcomes))
        logger.info("Fetched %s static articles", len(articles))
        SOURCE_FETCH_COUNT.labels(STATIC_SOURCE, "success").inc()
        return articles, []

    async def _fetch_catalog(self) -> CatalogFetchResult:
        try:
            result = await self.catalog.fetch_all()
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to fetch catalog articles: %r", exc)
            result = CatalogFetchResult(failure=SourceFailure(source=CATALOG_SOURCE, message=CATALOG_FAILURE_MESSAGE))
        SOURCE_FETCH_COUNT.labels(CATALOG_SOURCE, "failure" if result.failure else "success").inc()
        return result

    async def refresh(self) -> tuple[Snapshot, list[SourceFailure]]:
        """Rebuild the snapshot from both sources; a partial refresh still replaces it."""
        started_at = self.cache.now()
        started = perf_counter()
        catalog_result, (static_articles, static_failures) = await asyncio.gather(
            self._fetch_catalog(), self.scrape_static()
        )

        failures: list[SourceFailure] = []
        if catalog_result.failure is not None:
            failures.append(catalog_result.failure)
        failures.extend(static_failures)

        merged = sort_newest_first([*catalog_result.articles, *static_articles])
        snapshot = self.cache.replace(merged, captured_at=started_at)
        REFRESH_LATENCY.observe(perf_counter() - started)
        logger.info("Cached %s interview/column articles (%s failure(s))", len(snapshot), len(failures))
        return snapshot, failures

    async def get_page(self, page: int, page_size: int) -> PageResult:
        page, page_size = validate_page_request(page, page_size)

        snapshot = self.cache.fresh_snapshot()
        if snapshot is not None:
            CACHE_LOOKUPS.labels("hit").inc()
            logger.info("Using cached interview/column data")
            return PageResult(
                items=snapshot.page(page, page_size), total_count=len(snapshot), from_cache=True
            )

        CACHE_LOOKUPS.labels("miss").inc()
        logger.info("Cache expired or not found; fetching new data")
        snapshot, failures = await self.refresh()
        return PageResult(items=snapshot.page(page, page_size), total_count=len(snapshot), failures=failures)
