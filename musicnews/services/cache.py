from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from musicnews.core.time import now_utc
from musicnews.services.ingestion.common import NormalizedArticle


@dataclass(frozen=True)
class Snapshot:
    articles: tuple[NormalizedArticle, ...]
    captured_at: datetime

    def __len__(self) -> int:
        return len(self.articles)

    def page(self, page: int, page_size: int) -> list[NormalizedArticle]:
        start = (page - 1) * page_size
        return list(self.articles[start : start + page_size])


class AggregationCache:
    """Holds the latest merged snapshot; refreshes swap the whole reference."""

    def __init__(self, ttl: timedelta, clock: Callable[[], datetime] = now_utc):
        self.ttl = ttl
        self._clock = clock
        self._snapshot: Snapshot | None = None

    @property
    def snapshot(self) -> Snapshot | None:
        return self._snapshot

    def now(self) -> datetime:
        return self._clock()

    def fresh_snapshot(self) -> Snapshot | None:
        snapshot = self._snapshot
        if snapshot is None:
            return None
        if self.now() - snapshot.captured_at < self.ttl:
            return snapshot
        return None

    def replace(self, articles: Iterable[NormalizedArticle], captured_at: datetime | None = None) -> Snapshot:
        snapshot = Snapshot(articles=tuple(articles), captured_at=captured_at or self.now())
        self._snapshot = snapshot
        return snapshot

    def invalidate(self) -> None:
        self._snapshot = None
