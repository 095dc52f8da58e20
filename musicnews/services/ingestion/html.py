from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urljoin

import httpx
from bs4 import BeautifulSoup

from musicnews.core.config import Settings, get_settings
from musicnews.services.ingestion.common import (
    NormalizedArticle,
    SourceKind,
    format_display_date,
    normalize_text,
    parse_publish_date,
    truncate_description,
)
from musicnews.utils.network import is_http_url

logger = logging.getLogger(__name__)

THUMBNAIL_SELECTOR = "figure.biography__image img"


@dataclass(frozen=True)
class ExtractOutcome:
    url: str
    article: NormalizedArticle | None = None
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.article is not None


def derive_page_id(page_url: str) -> str:
    """Directory name holding the page: ``.../column01/index.html`` -> ``column01``."""
    parts = page_url.split("/")
    if len(parts) < 2:
        return page_url
    return parts[-2]


def resolve_thumbnail(src: str | None, page_url: str) -> str | None:
    if not src or not src.strip():
        return None
    effective = src.strip()
    if effective.startswith("//"):
        effective = f"https:{effective}"
    try:
        resolved = urljoin(page_url, effective)
    except ValueError as exc:
        logger.warning("Could not resolve thumbnail URL %s for %s: %s", src, page_url, exc)
        return None
    if not is_http_url(resolved):
        logger.warning("Could not resolve thumbnail URL %s for %s", src, page_url)
        return None
    return resolved


def parse_article_html(html: str, page_url: str, settings: Settings | None = None) -> NormalizedArticle:
    settings = settings or get_settings()
    soup = BeautifulSoup(html, "html.parser")
    page_id = derive_page_id(page_url)

    title = ""
    if soup.title is not None:
        title = normalize_text(soup.title.get_text())
    if not title:
        heading = soup.find("h1")
        title = normalize_text(heading.get_text()) if heading else ""
    if not title:
        title = f"No Title ({page_id})"

    paragraph = soup.find("p")
    description = truncate_description(
        paragraph.get_text() if paragraph else None, settings.description_max_length
    )

    date_meta = soup.find("meta", attrs={"name": "date"})
    time_tag = soup.find("time", attrs={"datetime": True})
    raw_date = (date_meta.get("content") if date_meta else None) or (
        time_tag.get("datetime") if time_tag else None
    )
    published = parse_publish_date(raw_date)
    if raw_date and published is None:
        logger.debug("Could not parse publish date %r for %s", raw_date, page_url)

    image = soup.select_one(THUMBNAIL_SELECTOR)
    thumbnail_url = resolve_thumbnail(image.get("src") if image else None, page_url)

    fields = {
        "id": page_id,
        "source_kind": SourceKind.scraped,
        "title": title,
        "description": description,
        "url": page_url,
        "thumbnail_url": thumbnail_url,
        "display_date": format_display_date(published, settings.display_timezone),
    }
    if published is not None:
        fields["sort_date"] = published
    return NormalizedArticle(**fields)


class HtmlArticleExtractor:
    """Fetches statically hosted article pages and reads their metadata."""

    def __init__(self, settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None):
        self.settings = settings or get_settings()
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=self.settings.http_timeout_seconds,
            follow_redirects=True,
            transport=self._transport,
        )

    async def fetch_outcome(self, page_url: str) -> ExtractOutcome:
        try:
            async with self._client() as client:
                response = await client.get(page_url)
        except httpx.HTTPError as exc:
            logger.warning("Error fetching static news %s: %s", page_url, exc)
            return ExtractOutcome(url=page_url, reason=f"transport error: {exc}")
        except Exception as exc:  # noqa: BLE001
            logger.warning("Unexpected error fetching static news %s: %r", page_url, exc)
            return ExtractOutcome(url=page_url, reason=f"fetch error: {exc!r}")

        if not response.is_success:
            logger.warning("Failed to fetch static news %s: HTTP Status %s", page_url, response.status_code)
            return ExtractOutcome(url=page_url, reason=f"HTTP {response.status_code}")

        try:
            article = parse_article_html(response.text, page_url, self.settings)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not parse static news %s: %r", page_url, exc)
            return ExtractOutcome(url=page_url, reason=f"parse error: {exc!r}")
        return ExtractOutcome(url=page_url, article=article)

    async def extract(self, page_url: str) -> NormalizedArticle | None:
        return (await self.fetch_outcome(page_url)).article
