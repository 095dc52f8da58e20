import json
from datetime import timedelta

import httpx
import pytest

from musicnews.api.deps import get_aggregator, get_catalog_client, get_token_service, get_upstream_transport
from musicnews.main import app
from musicnews.services.aggregator import ArticleAggregator
from musicnews.services.cache import AggregationCache
from musicnews.services.ingestion.catalog import CatalogClient
from musicnews.services.ingestion.html import HtmlArticleExtractor
from musicnews.services.ingestion.static_urls import StaticUrlListLoader
from musicnews.services.syncpower.token import TokenService
from musicnews.utils import network

ORIGIN = "https://syncpower.vercel.app"
STATIC_PAGE = """
<html><head><title>Column one</title><meta name="date" content="2024-06-01"></head>
<body><figure class="biography__image"><img src="/img/one.jpg"></figure><p>Column body.</p></body></html>
"""


class Upstream:
    """Routes catalog and static page requests for a single test."""

    def __init__(self, catalog_articles: list[dict] | None = None, catalog_status: int = 200):
        self.catalog_articles = catalog_articles or []
        self.catalog_status = catalog_status
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if request.url.host == "catalog.test":
            if self.catalog_status != 200:
                return httpx.Response(self.catalog_status)
            return httpx.Response(200, json={"articles": self.catalog_articles})
        if request.url.path.endswith("/column01/index.html"):
            return httpx.Response(200, text=STATIC_PAGE)
        return httpx.Response(404)


def _catalog_articles() -> list[dict]:
    return [
        {"articleId": "a1", "title": "Catalog one", "url": "https://o.example.com/a1", "openDate": "2024-07-01"},
        {"articleId": "a2", "title": "Catalog two", "url": "https://o.example.com/a2", "openDate": "2024-05-01"},
    ]


@pytest.fixture
def wire(client, settings):
    def _wire(upstream: Upstream, urls: list[str] | None = None) -> ArticleAggregator:
        if urls is not None:
            with open(settings.static_news_config_path, "w", encoding="utf-8") as handle:
                json.dump(urls, handle)
        transport = httpx.MockTransport(upstream)
        catalog = CatalogClient(settings, transport=transport)
        aggregator = ArticleAggregator(
            cache=AggregationCache(ttl=timedelta(seconds=settings.interview_cache_ttl_seconds)),
            catalog=catalog,
            url_loader=StaticUrlListLoader(settings),
            extractor=HtmlArticleExtractor(settings, transport=transport),
        )
        app.dependency_overrides[get_aggregator] = lambda: aggregator
        app.dependency_overrides[get_catalog_client] = lambda: catalog
        return aggregator

    return _wire


def test_healthz(client):
    assert client.get("/healthz").json() == {"status": "ok"}


def test_interview_column_merges_sources(client, wire):
    wire(Upstream(_catalog_articles()), ["https://s.example.com/column01/index.html", "https://s.example.com/gone/index.html"])

    resp = client.get("/v1/interview-column?page=1&pageSize=10")

    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == ORIGIN
    body = resp.json()
    assert body["error"] is None
    assert body["data"]["total_count"] == 3
    items = body["data"]["items"]
    assert [item["id"] for item in items] == ["a1", "column01", "a2"]
    assert items[1]["source_kind"] == "scraped"
    assert items[1]["thumbnail_url"] == "https://s.example.com/img/one.jpg"
    assert items[1]["display_date"] == "2024/6/1"
    assert body["meta"] == {"page": 1, "page_size": 10, "cached": False}


def test_interview_column_pagination_and_cache(client, wire):
    upstream = Upstream(_catalog_articles())
    wire(upstream, ["https://s.example.com/column01/index.html"])

    first = client.get("/v1/interview-column?page=2&pageSize=2").json()
    request_count = len(upstream.requests)
    upstream.catalog_articles.append(
        {"articleId": "a3", "title": "Later", "url": "https://o.example.com/a3", "openDate": "2024-08-01"}
    )
    second = client.get("/v1/interview-column?page=2&pageSize=2").json()
    beyond = client.get("/v1/interview-column?page=9&pageSize=2")

    assert [item["id"] for item in first["data"]["items"]] == ["a2"]
    assert second["data"] == first["data"]
    assert second["meta"]["cached"] is True
    assert len(upstream.requests) == request_count
    assert beyond.status_code == 200
    assert beyond.json()["data"] == {"items": [], "total_count": 3}


def test_interview_column_static_config_failure(client, wire, settings):
    wire(Upstream(_catalog_articles()))

    resp = client.get("/v1/interview-column")

    assert resp.status_code == 500
    body = resp.json()
    assert [item["id"] for item in body["data"]["items"]] == ["a1", "a2"]
    assert body["error"]["code"] == "SOURCE_ERROR"
    assert body["error"]["message"] == "静的ニュース設定の読み込みに失敗しました。"
    assert body["error"]["details"]["failures"] == [
        {"source": "static", "message": "静的ニュース設定の読み込みに失敗しました。"}
    ]


def test_interview_column_catalog_failure(client, wire):
    wire(Upstream(catalog_status=503), ["https://s.example.com/column01/index.html"])

    resp = client.get("/v1/interview-column")

    assert resp.status_code == 500
    body = resp.json()
    assert [item["id"] for item in body["data"]["items"]] == ["column01"]
    assert body["error"]["message"] == "推し楽ニュースの取得に失敗しました。"


@pytest.mark.parametrize("query", ["page=0", "page=-1", "pageSize=0", "page=abc"])
def test_interview_column_rejects_bad_paging(client, wire, query):
    upstream = Upstream(_catalog_articles())
    wire(upstream, ["https://s.example.com/column01/index.html"])

    resp = client.get(f"/v1/interview-column?{query}")

    assert resp.status_code == 422
    assert resp.json()["error"]["code"] == "VALIDATION_ERROR"
    assert upstream.requests == []


def test_interview_column_preflight(client):
    resp = client.options("/v1/interview-column")
    assert resp.status_code == 204
    assert resp.headers["access-control-allow-origin"] == ORIGIN
    assert resp.headers["access-control-allow-methods"] == "GET, OPTIONS"
    assert resp.headers["access-control-allow-headers"] == "Content-Type, Authorization"


def test_static_news_lists_scraped_articles(client, wire):
    wire(Upstream(), ["https://s.example.com/column01/index.html", "https://s.example.com/gone/index.html"])

    resp = client.get("/v1/static-news")

    assert resp.status_code == 200
    assert [item["title"] for item in resp.json()["data"]["items"]] == ["Column one"]


def test_static_news_config_failure(client, wire):
    wire(Upstream())
    resp = client.get("/v1/static-news")
    assert resp.status_code == 500
    assert resp.json()["error"]["code"] == "SOURCE_ERROR"


def test_oshiraku_news_returns_raw_articles(client, wire):
    wire(Upstream(_catalog_articles()))
    resp = client.get("/v1/oshiraku-news")
    assert resp.status_code == 200
    assert resp.headers["access-control-allow-origin"] == ORIGIN
    assert resp.json()["data"][0]["articleId"] == "a1"


def test_oshiraku_news_upstream_failure(client, wire):
    wire(Upstream(catalog_status=500))
    resp = client.get("/v1/oshiraku-news")
    assert resp.status_code == 502
    assert resp.headers["access-control-allow-origin"] == ORIGIN
    assert resp.json()["error"]["message"] == "取得失敗"


def test_auth_token_endpoint(client, settings):
    configured = settings.model_copy(update={"syncpower_client_id": "id", "syncpower_client_secret": "secret"})
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"token": "tkn", "expires_at": 600}))
    service = TokenService(configured, transport=transport)
    app.dependency_overrides[get_token_service] = lambda: service

    resp = client.get("/v1/auth/token")

    assert resp.status_code == 200
    assert resp.json()["data"]["token"] == "tkn"


def test_auth_token_missing_credentials(client, settings):
    app.dependency_overrides[get_token_service] = lambda: TokenService(settings)
    resp = client.get("/v1/auth/token")
    assert resp.status_code == 400
    assert resp.json()["error"]["code"] == "HTTP_ERROR"


def test_image_proxy_requires_url_and_token(client):
    assert client.get("/v1/image-proxy").status_code == 400
    resp = client.get("/v1/image-proxy?url=https://images.example.com/a.jpg")
    assert resp.status_code == 401


def test_image_proxy_rejects_unsafe_scheme(client):
    resp = client.get("/v1/image-proxy?url=file:///etc/passwd", headers={"Authorization": "Bearer t"})
    assert resp.status_code == 400


def test_image_proxy_passes_image_through(client, monkeypatch):
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, content=b"\x89PNG", headers={"content-type": "image/png"})

    monkeypatch.setattr(network, "_is_private_host", lambda host: False)
    app.dependency_overrides[get_upstream_transport] = lambda: httpx.MockTransport(handler)

    resp = client.get("/v1/image-proxy?url=https://images.example.com/a.png", headers={"Authorization": "Bearer tkn"})

    assert resp.status_code == 200
    assert resp.content == b"\x89PNG"
    assert resp.headers["content-type"] == "image/png"
    assert seen[0].headers["authorization"] == "Bearer tkn"


def test_image_proxy_upstream_failure(client, monkeypatch):
    monkeypatch.setattr(network, "_is_private_host", lambda host: False)
    app.dependency_overrides[get_upstream_transport] = lambda: httpx.MockTransport(lambda r: httpx.Response(404))

    resp = client.get("/v1/image-proxy?url=https://images.example.com/a.png", headers={"Authorization": "Bearer tkn"})
    assert resp.status_code == 502


def test_metrics_endpoint(client):
    client.get("/healthz")
    resp = client.get("/metrics")
    assert resp.status_code == 200
    assert "musicnews_api_requests_total" in resp.text
