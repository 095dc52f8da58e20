import httpx
from fastapi import Request

from musicnews.services.aggregator import ArticleAggregator
from musicnews.services.ingestion.catalog import CatalogClient
from musicnews.services.syncpower.token import TokenService


def get_aggregator(request: Request) -> ArticleAggregator:
    return request.app.state.aggregator


def get_catalog_client(request: Request) -> CatalogClient:
    return request.app.state.catalog_client


def get_token_service(request: Request) -> TokenService:
    return request.app.state.token_service


def get_upstream_transport(request: Request) -> httpx.AsyncBaseTransport | None:
    return getattr(request.app.state, "upstream_transport", None)
