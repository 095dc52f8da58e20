import httpx
from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request
from starlette.responses import JSONResponse, Response

from musicnews.api.deps import get_aggregator, get_catalog_client, get_token_service, get_upstream_transport
from musicnews.core.cors import cors_headers
from musicnews.core.responses import partial_response, success_response
from musicnews.schemas.common import ArticlePage, StaticNewsOut, TokenOut
from musicnews.services.aggregator import ArticleAggregator, InvalidPageRequest
from musicnews.services.image_proxy import ImageFetchError, bearer_token, fetch_image
from musicnews.services.ingestion.catalog import CatalogClient, CatalogError
from musicnews.services.syncpower.token import TokenError, TokenService
from musicnews.utils.network import HostNotAllowedError, UnsafeUrlError

router = APIRouter(prefix="/v1", tags=["v1"])


def _trace_id(request: Request) -> str:
    return getattr(request.state, "trace_id", "missing-trace-id")


def _preflight() -> Response:
    return Response(status_code=204, headers=cors_headers())


@router.get("/interview-column")
async def interview_column(
    request: Request,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=10, ge=1, alias="pageSize"),
    aggregator: ArticleAggregator = Depends(get_aggregator),
):
    try:
        result = await aggregator.get_page(page, page_size)
    except InvalidPageRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    data = ArticlePage(items=result.items, total_count=result.total_count).model_dump(mode="json")
    payload, status = partial_response(
        data,
        code="SOURCE_ERROR",
        message=result.error_message,
        trace_id=_trace_id(request),
        details={"failures": [failure.model_dump() for failure in result.failures]},
        meta={"page": page, "page_size": page_size, "cached": result.from_cache},
    )
    return JSONResponse(payload, status_code=status, headers=cors_headers())


@router.options("/interview-column")
def interview_column_preflight():
    return _preflight()


@router.get("/static-news")
async def static_news(request: Request, aggregator: ArticleAggregator = Depends(get_aggregator)):
    articles, failures = await aggregator.scrape_static()
    data = StaticNewsOut(items=articles).model_dump(mode="json")
    payload, status = partial_response(
        data,
        code="SOURCE_ERROR",
        message=" ".join(failure.message for failure in failures) or None,
        trace_id=_trace_id(request),
        details={"failures": [failure.model_dump() for failure in failures]},
    )
    return JSONResponse(payload, status_code=status)


@router.get("/oshiraku-news")
async def oshiraku_news(catalog: CatalogClient = Depends(get_catalog_client)):
    try:
        articles = await catalog.fetch_latest()
    except (httpx.HTTPError, CatalogError) as exc:
        raise HTTPException(status_code=502, detail="取得失敗", headers=cors_headers()) from exc
    return JSONResponse(success_response(articles), headers=cors_headers())


@router.options("/oshiraku-news")
def oshiraku_news_preflight():
    return _preflight()


@router.get("/auth/token")
async def auth_token(tokens: TokenService = Depends(get_token_service)):
    try:
        grant = await tokens.get_token()
    except TokenError as exc:
        raise HTTPException(status_code=exc.status_code, detail=f"Failed to obtain access token: {exc}") from exc
    return success_response(TokenOut(token=grant.token, expires_at=grant.expires_at).model_dump(mode="json"))


@router.get("/image-proxy")
async def image_proxy(
    url: str | None = Query(default=None),
    authorization: str | None = Header(default=None),
    transport: httpx.AsyncBaseTransport | None = Depends(get_upstream_transport),
):
    if not url:
        raise HTTPException(status_code=400, detail="URL is required")
    access_token = bearer_token(authorization)
    if not access_token:
        raise HTTPException(status_code=401, detail="Authorization token is required")

    try:
        image = await fetch_image(url, access_token, transport=transport)
    except (UnsafeUrlError, HostNotAllowedError) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except ImageFetchError as exc:
        raise HTTPException(status_code=502, detail=f"Image fetch failed: {exc}") from exc
    return Response(content=image.content, media_type=image.content_type)
