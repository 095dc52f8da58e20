from contextlib import asynccontextmanager
from datetime import timedelta
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from opentelemetry.instrumentation.fastapi import FastAPIInstrumentor
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import JSONResponse, Response

from musicnews.api.routes import router as api_router
from musicnews.core.config import Settings, get_settings
from musicnews.core.logging import configure_logging
from musicnews.core.observability import REQUEST_COUNT, REQUEST_LATENCY
from musicnews.core.responses import error_response
from musicnews.services.aggregator import ArticleAggregator
from musicnews.services.cache import AggregationCache
from musicnews.services.ingestion.catalog import CatalogClient
from musicnews.services.ingestion.html import HtmlArticleExtractor
from musicnews.services.ingestion.static_urls import StaticUrlListLoader
from musicnews.services.syncpower.token import TokenService

settings = get_settings()


def init_services(app: FastAPI, settings: Settings) -> None:
    catalog = CatalogClient(settings)
    app.state.catalog_client = catalog
    app.state.aggregator = ArticleAggregator(
        cache=AggregationCache(ttl=timedelta(seconds=settings.interview_cache_ttl_seconds)),
        catalog=catalog,
        url_loader=StaticUrlListLoader(settings),
        extractor=HtmlArticleExtractor(settings),
    )
    app.state.token_service = TokenService(settings)
    app.state.upstream_transport = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    current = get_settings()
    configure_logging(current.log_level)
    init_services(app, current)
    yield


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.include_router(api_router)
if settings.observability_enabled:
    FastAPIInstrumentor.instrument_app(app)


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    trace_id = request.headers.get("X-Trace-Id", str(uuid4()))
    request.state.trace_id = trace_id

    start = perf_counter()
    response = await call_next(request)
    elapsed = perf_counter() - start

    path = request.url.path
    REQUEST_COUNT.labels(request.method, path, str(response.status_code)).inc()
    REQUEST_LATENCY.labels(request.method, path).observe(elapsed)
    response.headers["X-Trace-Id"] = trace_id
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    payload, status = error_response(
        code="HTTP_ERROR",
        message=str(exc.detail),
        trace_id=getattr(request.state, "trace_id", "missing-trace-id"),
        status=exc.status_code,
    )
    return JSONResponse(payload, status_code=status, headers=exc.headers)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    payload, status = error_response(
        code="INTERNAL_ERROR",
        message=str(exc),
        trace_id=getattr(request.state, "trace_id", "missing-trace-id"),
        status=500,
    )
    return JSONResponse(payload, status_code=status)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    payload, status = error_response(
        code="VALIDATION_ERROR",
        message="Request validation failed",
        trace_id=getattr(request.state, "trace_id", "missing-trace-id"),
        status=422,
        details={"errors": exc.errors()},
    )
    return JSONResponse(payload, status_code=status)


@app.get("/healthz")
def healthz() -> dict:
    return {"status": "ok"}


@app.get("/metrics")
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)
