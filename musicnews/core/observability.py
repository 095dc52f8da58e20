from prometheus_client import Counter, Histogram

REQUEST_COUNT = Counter(
    "musicnews_api_requests_total",
    "Total API requests",
    ["method", "path", "status"],
)

REQUEST_LATENCY = Histogram(
    "musicnews_api_request_latency_seconds",
    "API request latency",
    ["method", "path"],
)

CACHE_LOOKUPS = Counter(
    "musicnews_interview_cache_lookups_total",
    "Interview/column snapshot lookups",
    ["result"],
)

SOURCE_FETCH_COUNT = Counter(
    "musicnews_source_fetch_total",
    "Source fetch outcomes per refresh",
    ["source", "status"],
)

REFRESH_LATENCY = Histogram(
    "musicnews_refresh_latency_seconds",
    "Interview/column snapshot refresh latency",
)
