from musicnews.core.config import get_settings

ALLOWED_METHODS = "GET, OPTIONS"
ALLOWED_HEADERS = "Content-Type, Authorization"


def cors_headers() -> dict[str, str]:
    return {
        "Access-Control-Allow-Origin": get_settings().allowed_origin,
        "Access-Control-Allow-Methods": ALLOWED_METHODS,
        "Access-Control-Allow-Headers": ALLOWED_HEADERS,
    }
