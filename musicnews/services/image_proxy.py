from __future__ import annotations

import logging
from dataclasses import dataclass

import httpx

from musicnews.core.config import Settings, get_settings
from musicnews.utils.network import assert_allowed_url

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_CONTENT_TYPE = "image/*"


class ImageFetchError(RuntimeError):
    pass


@dataclass(frozen=True)
class ProxiedImage:
    content: bytes
    content_type: str


def bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1]


async def fetch_image(
    url: str,
    access_token: str,
    settings: Settings | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> ProxiedImage:
    settings = settings or get_settings()
    assert_allowed_url(url)
    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds, transport=transport) as client:
            response = await client.get(url, headers={"Authorization": f"Bearer {access_token}"})
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error("Image proxy error for %s: %s", url, exc)
        raise ImageFetchError(str(exc)) from exc

    return ProxiedImage(
        content=response.content,
        content_type=response.headers.get("content-type") or DEFAULT_IMAGE_CONTENT_TYPE,
    )
