from __future__ import annotations

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from musicnews.core.config import Settings, get_settings
from musicnews.core.time import now_utc

logger = logging.getLogger(__name__)


class TokenError(RuntimeError):
    status_code = 500


class TokenConfigError(TokenError):
    status_code = 400


class TokenUpstreamError(TokenError):
    status_code = 401


class TokenResponseError(TokenError):
    status_code = 502


@dataclass(frozen=True)
class TokenGrant:
    token: str
    expires_at: datetime


class TokenService:
    """Fetches and caches the upstream access token until it expires."""

    def __init__(
        self,
        settings: Settings | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], datetime] = now_utc,
    ):
        self.settings = settings or get_settings()
        self._transport = transport
        self._clock = clock
        self._grant: TokenGrant | None = None

    async def _post(self) -> httpx.Response:
        payload = {
            "client_id": self.settings.syncpower_client_id,
            "client_secret": self.settings.syncpower_client_secret,
        }
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        async for attempt in AsyncRetrying(
            wait=wait_exponential(multiplier=1, min=1, max=8),
            stop=stop_after_attempt(max(1, self.settings.token_fetch_max_retries)),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                async with httpx.AsyncClient(
                    timeout=self.settings.http_timeout_seconds, transport=self._transport
                ) as client:
                    return await client.post(self.settings.syncpower_auth_url, json=payload, headers=headers)
        raise TokenError("Token request was not attempted")

    async def _fetch(self) -> dict:
        response = await self._post()
        body = response.text
        logger.info("Token endpoint responded with HTTP %s", response.status_code)

        if not response.is_success:
            try:
                detail = json.loads(body)
            except ValueError:
                detail = None
            if isinstance(detail, dict) and detail.get("message"):
                reason = str(detail["message"])
            elif detail is not None:
                reason = json.dumps(detail, ensure_ascii=False)[:200]
            else:
                reason = f"non-JSON response: {body[:200]}"
            raise TokenUpstreamError(f"upstream auth error (HTTP {response.status_code}): {reason}")

        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            raise TokenResponseError(f"unexpected Content-Type ({content_type or 'missing'})")

        try:
            data = json.loads(body)
        except ValueError as exc:
            raise TokenResponseError(f"invalid JSON: {exc}") from exc
        if not isinstance(data, dict) or not data.get("token") or not data.get("expires_at"):
            raise TokenResponseError("token response is missing token or expires_at")
        return data

    async def get_token(self) -> TokenGrant:
        now = self._clock()
        grant = self._grant
        if grant is not None and grant.expires_at > now:
            return grant

        if not self.settings.syncpower_client_id or not self.settings.syncpower_client_secret:
            raise TokenConfigError("SYNCPOWER_CLIENT_ID or SYNCPOWER_CLIENT_SECRET is not set")

        data = await self._fetch()
        try:
            lifetime = timedelta(seconds=float(data["expires_at"]))
        except (TypeError, ValueError) as exc:
            raise TokenResponseError(f"expires_at is not a number: {data['expires_at']!r}") from exc

        grant = TokenGrant(token=str(data["token"]), expires_at=now + lifetime)
        self._grant = grant
        logger.info("Cached new access token until %s", grant.expires_at.isoformat())
        return grant
