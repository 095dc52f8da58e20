from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from musicnews.services.ingestion.common import NormalizedArticle


class ApiError(BaseModel):
    code: str
    message: str
    trace_id: str
    details: dict[str, Any] = Field(default_factory=dict)


class ApiEnvelope(BaseModel):
    data: Any = None
    error: ApiError | None = None
    meta: dict[str, Any] = Field(default_factory=dict)


class ArticlePage(BaseModel):
    items: list[NormalizedArticle]
    total_count: int = Field(ge=0)


class StaticNewsOut(BaseModel):
    items: list[NormalizedArticle]


class TokenOut(BaseModel):
    token: str
    expires_at: datetime
