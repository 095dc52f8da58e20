from datetime import UTC, date, datetime
from enum import Enum
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ConfigDict, Field

from musicnews.core.time import EPOCH

UNKNOWN_DISPLAY_DATE = "日付不明"
NO_DESCRIPTION = "No description available."
ELLIPSIS = "..."

_FALLBACK_DATE_FORMATS = (
    "%Y/%m/%d %H:%M:%S",
    "%Y/%m/%d %H:%M",
    "%Y/%m/%d",
    "%Y.%m.%d",
    "%Y年%m月%d日",
)


class SourceKind(str, Enum):
    catalog = "catalog"
    scraped = "scraped"


class NormalizedArticle(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    source_kind: SourceKind
    title: str = Field(min_length=1)
    description: str
    url: str = Field(min_length=1)
    thumbnail_url: str | None = None
    sort_date: datetime = EPOCH
    display_date: str = UNKNOWN_DISPLAY_DATE
    extra: dict = Field(default_factory=dict)

    @property
    def identity_key(self) -> tuple[SourceKind, str]:
        return (self.source_kind, self.id)


class SourceFailure(BaseModel):
    model_config = ConfigDict(frozen=True)

    source: str
    message: str


def normalize_text(text: str | None) -> str:
    if not text:
        return ""
    return " ".join(text.split())


def truncate_description(text: str | None, max_length: int) -> str:
    cleaned = normalize_text(text)
    if not cleaned:
        return NO_DESCRIPTION
    if len(cleaned) <= max_length:
        return cleaned
    return cleaned[:max_length] + ELLIPSIS


def parse_publish_date(value: str | None) -> datetime | None:
    """Parse a loosely formatted date string; naive values are taken as UTC."""
    raw = (value or "").strip()
    if not raw:
        return None

    parsed: datetime | None = None
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        for fmt in _FALLBACK_DATE_FORMATS:
            try:
                parsed = datetime.strptime(raw, fmt)
                break
            except ValueError:
                continue
    if parsed is None:
        try:
            parsed = datetime.combine(date.fromisoformat(raw[:10]), datetime.min.time())
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def format_display_date(value: datetime | None, tz_name: str) -> str:
    if value is None:
        return UNKNOWN_DISPLAY_DATE
    try:
        local = value.astimezone(ZoneInfo(tz_name))
    except OverflowError:
        # Dates at the edge of the datetime range cannot be shifted.
        local = value
    return f"{local.year}/{local.month}/{local.day}"
