from functools import lru_cache

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Music News API"
    env: str = "dev"
    log_level: str = "INFO"

    oshiraku_api_endpoint: str = "https://rdc-api-catalog-gateway-api.rakuten.co.jp/oshiraku/search/v1/article"
    oshiraku_api_key: str | None = None
    oshiraku_tag_id: int = 1
    oshiraku_labels: str = "report,interview,exclusive,public_relations"
    oshiraku_max_page_size: int = 100
    oshiraku_latest_page_size: int = 10

    static_news_config_path: str = "config/staticNewsUrls.json"
    interview_cache_ttl_seconds: int = 3600
    description_max_length: int = 100
    display_timezone: str = "Asia/Tokyo"

    allowed_origin: str = "https://syncpower.vercel.app"

    syncpower_auth_url: str = "https://md.syncpower.jp/authenticate/v1/token"
    syncpower_client_id: str | None = None
    syncpower_client_secret: str | None = None
    token_fetch_max_retries: int = 3

    http_timeout_seconds: int = 20
    allowed_fetch_hosts: str = ""
    catalog_enabled: bool = True
    observability_enabled: bool = True

    @property
    def allowed_fetch_host_list(self) -> list[str]:
        return [item.strip().lower() for item in self.allowed_fetch_hosts.split(",") if item.strip()]

    @model_validator(mode="after")
    def validate_feature_flags(self) -> "Settings":
        if self.catalog_enabled and not self.oshiraku_api_key and self.env not in {"test", "dev"}:
            raise ValueError("oshiraku_api_key is required when catalog_enabled=true")
        if self.oshiraku_max_page_size < 1 or self.oshiraku_latest_page_size < 1:
            raise ValueError("catalog page sizes must be positive")
        if self.interview_cache_ttl_seconds < 0:
            raise ValueError("interview_cache_ttl_seconds must not be negative")
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
