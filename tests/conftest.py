import os
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient


os.environ["ENV"] = "test"
os.environ["OBSERVABILITY_ENABLED"] = "false"
os.environ["OSHIRAKU_API_KEY"] = "test-key"
os.environ["ALLOWED_ORIGIN"] = "https://syncpower.vercel.app"
os.environ["LOG_LEVEL"] = "WARNING"


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    from musicnews.core.config import get_settings

    get_settings.cache_clear()
    yield


@pytest.fixture
def settings(setup_test_env, tmp_path):
    from musicnews.core.config import Settings

    return Settings(
        env="test",
        oshiraku_api_key="test-key",
        oshiraku_api_endpoint="https://catalog.test/search/v1/article",
        static_news_config_path=str(tmp_path / "staticNewsUrls.json"),
        syncpower_auth_url="https://auth.test/token",
        display_timezone="Asia/Tokyo",
    )


class FakeClock:
    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2025, 1, 1, tzinfo=UTC)

    def __call__(self) -> datetime:
        return self.current

    def advance(self, delta) -> None:
        self.current = self.current + delta


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def client(setup_test_env):
    from musicnews.main import app

    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
