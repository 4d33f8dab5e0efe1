from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from config.settings import Settings
from relay.gemini import GeminiClient
from tests.stubs import API_URL, StubUpstream


@pytest.fixture
def settings(tmp_path, monkeypatch) -> Settings:
    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("GEMINI_API_URL", API_URL)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.delenv("RATE_LIMIT", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)
    return Settings()


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
def gemini_client(settings: Settings, upstream: StubUpstream) -> GeminiClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(upstream))
    return GeminiClient(http, settings.gemini_api_url, settings.require_api_key())


@pytest.fixture
def client(settings: Settings, gemini_client: GeminiClient):
    app = create_app(settings, gemini_client=gemini_client)
    with TestClient(app) as test_client:
        yield test_client
