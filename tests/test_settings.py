import json

import pytest

from app import main as main_module
from app.main import create_app
from config.settings import DEFAULT_GEMINI_API_URL, MissingCredentialError, Settings


@pytest.fixture
def clean_env(monkeypatch, tmp_path):
    for name in (
        "APP_ENV",
        "PORT",
        "HOST",
        "GEMINI_API_KEY",
        "GEMINI_API_URL",
        "GEMINI_TIMEOUT_SECONDS",
        "RATE_LIMIT",
        "CORS_ORIGINS",
        "LOG_LEVEL",
        "SERVICE_NAME",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("LOG_DIR", str(tmp_path / "logs"))
    return monkeypatch


def test_defaults(clean_env):
    settings = Settings()

    assert settings.port == 3000
    assert settings.app_env == "development"
    assert settings.gemini_api_url == DEFAULT_GEMINI_API_URL
    assert settings.gemini_timeout is None
    assert settings.rate_limit == "100/15minutes"
    assert settings.cors_origins == ["*"]
    assert not settings.is_production()


def test_environment_overrides(clean_env):
    clean_env.setenv("PORT", "8080")
    clean_env.setenv("APP_ENV", "Production")
    clean_env.setenv("GEMINI_TIMEOUT_SECONDS", "12.5")
    clean_env.setenv("CORS_ORIGINS", "https://a.example, https://b.example")

    settings = Settings()

    assert settings.port == 8080
    assert settings.is_production()
    assert settings.gemini_timeout == 12.5
    assert settings.cors_origins == ["https://a.example", "https://b.example"]


@pytest.mark.parametrize("value", [None, "", "   "])
def test_missing_key_is_refused(clean_env, value):
    if value is not None:
        clean_env.setenv("GEMINI_API_KEY", value)

    with pytest.raises(MissingCredentialError):
        Settings().require_api_key()


def test_describe_never_leaks_key(clean_env):
    clean_env.setenv("GEMINI_API_KEY", "super-secret")

    described = Settings().describe()

    assert described["gemini_api_key_exists"] is True
    assert described["gemini_api_key_length"] == len("super-secret")
    assert "super-secret" not in json.dumps(described)


def test_create_app_refuses_without_key(clean_env):
    with pytest.raises(MissingCredentialError):
        create_app(Settings())


def test_main_exits_when_key_missing(clean_env, tmp_path):
    settings = Settings()
    clean_env.setattr(main_module, "get_settings", lambda: settings)

    with pytest.raises(SystemExit) as excinfo:
        main_module.main()

    assert excinfo.value.code == 1
    errors = (tmp_path / "logs" / "error.log").read_text(encoding="utf-8")
    assert "GEMINI_API_KEY is not set" in errors


def test_main_serves_with_configured_port(clean_env, monkeypatch):
    clean_env.setenv("GEMINI_API_KEY", "k")
    clean_env.setenv("PORT", "4321")
    settings = Settings()
    calls = {}
    monkeypatch.setattr(main_module, "get_settings", lambda: settings)
    monkeypatch.setattr(
        main_module.uvicorn,
        "run",
        lambda app, host, port: calls.update(app=app, host=host, port=port),
    )

    main_module.main()

    assert calls["port"] == 4321
    assert calls["host"] == "0.0.0.0"
    assert calls["app"].title == "SuppSensei Server"
