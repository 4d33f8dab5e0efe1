from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from dotenv import load_dotenv


load_dotenv()


DEFAULT_GEMINI_API_URL = (
    "https://generativelanguage.googleapis.com/v1beta/models/"
    "gemini-1.5-flash:generateContent"
)


class MissingCredentialError(RuntimeError):
    """Raised at startup when the Gemini API key is not configured."""


def _optional_float(name: str) -> Optional[float]:
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    return float(raw)


class Settings:
    """Application settings loaded from environment variables.

    Keep all credentials and config centralized here. Values are read when the
    instance is created so tests can adjust the environment first.
    """

    def __init__(self) -> None:
        self.app_env: str = os.getenv("APP_ENV", "development")
        self.service_name: str = os.getenv("SERVICE_NAME", "suppsensei-server")
        self.host: str = os.getenv("HOST", "0.0.0.0")
        self.port: int = int(os.getenv("PORT", "3000"))
        self.gemini_api_key: Optional[str] = os.getenv("GEMINI_API_KEY")
        self.gemini_api_url: str = os.getenv("GEMINI_API_URL", DEFAULT_GEMINI_API_URL)
        self.gemini_timeout: Optional[float] = _optional_float("GEMINI_TIMEOUT_SECONDS")
        self.log_dir: str = os.getenv("LOG_DIR", "logs")
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO").upper()
        self.rate_limit: str = os.getenv("RATE_LIMIT", "100/15minutes")
        self.cors_origins: List[str] = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]

    def is_production(self) -> bool:
        return self.app_env.lower() == "production"

    def require_api_key(self) -> str:
        key = (self.gemini_api_key or "").strip()
        if not key:
            raise MissingCredentialError(
                "GEMINI_API_KEY is not set in environment variables"
            )
        return key

    def describe(self) -> dict:
        """Loaded configuration, safe to log (the key itself is never included)."""
        return {
            "port": self.port,
            "environment": self.app_env,
            "gemini_api_key_exists": bool(self.gemini_api_key),
            "gemini_api_key_length": len(self.gemini_api_key or ""),
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
