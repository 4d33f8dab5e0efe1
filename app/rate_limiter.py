from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from config.settings import Settings


RATE_LIMIT_MESSAGE = "Too many requests, please try again later."


def build_limiter(settings: Settings) -> Limiter:
    """Fixed-window limiter shared by every route, keyed by client address.

    Storage is in memory and owned by the returned instance, so counters reset
    with the process.
    """
    return Limiter(
        key_func=get_remote_address,
        application_limits=[settings.rate_limit],
        strategy="fixed-window",
    )


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    return JSONResponse(status_code=429, content={"error": RATE_LIMIT_MESSAGE})
