"""HTTP middleware for the relay server: security headers and request logging."""

from __future__ import annotations

import json
import time
from typing import Any, Dict, Mapping, Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware


# helmet-compatible defaults.
SECURITY_HEADERS: Dict[str, str] = {
    "Content-Security-Policy": (
        "default-src 'self';base-uri 'self';font-src 'self' https: data:;"
        "form-action 'self';frame-ancestors 'self';img-src 'self' data:;"
        "object-src 'none';script-src 'self';script-src-attr 'none';"
        "style-src 'self' https: 'unsafe-inline';upgrade-insecure-requests"
    ),
    "Cross-Origin-Opener-Policy": "same-origin",
    "Cross-Origin-Resource-Policy": "same-origin",
    "Origin-Agent-Cluster": "?1",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains",
    "X-Content-Type-Options": "nosniff",
    "X-DNS-Prefetch-Control": "off",
    "X-Download-Options": "noopen",
    "X-Frame-Options": "SAMEORIGIN",
    "X-Permitted-Cross-Domain-Policies": "none",
    "X-XSS-Protection": "0",
}

REDACTED_HEADERS = {"authorization", "cookie"}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add the standard security headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        for name, value in SECURITY_HEADERS.items():
            response.headers.setdefault(name, value)
        return response


def _request_target(request: Request) -> str:
    query = request.url.query
    return f"{request.url.path}?{query}" if query else request.url.path


def _redact(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        name: ("[redacted]" if name.lower() in REDACTED_HEADERS else value)
        for name, value in headers.items()
    }


async def _logged_body(request: Request) -> Optional[Any]:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw[:200].decode("utf-8", errors="replace")


def internal_error_response(logger: Any, request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "Unhandled error",
        error=str(exc),
        url=request.url.path,
        method=request.method,
        exc_info=exc,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "Internal server error", "message": str(exc)},
    )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request on arrival and again once the response is ready."""

    def __init__(self, app: Any, logger: Any) -> None:
        super().__init__(app)
        self.logger = logger

    async def dispatch(self, request: Request, call_next):
        start = time.perf_counter()
        target = _request_target(request)

        self.logger.info(
            "Incoming request",
            method=request.method,
            url=target,
            ip=request.client.host if request.client else None,
            user_agent=request.headers.get("user-agent"),
            body=await _logged_body(request),
            headers=_redact(request.headers),
        )

        try:
            response = await call_next(request)
        except Exception as exc:
            response = internal_error_response(self.logger, request, exc)

        duration_ms = round((time.perf_counter() - start) * 1000)
        self.logger.info(
            "Request completed",
            method=request.method,
            url=target,
            status_code=response.status_code,
            duration=f"{duration_ms}ms",
            content_length=response.headers.get("content-length"),
        )
        return response
