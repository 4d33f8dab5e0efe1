from __future__ import annotations

import sys
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from app.logging_setup import LogContext, configure_logging
from app.middleware import (
    RequestLoggingMiddleware,
    SecurityHeadersMiddleware,
    internal_error_response,
)
from app.rate_limiter import build_limiter, rate_limit_exceeded_handler
from app.routes import AVAILABLE_ENDPOINTS, register_routes
from config.settings import MissingCredentialError, Settings, get_settings
from relay.gemini import GeminiClient


def create_app(
    settings: Optional[Settings] = None,
    log_context: Optional[LogContext] = None,
    gemini_client: Optional[GeminiClient] = None,
) -> FastAPI:
    """Build the relay application.

    Anything not passed in is created here and released by the lifespan on
    shutdown. Raises MissingCredentialError when no Gemini key is configured.
    """
    settings = settings or get_settings()
    settings.require_api_key()

    owns_log_context = log_context is None
    if log_context is None:
        log_context = configure_logging(settings)
    logger = log_context.logger

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owns_client = app.state.gemini_client is None
        if owns_client:
            app.state.gemini_client = GeminiClient.from_settings(settings)

        logger.info(
            "Server started successfully",
            port=settings.port,
            environment=settings.app_env,
            available_endpoints=AVAILABLE_ENDPOINTS,
        )
        try:
            yield
        finally:
            if owns_client:
                await app.state.gemini_client.aclose()
                app.state.gemini_client = None
            logger.info("Server stopped")
            if owns_log_context:
                log_context.close()

    app = FastAPI(title="SuppSensei Server", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.log_context = log_context
    app.state.gemini_client = gemini_client
    app.state.limiter = build_limiter(settings)

    # Starlette wraps in reverse: the last middleware added runs first.
    app.add_middleware(RequestLoggingMiddleware, logger=logger)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(SlowAPIMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)

    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.exception_handler(RequestValidationError)
    async def invalid_body_handler(request: Request, exc: RequestValidationError):
        logger.warning(
            "Invalid request body",
            url=request.url.path,
            method=request.method,
            errors=exc.errors(),
        )
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid request body", "details": str(exc)},
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        return internal_error_response(logger, request, exc)

    register_routes(app)
    return app


def main() -> None:
    settings = get_settings()
    log_context = configure_logging(settings)
    logger = log_context.logger

    logger.info("Environment variables loaded", **settings.describe())
    try:
        settings.require_api_key()
    except MissingCredentialError as exc:
        logger.error(str(exc))
        log_context.close()
        sys.exit(1)

    try:
        app = create_app(settings, log_context=log_context)
        uvicorn.run(app, host=settings.host, port=settings.port)
    finally:
        log_context.close()


if __name__ == "__main__":
    main()
