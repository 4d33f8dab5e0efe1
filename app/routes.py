from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from app.schemas import (
    EchoRequest,
    EchoResponse,
    ErrorResponse,
    RelayRequest,
    RelayResponse,
)
from relay.gemini import GeminiClient, UpstreamError, extract_candidate_text, preview


GREETING = "Hello, world!!!!!!!!!!!!!!!!!!!!!!!"
ECHO_TRIGGER = "Marco"
ECHO_REPLY = "Polo"
ECHO_HINT = 'Try sending "Marco"'

AVAILABLE_ENDPOINTS = ["POST /test", "POST /gemini-test", "GET /"]


def get_logger(request: Request) -> Any:
    return request.app.state.log_context.logger


def get_gemini_client(request: Request) -> GeminiClient:
    return request.app.state.gemini_client


def root(logger: Any = Depends(get_logger)) -> str:
    logger.info("Root endpoint accessed")
    return GREETING


def echo(
    req: Optional[EchoRequest] = None, logger: Any = Depends(get_logger)
) -> Dict[str, str]:
    message = req.message if req else None
    logger.info("Test endpoint called", message=message)

    if message == ECHO_TRIGGER:
        logger.info("Marco received, sending Polo")
        return {"response": ECHO_REPLY}

    logger.info("Non-Marco message received", message=message)
    return {"response": ECHO_HINT}


async def gemini_test(
    req: Optional[RelayRequest] = None,
    logger: Any = Depends(get_logger),
    gemini: GeminiClient = Depends(get_gemini_client),
):
    prompt = req.prompt if req else None
    logger.info("Gemini API test endpoint called", prompt=prompt)

    if not prompt:
        logger.warning("Gemini test called without prompt")
        return JSONResponse(status_code=400, content={"error": "Prompt is required"})

    try:
        logger.info(
            "Making request to Gemini API",
            prompt=preview(prompt),
            prompt_length=len(prompt),
        )
        data = await gemini.generate(prompt, logger)
        text = extract_candidate_text(data)
    except UpstreamError as exc:
        logger.error(
            "Gemini API error",
            error=str(exc),
            status_code=exc.status_code,
            prompt=preview(prompt),
            exc_info=True,
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Failed to get response from Gemini API",
                "details": str(exc),
            },
        )

    logger.info(
        "Gemini API successful",
        response_length=len(text),
        response_preview=preview(text),
        full_response_keys=list(data.keys()),
    )
    return {"response": text, "fullResponse": data}


def register_routes(app: FastAPI) -> None:
    """Add the routes straight onto the app; SlowAPIMiddleware only limits
    endpoints it finds directly in ``app.routes``."""
    app.add_api_route("/", root, methods=["GET"], response_class=PlainTextResponse)
    app.add_api_route(
        "/test", echo, methods=["POST"], response_model=EchoResponse
    )
    app.add_api_route(
        "/gemini-test",
        gemini_test,
        methods=["POST"],
        response_model=RelayResponse,
        responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    )
