from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError

from config.settings import Settings


PREVIEW_LENGTH = 100


class UpstreamError(RuntimeError):
    """The Gemini call failed: transport error, non-2xx status or unusable body."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class ResponseDecodeError(UpstreamError):
    """Gemini answered 2xx but the body carries no candidate text."""


class _Part(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: Any = None


class _Content(BaseModel):
    model_config = ConfigDict(extra="allow")

    parts: List[_Part] = []


class _Candidate(BaseModel):
    model_config = ConfigDict(extra="allow")

    content: Optional[_Content] = None
    finishReason: Optional[str] = None


class _GenerateContentResponse(BaseModel):
    model_config = ConfigDict(extra="allow")

    candidates: List[_Candidate] = []
    promptFeedback: Optional[Dict[str, Any]] = None


def preview(text: str, limit: int = PREVIEW_LENGTH) -> str:
    """Shorten text for log records."""
    return text[:limit] + ("..." if len(text) > limit else "")


def extract_candidate_text(payload: Any) -> str:
    """Return ``candidates[0].content.parts[0].text`` from a generateContent body.

    Raises ResponseDecodeError when the path is missing or malformed, naming the
    block or finish reason reported by Gemini when there is one.
    """
    if not isinstance(payload, dict):
        raise ResponseDecodeError(
            f"Gemini response is not a JSON object (got {type(payload).__name__})"
        )

    try:
        parsed = _GenerateContentResponse.model_validate(payload)
    except ValidationError as exc:
        raise ResponseDecodeError(f"Malformed Gemini response: {exc}") from exc

    if not parsed.candidates:
        reason = (parsed.promptFeedback or {}).get("blockReason")
        message = "Gemini response has no candidates"
        if reason:
            message += f" (blockReason={reason})"
        raise ResponseDecodeError(message)

    first = parsed.candidates[0]
    if first.content is None or not first.content.parts:
        message = "Gemini candidate has no content parts"
        if first.finishReason:
            message += f" (finishReason={first.finishReason})"
        raise ResponseDecodeError(message)

    text = first.content.parts[0].text
    if not isinstance(text, str):
        raise ResponseDecodeError("Gemini candidate's first part carries no text")
    return text


def build_request_body(prompt: str) -> Dict[str, Any]:
    return {"contents": [{"parts": [{"text": prompt}]}]}


class GeminiClient:
    """Relay prompts to the Gemini generateContent endpoint.

    The httpx client is owned by the caller (the application lifespan), so a
    single connection pool is shared across requests.
    """

    def __init__(self, http: httpx.AsyncClient, api_url: str, api_key: str) -> None:
        self._http = http
        self._api_url = api_url
        self._api_key = api_key

    @classmethod
    def from_settings(
        cls, settings: Settings, http: Optional[httpx.AsyncClient] = None
    ) -> "GeminiClient":
        if http is None:
            http = httpx.AsyncClient(timeout=settings.gemini_timeout)
        return cls(http, settings.gemini_api_url, settings.require_api_key())

    async def generate(self, prompt: str, logger: Any) -> Dict[str, Any]:
        """POST the prompt and return the decoded JSON body.

        Only the transport and the status code are checked here; pulling the
        text out is left to extract_candidate_text.
        """
        try:
            response = await self._http.post(
                self._api_url,
                params={"key": self._api_key},
                headers={"Content-Type": "application/json"},
                json=build_request_body(prompt),
            )
        except httpx.HTTPError as exc:
            raise UpstreamError(f"Gemini API request failed: {exc}") from exc

        logger.info(
            "Gemini API response received",
            status=response.status_code,
            status_text=response.reason_phrase,
            headers=dict(response.headers),
        )

        if not response.is_success:
            raise UpstreamError(
                f"Gemini API error: {response.status_code}",
                status_code=response.status_code,
            )

        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(
                f"Gemini API returned invalid JSON: {exc}",
                status_code=response.status_code,
            ) from exc

    async def aclose(self) -> None:
        await self._http.aclose()
