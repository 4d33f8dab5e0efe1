from __future__ import annotations

from typing import Any, List, Optional

import httpx


API_URL = "https://gemini.test/v1beta/models/test-model:generateContent"


def candidate_payload(text: str) -> dict:
    return {
        "candidates": [
            {
                "content": {"parts": [{"text": text}], "role": "model"},
                "finishReason": "STOP",
                "index": 0,
            }
        ],
        "usageMetadata": {"promptTokenCount": 3, "totalTokenCount": 9},
    }


class StubUpstream:
    """MockTransport handler that records calls and replays a canned answer."""

    def __init__(self) -> None:
        self.calls: List[httpx.Request] = []
        self.status_code = 200
        self.payload: Any = candidate_payload("Polo from Gemini")
        self.error: Optional[Exception] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        if self.error is not None:
            raise self.error
        if isinstance(self.payload, (bytes, str)):
            return httpx.Response(self.status_code, content=self.payload)
        return httpx.Response(self.status_code, json=self.payload)
