from relay.gemini import (
    GeminiClient,
    ResponseDecodeError,
    UpstreamError,
    extract_candidate_text,
)

__all__ = [
    "GeminiClient",
    "ResponseDecodeError",
    "UpstreamError",
    "extract_candidate_text",
]
