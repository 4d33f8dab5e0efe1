from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class EchoRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    message: Any = Field(None, description="Send 'Marco' to get 'Polo' back")


class EchoResponse(BaseModel):
    response: str


class RelayRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    prompt: Optional[str] = Field(None, description="Prompt forwarded to Gemini")


class RelayResponse(BaseModel):
    response: str = Field(..., description="Text of the first Gemini candidate")
    fullResponse: Dict[str, Any] = Field(
        ..., description="Unmodified generateContent payload"
    )


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
