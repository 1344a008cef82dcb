from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class GenerationOptions(BaseModel):
    """Per-call generation parameters; ``None`` falls back to the gateway defaults."""

    temperature: Optional[float] = Field(default=None, ge=0, le=2)
    top_k: Optional[int] = Field(default=None, ge=1)
    top_p: Optional[float] = Field(default=None, gt=0, le=1)
    max_output_tokens: Optional[int] = Field(default=None, ge=1)
    structured: bool = Field(default=False, description="Parse the response as JSON")
    response_schema: Optional[Dict[str, Any]] = Field(
        default=None, description="Schema hint for structured output"
    )
    safety_settings: Optional[List[Dict[str, str]]] = None


class GatewayResponse(BaseModel):
    """Provider-independent view of a generation response."""

    content: Any = Field(description="Text, or parsed JSON for structured calls")
    tokens_used: int = Field(ge=0)
    model: str
    finish_reason: str = "STOP"
    is_structured: bool = False
    truncated: bool = False
