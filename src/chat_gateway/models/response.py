"""
Response models for the chat gateway: wire frames and model descriptors.
"""

import json
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, Field, model_validator


class StreamChunk(BaseModel):
    """
    One NDJSON wire frame.

    Exactly one of ``text``, ``error``, ``finished`` or ``heartbeat`` is set.
    Heartbeats serialize as ``{"type": "heartbeat"}``.
    """
    text: Optional[str] = None
    error: Optional[str] = None
    finished: Optional[bool] = None
    heartbeat: Optional[bool] = None

    @model_validator(mode="after")
    def _single_tag(self) -> "StreamChunk":
        tags = [
            self.text is not None,
            self.error is not None,
            bool(self.finished),
            bool(self.heartbeat),
        ]
        if sum(tags) != 1:
            raise ValueError("A stream chunk carries exactly one of text, error, finished, heartbeat")
        return self

    @classmethod
    def of_text(cls, text: str) -> "StreamChunk":
        return cls(text=text)

    @classmethod
    def of_error(cls, message: str) -> "StreamChunk":
        return cls(error=message)

    @classmethod
    def done(cls) -> "StreamChunk":
        return cls(finished=True)

    @classmethod
    def beat(cls) -> "StreamChunk":
        return cls(heartbeat=True)

    @property
    def is_terminal(self) -> bool:
        return self.error is not None or bool(self.finished)

    def to_wire(self) -> Dict[str, Any]:
        """Wire dict for this frame."""
        if self.text is not None:
            return {"text": self.text}
        if self.error is not None:
            return {"error": self.error}
        if self.finished:
            return {"finished": True}
        return {"type": "heartbeat"}

    def to_frame(self) -> bytes:
        """Serialize as one NDJSON line."""
        return (json.dumps(self.to_wire(), ensure_ascii=False) + "\n").encode("utf-8")


class ReasoningSupport(BaseModel):
    """Reasoning capability of a model."""
    supported: bool = False
    levels: List[str] = Field(default_factory=list)
    required: bool = False


class ModelInfo(BaseModel):
    """Static description of a model offered by a provider."""
    id: str
    name: str
    provider: str
    description: str = ""
    context_window: int
    max_output_tokens: int
    supports_functions: bool = False
    supports_vision: bool = False
    supports_audio: bool = False
    reasoning: ReasoningSupport = Field(default_factory=ReasoningSupport)
