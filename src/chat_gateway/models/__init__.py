"""
Chat gateway data models.
"""

from .request import (
    ChatRequest,
    ChatMessage,
    ContentPart,
    ImageURL,
    MessageContent,
    ProviderConfig,
    ReasoningEffort,
)
from .response import StreamChunk, ModelInfo, ReasoningSupport

__all__ = [
    "ChatRequest",
    "ChatMessage",
    "ContentPart",
    "ImageURL",
    "MessageContent",
    "ProviderConfig",
    "ReasoningEffort",
    "StreamChunk",
    "ModelInfo",
    "ReasoningSupport",
]
