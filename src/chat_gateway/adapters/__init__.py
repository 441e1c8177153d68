"""
Provider adapters for OpenAI-compatible chat backends.
"""

from .openai_compatible import OpenAICompatibleAdapter
from .gemini_adapter import GeminiAdapter
from .deepseek_adapter import DeepSeekAdapter

ADAPTER_TYPES = {
    "gemini": GeminiAdapter,
    "deepseek": DeepSeekAdapter,
}

__all__ = [
    "OpenAICompatibleAdapter",
    "GeminiAdapter",
    "DeepSeekAdapter",
    "ADAPTER_TYPES",
]
