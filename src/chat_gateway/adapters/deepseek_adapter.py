"""
DeepSeek adapter.
"""

from typing import List

from ..models.response import ModelInfo, ReasoningSupport
from .openai_compatible import OpenAICompatibleAdapter

DEEPSEEK_MODELS = [
    ModelInfo(
        id="deepseek-chat",
        name="DeepSeek Chat",
        provider="deepseek",
        description="DeepSeek V3 - Advanced reasoning and coding capabilities",
        context_window=128_000,
        max_output_tokens=8192,
        supports_functions=True,
    ),
    ModelInfo(
        id="deepseek-reasoner",
        name="DeepSeek Reasoner",
        provider="deepseek",
        description="DeepSeek R1 - Enhanced reasoning model",
        context_window=128_000,
        max_output_tokens=8192,
        supports_functions=True,
        reasoning=ReasoningSupport(supported=True, levels=["auto"]),
    ),
]


class DeepSeekAdapter(OpenAICompatibleAdapter):
    """DeepSeek chat adapter; the reasoner model reasons without being asked."""

    BASE_URL = "https://api.deepseek.com"
    PROVIDER_NAME = "deepseek"
    DISPLAY_NAME = "DeepSeek"
    DEFAULT_MAX_TOKENS = 8192

    def get_available_models(self) -> List[ModelInfo]:
        return list(DEEPSEEK_MODELS)
