"""
Gemini adapter, via Google's OpenAI-compatible endpoint.
"""

import logging
from typing import Optional, List, Dict, Any

from ..models.request import ChatMessage, ProviderConfig
from ..models.response import ModelInfo, ReasoningSupport
from .openai_compatible import OpenAICompatibleAdapter

logger = logging.getLogger(__name__)

GEMINI_MODELS = [
    ModelInfo(
        id="gemini-2.5-flash",
        name="Gemini 2.5 Flash",
        provider="gemini",
        description="Latest Flash model with reasoning capabilities",
        context_window=1_000_000,
        max_output_tokens=8192,
        supports_functions=True,
        supports_vision=True,
        supports_audio=True,
        reasoning=ReasoningSupport(supported=True, levels=["low", "medium", "high"]),
    ),
    ModelInfo(
        id="gemini-2.5-pro",
        name="Gemini 2.5 Pro",
        provider="gemini",
        description="Most capable model with advanced reasoning",
        context_window=2_000_000,
        max_output_tokens=8192,
        supports_functions=True,
        supports_vision=True,
        supports_audio=True,
        # Thinking cannot be switched off on Pro
        reasoning=ReasoningSupport(supported=True, levels=["low", "medium", "high"], required=True),
    ),
]


class GeminiAdapter(OpenAICompatibleAdapter):
    """
    Gemini chat adapter.

    Adds ``reasoning_effort`` for 2.5-generation models and never lets it
    drop to "none" on models that always reason.
    """

    BASE_URL = "https://generativelanguage.googleapis.com/v1beta/openai/"
    PROVIDER_NAME = "gemini"
    DISPLAY_NAME = "Gemini"
    DEFAULT_MAX_TOKENS = 8192

    def get_available_models(self) -> List[ModelInfo]:
        return list(GEMINI_MODELS)

    def build_request_parameters(
        self,
        messages: List[ChatMessage],
        config: ProviderConfig,
    ) -> Dict[str, Any]:
        params = super().build_request_parameters(messages, config)

        effort = self.effective_reasoning_effort(params["model"], config.reasoning_effort)
        if effort is not None:
            params["reasoning_effort"] = effort

        return params

    def effective_reasoning_effort(self, model_id: str, requested: Optional[str]) -> Optional[str]:
        """
        Reasoning effort to send for ``model_id``, or None to omit it.

        Args:
            model_id: Model identifier
            requested: Effort asked for by the caller

        Returns:
            Effort level, or None
        """
        if "2.5" not in model_id:
            return None

        if requested and requested != "none":
            return requested

        model = self.get_model(model_id)
        if model is not None and model.reasoning.required:
            minimum = model.reasoning.levels[0] if model.reasoning.levels else "low"
            logger.info(f"[{self.display_name}] {model_id} requires reasoning, using effort {minimum}")
            return minimum

        return None
