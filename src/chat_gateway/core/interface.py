"""
Provider adapter interface definition.

Defines the contract every backend adapter implements.
"""

from abc import ABC, abstractmethod
from typing import List, Dict, Any, AsyncIterator, Optional, Set
from enum import Enum

from ..models.request import ChatMessage, ProviderConfig
from ..models.response import ModelInfo, StreamChunk


class ModelCapability(str, Enum):
    """Capabilities a model may support."""
    VISION = "vision"
    AUDIO = "audio"
    FUNCTION_CALLING = "function_calling"
    REASONING = "reasoning"


class ProviderAdapter(ABC):
    """
    Abstract base class for chat provider adapters.

    An adapter wraps one backend's streaming chat-completion API and turns
    its output into a uniform sequence of ``StreamChunk`` values.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """
        Registry identifier of this provider.

        Returns:
            Provider name (e.g., "gemini", "deepseek")
        """
        pass

    @property
    @abstractmethod
    def display_name(self) -> str:
        """
        Human-readable provider name, used in error messages.

        Returns:
            Display name (e.g., "Gemini")
        """
        pass

    @abstractmethod
    def get_available_models(self) -> List[ModelInfo]:
        """
        Static model catalog of this provider.

        Returns:
            Model descriptors, default model first
        """
        pass

    @abstractmethod
    def build_request_parameters(
        self,
        messages: List[ChatMessage],
        config: ProviderConfig,
    ) -> Dict[str, Any]:
        """
        Build the backend request body.

        Args:
            messages: Messages to send, system message first if any
            config: Generation settings

        Returns:
            Backend-specific request body
        """
        pass

    @abstractmethod
    async def stream_chat(
        self,
        messages: List[ChatMessage],
        config: ProviderConfig,
    ) -> AsyncIterator[StreamChunk]:
        """
        Open an upstream stream.

        Connection failures raise ``ProviderUnavailableError``. Once this
        returns, the iterator never raises: mid-stream failures arrive as a
        final error chunk, a normal end as a final finished chunk.

        Args:
            messages: Messages to send
            config: Generation settings

        Returns:
            Async iterator of stream chunks
        """
        pass

    async def connect(self) -> None:
        """Prepare network resources. Called at service start."""
        return None

    async def disconnect(self) -> None:
        """Release network resources. Called at service shutdown."""
        return None

    def get_model(self, model_id: Optional[str]) -> Optional[ModelInfo]:
        """
        Look up a model in the catalog.

        Args:
            model_id: Model identifier

        Returns:
            The model descriptor, or None if unknown
        """
        for model in self.get_available_models():
            if model.id == model_id:
                return model
        return None

    def model_capabilities(self, model_id: str) -> Set[ModelCapability]:
        """
        Capabilities of a catalog model.

        Args:
            model_id: Model identifier

        Returns:
            Set of capabilities, empty for unknown models
        """
        model = self.get_model(model_id)
        if model is None:
            return set()
        capabilities = set()
        if model.supports_vision:
            capabilities.add(ModelCapability.VISION)
        if model.supports_audio:
            capabilities.add(ModelCapability.AUDIO)
        if model.supports_functions:
            capabilities.add(ModelCapability.FUNCTION_CALLING)
        if model.reasoning.supported:
            capabilities.add(ModelCapability.REASONING)
        return capabilities

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
