"""
Chat gateway request entry point.

Validates and assembles a chat request, resolves the provider and opens
the upstream stream. Failures that show up quickly are raised before a
single frame is written, so callers can answer with a plain error response.
"""

import asyncio
import logging
from typing import List

from .core.config import StreamSettings
from .core.interface import ProviderAdapter
from .core.registry import ProviderRegistry
from .models.request import ChatMessage, ChatRequest, ProviderConfig
from .streaming import ChatStream

logger = logging.getLogger(__name__)


class ChatGateway:
    """Turns chat requests into open ``ChatStream`` responses."""

    def __init__(self, registry: ProviderRegistry, settings: StreamSettings = None):
        self._registry = registry
        self._settings = settings or StreamSettings()

    @property
    def registry(self) -> ProviderRegistry:
        return self._registry

    @property
    def settings(self) -> StreamSettings:
        return self._settings

    def assemble_messages(self, request: ChatRequest) -> List[ChatMessage]:
        return request.build_messages()

    def provider_config(self, provider: ProviderAdapter, request: ChatRequest) -> ProviderConfig:
        """
        Generation settings for one request.

        The catalog's output limit for the selected model wins over the
        requested ``max_tokens``; unknown models fall back to the request,
        then to the configured default.
        """
        model = provider.get_model(request.model)
        max_tokens = (
            (model.max_output_tokens if model else None)
            or request.max_tokens
            or self._settings.default_max_tokens
        )
        return ProviderConfig(
            model=request.model,
            temperature=request.temperature,
            max_tokens=max_tokens,
            reasoning_effort=request.reasoning_effort,
        )

    async def open_stream(self, request: ChatRequest) -> ChatStream:
        """
        Resolve the provider and start opening its stream.

        An open that fails within the grace period is raised here, so the
        caller can still answer with a plain error response. A slower open
        is handed to the ``ChatStream`` unfinished; heartbeats and the
        inactivity watchdog then cover it, and a later failure arrives as
        an ``{"error": ...}`` frame.

        Args:
            request: Validated chat request

        Returns:
            A ready-to-consume ChatStream

        Raises:
            UnknownProviderError: If the provider is not registered
            ProviderUnavailableError: If the upstream refused the stream
                within the grace period
        """
        provider = self._registry.get_provider(request.provider)
        messages = self.assemble_messages(request)
        config = self.provider_config(provider, request)

        opening = asyncio.ensure_future(provider.stream_chat(messages, config))
        grace = min(self._settings.open_grace_period, self._settings.inactivity_timeout)
        done, _ = await asyncio.wait({opening}, timeout=grace)

        if opening in done:
            chunks = opening.result()
        else:
            logger.info(f"{provider.name} stream still opening after {grace:g}s, starting response")
            chunks = opening

        return ChatStream(
            chunks,
            heartbeat_interval=self._settings.heartbeat_interval,
            inactivity_timeout=self._settings.inactivity_timeout,
            provider=provider.name,
        )
