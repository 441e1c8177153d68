"""
Chat Streaming Gateway

Server-side gateway between a web chat client and OpenAI-compatible LLM
providers:
- Per-provider API key pools with rate-limit isolation and cooldown
- Provider adapters behind a uniform streaming contract
- NDJSON wire protocol with heartbeats and an inactivity watchdog
"""

from .core.interface import ProviderAdapter, ModelCapability
from .core.registry import ProviderRegistry, build_registry
from .core.credentials import CredentialPool
from .core.config import GatewayConfig, load_config
from .gateway import ChatGateway
from .streaming import ChatStream, StreamState
from .models.request import ChatRequest, ChatMessage, ProviderConfig
from .models.response import StreamChunk, ModelInfo

__all__ = [
    "ProviderAdapter",
    "ModelCapability",
    "ProviderRegistry",
    "build_registry",
    "CredentialPool",
    "GatewayConfig",
    "load_config",
    "ChatGateway",
    "ChatStream",
    "StreamState",
    "ChatRequest",
    "ChatMessage",
    "ProviderConfig",
    "StreamChunk",
    "ModelInfo",
]
