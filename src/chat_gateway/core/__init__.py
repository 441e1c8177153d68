"""
Core gateway components.
"""

from .interface import ProviderAdapter, ModelCapability
from .credentials import CredentialPool, Credential, is_rate_limit_error
from .registry import ProviderRegistry, build_registry
from .config import GatewayConfig, ProviderSettings, StreamSettings, load_config
from .errors import (
    GatewayError,
    ConfigurationError,
    UnknownProviderError,
    ProviderUnavailableError,
    UpstreamAuthenticationError,
    UpstreamRateLimited,
    InactivityTimeout,
)

__all__ = [
    "ProviderAdapter",
    "ModelCapability",
    "CredentialPool",
    "Credential",
    "is_rate_limit_error",
    "ProviderRegistry",
    "build_registry",
    "GatewayConfig",
    "ProviderSettings",
    "StreamSettings",
    "load_config",
    "GatewayError",
    "ConfigurationError",
    "UnknownProviderError",
    "ProviderUnavailableError",
    "UpstreamAuthenticationError",
    "UpstreamRateLimited",
    "InactivityTimeout",
]
