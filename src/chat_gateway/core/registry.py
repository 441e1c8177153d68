"""
Provider registry: maps provider identifiers to adapter instances.
"""

import logging
from typing import Dict, List, Any, Callable, Optional

from .config import GatewayConfig, ProviderSettings
from .credentials import CredentialPool
from .errors import ConfigurationError, UnknownProviderError
from .interface import ProviderAdapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[..., ProviderAdapter]


class ProviderRegistry:
    """
    Registry of provider adapters.

    Populated once at process start; lookups fail fast on unknown names.
    """

    def __init__(self):
        """Initialize the registry."""
        self._providers: Dict[str, ProviderAdapter] = {}

    def register(self, adapter: ProviderAdapter) -> None:
        """
        Register an adapter under its own name, replacing any previous one.

        Args:
            adapter: Adapter instance
        """
        self._providers[adapter.name] = adapter
        logger.info(f"Registered provider: {adapter.name}")

    def get_provider(self, name: str) -> ProviderAdapter:
        """
        Get an adapter by provider name.

        Args:
            name: Provider name

        Returns:
            Adapter instance

        Raises:
            UnknownProviderError: If the provider was never registered
        """
        try:
            return self._providers[name]
        except KeyError:
            raise UnknownProviderError(name, registered=self._providers)

    def list_providers(self) -> Dict[str, ProviderAdapter]:
        """
        All registered providers.

        Returns:
            Mapping of provider name to adapter (a copy)
        """
        return dict(self._providers)

    def describe(self) -> Dict[str, Dict[str, Any]]:
        """
        Catalog of every registered provider.

        Returns:
            Mapping of provider name to display name and model descriptors
        """
        return {
            name: {
                "name": adapter.display_name,
                "models": [m.model_dump() for m in adapter.get_available_models()],
            }
            for name, adapter in self._providers.items()
        }

    def __contains__(self, name: str) -> bool:
        return name in self._providers

    async def connect_all(self) -> None:
        """Connect all registered providers."""
        for adapter in self._providers.values():
            try:
                await adapter.connect()
            except Exception as e:
                logger.error(f"Failed to connect provider {adapter.name}: {e}")

    async def disconnect_all(self) -> None:
        """Disconnect all registered providers."""
        for adapter in self._providers.values():
            try:
                await adapter.disconnect()
            except Exception as e:
                logger.error(f"Failed to disconnect provider {adapter.name}: {e}")


def build_registry(
    config: GatewayConfig,
    factories: Optional[Dict[str, AdapterFactory]] = None,
    **adapter_kwargs: Any,
) -> ProviderRegistry:
    """
    Create and populate a registry from configuration.

    Providers without credentials or with an unknown type are logged and
    left out; the rest of the registry still comes up.

    Args:
        config: Gateway configuration
        factories: Adapter classes by provider type; defaults to the built-in adapters
        **adapter_kwargs: Extra keyword arguments for every adapter (e.g. an httpx transport)

    Returns:
        Populated registry
    """
    if factories is None:
        from ..adapters import ADAPTER_TYPES
        factories = ADAPTER_TYPES

    registry = ProviderRegistry()
    for settings in config.providers:
        if not settings.enabled:
            continue
        try:
            registry.register(_create_adapter(settings, factories, adapter_kwargs))
        except ConfigurationError as e:
            logger.error(f"Provider {settings.name} skipped: {e}")
    return registry


def _create_adapter(
    settings: ProviderSettings,
    factories: Dict[str, AdapterFactory],
    adapter_kwargs: Dict[str, Any],
) -> ProviderAdapter:
    factory = factories.get(settings.type)
    if factory is None:
        raise ConfigurationError(f"Unknown provider type: {settings.type}", provider=settings.name)

    pool = CredentialPool(settings.resolve_api_keys(), provider=settings.name)
    return factory(
        pool=pool,
        name=settings.name,
        timeout=settings.timeout,
        **adapter_kwargs,
    )
