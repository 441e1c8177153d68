"""
Configuration loading for the chat gateway.
"""

import os
import logging
from typing import Dict, List, Any, Mapping, Optional
from dataclasses import dataclass, field
from pathlib import Path

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "CHAT_GATEWAY_CONFIG"


@dataclass
class ProviderSettings:
    """Configuration for a single provider."""
    name: str
    type: str
    key_prefix: str = ""
    api_keys: List[str] = field(default_factory=list)
    timeout: float = 60.0
    enabled: bool = True

    def resolve_api_keys(self, environ: Optional[Mapping[str, str]] = None) -> List[str]:
        """
        Collect this provider's credentials.

        Every environment variable starting with ``key_prefix`` and holding
        a non-empty value contributes one key (in variable-name order),
        followed by explicit ``api_keys`` entries. ``${VAR}`` entries are
        expanded from the environment. Duplicates are dropped.

        Args:
            environ: Environment mapping, defaults to ``os.environ``

        Returns:
            Ordered list of distinct keys
        """
        env = os.environ if environ is None else environ
        keys: List[str] = []

        if self.key_prefix:
            for var in sorted(env):
                if var.startswith(self.key_prefix) and env[var]:
                    keys.append(env[var])

        for entry in self.api_keys:
            if entry and entry.startswith("${") and entry.endswith("}"):
                entry = env.get(entry[2:-1], "")
            if entry:
                keys.append(entry)

        return list(dict.fromkeys(keys))


@dataclass
class StreamSettings:
    """Timing of the streamed response."""
    heartbeat_interval: float = 8.0
    inactivity_timeout: float = 120.0
    default_max_tokens: int = 8192
    # Wait this long for the upstream to open before the response starts
    open_grace_period: float = 2.0


@dataclass
class GatewayConfig:
    """Complete gateway configuration."""
    providers: List[ProviderSettings] = field(default_factory=list)
    stream: StreamSettings = field(default_factory=StreamSettings)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GatewayConfig":
        """Build configuration from a parsed YAML document."""
        return _parse_config(data or {})

    def get_provider(self, name: str) -> Optional[ProviderSettings]:
        for settings in self.providers:
            if settings.name == name:
                return settings
        return None


def load_config(config_path: Optional[str] = None) -> GatewayConfig:
    """
    Load gateway configuration from YAML file.

    Args:
        config_path: Path to config file. If None, uses $CHAT_GATEWAY_CONFIG
            or a default location.

    Returns:
        Loaded configuration
    """
    if config_path is None:
        config_path = os.environ.get(CONFIG_ENV_VAR)

    if config_path is None:
        paths = [
            Path("config/chat-gateway/gateway.yaml"),
            Path("/etc/chat-gateway/gateway.yaml"),
            Path.home() / ".config/chat-gateway/gateway.yaml",
        ]
        for p in paths:
            if p.exists():
                config_path = str(p)
                break

    if config_path is None or not Path(config_path).exists():
        logger.warning("No gateway config file found, using defaults")
        return _apply_env_overrides(_default_config())

    try:
        with open(config_path, 'r') as f:
            data = yaml.safe_load(f)

        config = _parse_config(data or {})

    except Exception as e:
        logger.error(f"Failed to load config from {config_path}: {e}")
        config = _default_config()

    return _apply_env_overrides(config)


def _parse_config(data: Dict[str, Any]) -> GatewayConfig:
    """Parse configuration dictionary."""
    providers = []

    for p_data in data.get("providers", []):
        name = p_data.get("name", "")
        providers.append(ProviderSettings(
            name=name,
            type=p_data.get("type", name),
            key_prefix=p_data.get("key_prefix", ""),
            api_keys=list(p_data.get("api_keys", [])),
            timeout=float(p_data.get("timeout", 60.0)),
            enabled=bool(p_data.get("enabled", True)),
        ))

    stream_data = data.get("stream", {})
    defaults = StreamSettings()
    stream = StreamSettings(
        heartbeat_interval=float(stream_data.get("heartbeat_interval", defaults.heartbeat_interval)),
        inactivity_timeout=float(stream_data.get("inactivity_timeout", defaults.inactivity_timeout)),
        default_max_tokens=int(stream_data.get("default_max_tokens", defaults.default_max_tokens)),
        open_grace_period=float(stream_data.get("open_grace_period", defaults.open_grace_period)),
    )

    return GatewayConfig(
        providers=providers or _default_providers(),
        stream=stream,
    )


def _apply_env_overrides(config: GatewayConfig) -> GatewayConfig:
    heartbeat = os.environ.get("CHAT_GATEWAY_HEARTBEAT_INTERVAL")
    if heartbeat:
        config.stream.heartbeat_interval = float(heartbeat)

    timeout = os.environ.get("CHAT_GATEWAY_INACTIVITY_TIMEOUT")
    if timeout:
        config.stream.inactivity_timeout = float(timeout)

    return config


def _default_providers() -> List[ProviderSettings]:
    return [
        ProviderSettings(name="gemini", type="gemini", key_prefix="GEMINI_API_KEY_"),
        ProviderSettings(name="deepseek", type="deepseek", key_prefix="DEEPSEEK_API_KEY_"),
    ]


def _default_config() -> GatewayConfig:
    """Return default configuration."""
    return GatewayConfig(providers=_default_providers(), stream=StreamSettings())
