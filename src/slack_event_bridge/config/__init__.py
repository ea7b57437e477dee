"""Configuration loading and validation."""

from .loader import load_config
from .schema import (
    BotConfig,
    BridgeConfig,
    CacheConfig,
    DedupConfig,
    LoggingConfig,
    ReconnectConfig,
    RuntimeConfig,
    SlackConfig,
)

__all__ = [
    # Loader
    "load_config",
    # Root config
    "BridgeConfig",
    # Sections
    "BotConfig",
    "CacheConfig",
    "DedupConfig",
    "LoggingConfig",
    "ReconnectConfig",
    "RuntimeConfig",
    "SlackConfig",
]
