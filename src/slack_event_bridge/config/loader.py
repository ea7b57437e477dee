"""Configuration loader with YAML parsing and environment variable substitution."""

import os
import re
from pathlib import Path

import yaml

from .schema import BridgeConfig


def substitute_env_vars(text: str) -> str:
    """
    Replace ${VAR_NAME} patterns with environment variable values.

    A default may be given as ``${VAR_NAME:-default}``.

    Raises:
        ValueError: If a referenced variable is unset and has no default
    """

    def replacer(match: re.Match[str]) -> str:
        var_name, default = match.group(1), match.group(2)
        value = os.environ.get(var_name)
        if value is None:
            if default is None:
                raise ValueError(f"Environment variable {var_name} not found")
            return default
        return value

    return re.sub(r"\$\{([^}:]+)(?::-([^}]*))?\}", replacer, text)


def load_config(path: Path) -> BridgeConfig:
    """
    Load configuration from YAML file with environment variable substitution.

    Args:
        path: Path to YAML configuration file

    Returns:
        Validated BridgeConfig instance

    Raises:
        FileNotFoundError: If config file doesn't exist
        ValueError: If environment variables are missing or config is invalid
        ValidationError: If config doesn't match schema
    """
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with path.open() as f:
        raw_yaml = f.read()

    config_dict = yaml.safe_load(substitute_env_vars(raw_yaml)) or {}
    if not isinstance(config_dict, dict):
        raise ValueError(f"Configuration root must be a mapping: {path}")

    config = BridgeConfig.model_validate(config_dict)
    validate_config(config)

    return config


def validate_config(config: BridgeConfig) -> None:
    """
    Perform additional cross-field validation.

    Raises:
        ValueError: If settings contradict each other
    """
    if config.reconnect.initial_delay > config.reconnect.max_delay:
        raise ValueError("reconnect.initial_delay must not exceed reconnect.max_delay")

    if config.bot.alias is not None and not config.bot.alias.strip():
        raise ValueError("bot.alias must not be blank")
