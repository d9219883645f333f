"""Configuration loading and validation."""

from pathlib import Path

import yaml
from pydantic import ValidationError

from restgate.config.schema import GatewayConfig

DEFAULT_CONFIG_PATH = Path.home() / ".restgate" / "restgate.yaml"


class ConfigError(Exception):
    """Configuration loading or validation error."""


def load_config(path: Path | None = None) -> GatewayConfig:
    """Load and validate restgate configuration from a YAML file.

    Args:
        path: Path to config file. If None, tries the default location.
              If the file doesn't exist, returns the default config.

    Returns:
        Validated configuration object

    Raises:
        ConfigError: If the config file exists but is invalid
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    if not path.exists():
        return GatewayConfig()

    try:
        with open(path) as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Failed to load config from {path}: {e}") from e

    if config_data is None:
        return GatewayConfig()
    if not isinstance(config_data, dict):
        raise ConfigError(f"Invalid config in {path}: expected a mapping at the top level")

    try:
        return GatewayConfig(**config_data)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation failed: {e}") from e


def save_config(config: GatewayConfig, path: str | Path | None = None) -> None:
    """Save configuration to a YAML file.

    Args:
        config: Configuration object to save
        path: Destination path. If None, uses the default location.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH
    elif isinstance(path, str):
        path = Path(path)

    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        yaml.safe_dump(config.model_dump(), f, default_flow_style=False, sort_keys=False)
