"""
YAML configuration file loading.

Config files live in the config/ directory (overridable with CONFIG_DIR)
and are merged over code defaults before environment overrides apply.
"""

import os
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml

logger = logging.getLogger(__name__)


def get_config_dir(config_dir: Optional[Union[str, Path]] = None) -> Path:
    """Get the configuration directory path."""
    config_path = Path(config_dir or os.getenv('CONFIG_DIR', 'config'))
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    return config_path


def load_yaml_config(config_name: str, config_dir: Optional[Union[str, Path]] = None) -> Dict[str, Any]:
    """
    Load a YAML configuration file.

    Args:
        config_name: Name of the config file (without .yaml extension)
        config_dir: Directory to look in (default: CONFIG_DIR or ./config)

    Returns:
        Dictionary with configuration values, empty dict if file not found
    """
    config_file = get_config_dir(config_dir) / f"{config_name}.yaml"

    if not config_file.exists():
        logger.debug(f"Config file not found: {config_file}, using defaults")
        return {}

    try:
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Error loading config file {config_file}: {e}")
        return {}

    if not isinstance(config, dict):
        logger.error(f"Config file {config_file} must contain a mapping, ignoring it")
        return {}

    logger.info(f"Loaded configuration from {config_file}")
    return config


def merge_configs(defaults: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two configuration dictionaries.

    Args:
        defaults: Default configuration values
        overrides: Override values (from file or environment)

    Returns:
        Merged configuration dictionary
    """
    result = defaults.copy()

    for key, value in overrides.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def parse_env_value(value: str) -> Any:
    """Parse an environment variable value to the appropriate type."""
    lowered = value.strip().lower()

    if lowered in ('true', 'false'):
        return lowered == 'true'

    if lowered in ('null', 'none', ''):
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        return float(value)
    except ValueError:
        pass

    return value
