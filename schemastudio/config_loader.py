"""
Configuration loading utilities for the schema designer.

This module loads config.yaml, merges it over the built-in defaults and
validates the values the engine depends on (history capacity, expression
limits, storage location).
"""

import logging
from copy import deepcopy
from pathlib import Path
from typing import Dict, Any, Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_FILE = Path("config.yaml")

# Global configuration cache
_config_cache: Optional[Dict[str, Any]] = None


def deep_merge(base_dict: Dict[str, Any], update_dict: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deep merge two dictionaries, with update_dict taking precedence.

    Args:
        base_dict: Base dictionary (defaults)
        update_dict: Dictionary to merge in (user config)

    Returns:
        Merged dictionary
    """
    result = deepcopy(base_dict)

    for key, value in update_dict.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)

    return result


def get_default_config() -> Dict[str, Any]:
    """
    Get default configuration.

    Returns:
        Dictionary with default configuration
    """
    return {
        'app': {
            'name': 'Schema Studio',
            'version': '1.0.0',
            'debug': False
        },
        'history': {
            'capacity': 50
        },
        'storage': {
            'enabled': True,
            'backend': 'file',
            'directory': '.schemastudio',
            'name': 'schemastudio_designer_v1'
        },
        'expressions': {
            'max_length': 1000,
            'max_depth': 64
        },
        'logging': {
            'level': 'INFO'
        },
        'ui': {
            'page_title': 'Schema Studio',
            'sidebar_title': 'Navigation'
        }
    }


def load_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Load application configuration.

    Args:
        config_path: Optional path to config file (defaults to config.yaml)

    Returns:
        Complete configuration dictionary; defaults when the file is missing or invalid
    """
    if config_path is None:
        config_path = CONFIG_FILE

    default_config = get_default_config()

    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}")
        logger.info("Using default configuration")
        return default_config

    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            user_config = yaml.safe_load(f)

        if user_config is None:
            logger.warning(f"Configuration file is empty: {config_path}")
            return default_config

        if not isinstance(user_config, dict):
            logger.error(f"Configuration file is not a valid dictionary: {config_path}")
            logger.info("Using default configuration")
            return default_config

        config = deep_merge(default_config, user_config)

        if not validate_config(config):
            logger.error(f"Configuration in {config_path} is invalid")
            logger.info("Using default configuration")
            return default_config

        logger.info(f"Successfully loaded configuration from {config_path}")
        return config

    except yaml.YAMLError as e:
        logger.error(f"YAML parsing error in {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config

    except (IOError, OSError) as e:
        logger.error(f"Failed to read configuration file {config_path}: {e}")
        logger.info("Using default configuration")
        return default_config


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate configuration structure and values.

    Args:
        config: Configuration dictionary to validate

    Returns:
        True if configuration is valid, False otherwise
    """
    required_sections = ['app', 'history', 'storage', 'expressions', 'logging', 'ui']

    for section in required_sections:
        if not isinstance(config.get(section), dict):
            logger.warning(f"Missing required configuration section: {section}")
            return False

    capacity = config['history'].get('capacity')
    if isinstance(capacity, bool) or not isinstance(capacity, int) or capacity < 1:
        logger.warning("history.capacity must be a positive integer")
        return False

    for limit in ('max_length', 'max_depth'):
        value = config['expressions'].get(limit)
        if isinstance(value, bool) or not isinstance(value, int) or value < 1:
            logger.warning(f"expressions.{limit} must be a positive integer")
            return False

    storage = config['storage']
    if storage.get('backend', 'file') not in ('file', 'memory'):
        logger.warning("storage.backend must be 'file' or 'memory'")
        return False
    if not isinstance(storage.get('directory'), str) or not isinstance(storage.get('name'), str):
        logger.warning("storage.directory and storage.name must be strings")
        return False

    return True


def get_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """Return the cached configuration, loading it on first use."""
    global _config_cache

    if _config_cache is None:
        _config_cache = load_config(config_path)
    return _config_cache


def reload_config(config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Force reload of configuration from file.
    Useful for testing or when configuration changes.
    """
    global _config_cache
    _config_cache = None
    return get_config(config_path)


def get_config_value(section: str, key: str, default: Any = None) -> Any:
    """
    Get a specific configuration value.

    Args:
        section: Configuration section (e.g., 'history', 'ui')
        key: Configuration key within section
        default: Default value if not found

    Returns:
        Configuration value or default
    """
    config = get_config()
    return config.get(section, {}).get(key, default)

