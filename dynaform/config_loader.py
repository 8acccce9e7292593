"""
Configuration loading utilities for dynamic forms.

Loads config.yaml, merges it over built-in defaults and exposes single
values through get_config_value(). Also owns logging setup.
"""

import yaml
from pathlib import Path
from typing import Dict, Any, Optional
import logging
from copy import deepcopy

from .exceptions import ConfigurationLoadError

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
            'name': 'Dynamic Forms',
            'version': '1.0.0'
        },
        'logging': {
            'level': 'INFO',
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
        },
        'forms': {
            'identity_key': 'hash',
            'max_visible_items': 3,
            'single_placeholder': 'Select an option',
            'multi_placeholder': 'Select options'
        },
        'messages': {
            'required': 'This field is required',
            'minlength': 'Minimum of {requiredLength} characters',
            'maxlength': 'Maximum of {requiredLength} characters',
            'min': 'Minimum value: {min}',
            'max': 'Maximum value: {max}',
            'pattern': 'Invalid format',
            'email': 'Invalid email',
            'invalid': 'Invalid field'
        },
        'schema': {
            'schemas_dir': 'schemas',
            'primary_schema': 'enrollment_schema.yaml'
        }
    }


def load_config(config_path: Optional[Path] = None, strict: bool = False) -> Dict[str, Any]:
    """
    Load application configuration merged over the defaults.

    Args:
        config_path: Optional path to config file (defaults to config.yaml)
        strict: Raise instead of falling back to defaults on read errors

    Returns:
        Complete configuration dictionary

    Raises:
        ConfigurationLoadError: If strict and the file cannot be read or parsed
    """
    global _config_cache

    use_cache = config_path is None
    if use_cache and _config_cache is not None:
        return _config_cache

    if config_path is None:
        config_path = CONFIG_FILE

    default_config = get_default_config()

    if not config_path.exists():
        logger.warning(f"Configuration file not found: {config_path}")
        logger.info("Using default configuration")
        config = default_config
    else:
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                user_config = yaml.safe_load(f)

            if user_config is None:
                logger.warning(f"Configuration file is empty: {config_path}")
                config = default_config
            elif not isinstance(user_config, dict):
                logger.error(f"Configuration file is not a valid dictionary: {config_path}")
                if strict:
                    raise ConfigurationLoadError(config_path, TypeError("top-level value is not a mapping"))
                config = default_config
            else:
                config = deep_merge(default_config, user_config)
                logger.info(f"Successfully loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"YAML parsing error in {config_path}: {e}")
            if strict:
                raise ConfigurationLoadError(config_path, e)
            logger.info("Using default configuration")
            config = default_config

        except (IOError, OSError) as e:
            logger.error(f"Failed to read configuration file {config_path}: {e}")
            if strict:
                raise ConfigurationLoadError(config_path, e)
            logger.info("Using default configuration")
            config = default_config

    if use_cache:
        _config_cache = config
    return config


def reload_config() -> Dict[str, Any]:
    """Drop the cached configuration and read config.yaml again."""
    global _config_cache
    _config_cache = None
    return load_config()


def get_config_value(section: str, key: str, default: Any = None) -> Any:
    """
    Read one configuration value.

    Args:
        section: Top-level section name (e.g. 'forms')
        key: Key inside the section
        default: Value returned when section or key is missing

    Returns:
        The configured value or default
    """
    section_values = load_config().get(section)
    if not isinstance(section_values, dict):
        return default
    return section_values.get(key, default)


def get_logging_level(level_str: str) -> int:
    """Map string logging level to logging constant."""
    level_map = {
        'DEBUG': logging.DEBUG,
        'INFO': logging.INFO,
        'WARNING': logging.WARNING,
        'ERROR': logging.ERROR,
        'CRITICAL': logging.CRITICAL
    }
    return level_map.get(str(level_str).upper(), logging.INFO)


def configure_logging() -> int:
    """
    Configure root logging from the 'logging' config section.

    Returns:
        The numeric level that was applied
    """
    try:
        level_str = get_config_value('logging', 'level', 'INFO')
        log_format = get_config_value('logging', 'format', get_default_config()['logging']['format'])
        level = get_logging_level(level_str)
        logging.basicConfig(level=level, format=log_format)
        logger.info(f"Logging configured to level: {level_str}")
        return level
    except Exception as e:
        logging.basicConfig(level=logging.INFO)
        logger.error(f"Failed to configure logging from config: {e}, using INFO level")
        return logging.INFO
