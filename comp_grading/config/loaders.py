import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml
from cerberus import Validator
from pydantic import ValidationError as PydanticValidationError

from .models import EngineSettings, MainConfig

# Environment variable consulted when no config path is given
CONFIG_ENV_VAR = "COMP_GRADING_CONFIG"

SETTINGS_SCHEMA: Dict[str, Any] = {
    "grading": {
        "type": "dict",
        "required": False,
        "nullable": True,
        "schema": {
            "debounce_seconds": {"type": "number", "required": False, "min": 0},
            "comparison_capacity": {"type": "integer", "required": False, "min": 1},
            "skip_unchanged_recalculation": {"type": "boolean", "required": False},
            "default_draft_name": {"type": "string", "required": False},
            "default_draft_description": {"type": "string", "required": False},
            "log_dir": {"type": "string", "required": False, "nullable": True},
            "risk_thresholds": {
                "type": "dict",
                "required": False,
                "schema": {
                    "vertical_high": {"type": "number", "min": 0},
                    "horizontal_high": {"type": "number", "min": 0},
                    "vertical_medium": {"type": "number", "min": 0},
                    "horizontal_medium": {"type": "number", "min": 0},
                },
            },
        },
    },
}

# Configure logger for this module
logger = logging.getLogger(__name__)


class ConfigLoadError(Exception):
    """Custom exception for errors during config loading."""

    pass


def load_yaml_config(config_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Loads configuration data from a YAML file.

    Args:
        config_path: Path pointing to the YAML configuration file.

    Returns:
        A dictionary containing the loaded configuration. An empty file yields
        an empty dictionary.

    Raises:
        ConfigLoadError: If the file cannot be found or parsed.
    """
    if not isinstance(config_path, Path):
        config_path = Path(config_path)

    logger.info(f"Attempting to load configuration from: {config_path}")

    if not config_path.is_file():
        logger.error(f"Configuration file not found at path: {config_path}")
        raise ConfigLoadError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.exception(f"Error parsing YAML configuration file {config_path}: {e}")
        raise ConfigLoadError(f"Error parsing YAML file {config_path}") from e
    except OSError as e:
        logger.error(f"Could not read configuration file {config_path}: {e}")
        raise ConfigLoadError(f"Could not read configuration file {config_path}") from e

    if config_data is None:
        return {}
    if not isinstance(config_data, dict):
        logger.error(f"Configuration file {config_path} did not parse into a dictionary.")
        raise ConfigLoadError(
            f"Invalid configuration format in {config_path}: Expected a dictionary."
        )

    logger.info(f"Successfully loaded configuration from {config_path}")
    return config_data


def settings_from_dict(config_data: Dict[str, Any]) -> EngineSettings:
    """
    Validates a raw config mapping and returns the engine settings.

    Keys outside the ``grading`` section are ignored.

    Raises:
        ConfigLoadError: On schema or value validation errors.
    """
    v = Validator(SETTINGS_SCHEMA, allow_unknown=True)
    if not v.validate(config_data or {}):
        raise ConfigLoadError(f"Config validation failed: {v.errors}")

    grading = (config_data or {}).get("grading") or {}
    try:
        return MainConfig(grading=grading).grading
    except PydanticValidationError as e:
        raise ConfigLoadError(f"Invalid grading settings: {e}") from e


def load_settings(config_path: Optional[Union[str, Path]] = None) -> EngineSettings:
    """
    Load engine settings.

    Priority: explicit ``config_path``, then the ``COMP_GRADING_CONFIG``
    environment variable, then built-in defaults.
    """
    path = config_path or os.getenv(CONFIG_ENV_VAR)
    if not path:
        logger.info("No grading config given, using default settings")
        return EngineSettings()
    settings = settings_from_dict(load_yaml_config(Path(path)))
    logger.debug(f"Grading settings loaded: {settings}")
    return settings


# Expose for import
__all__ = [
    "CONFIG_ENV_VAR",
    "ConfigLoadError",
    "load_settings",
    "load_yaml_config",
    "settings_from_dict",
]
