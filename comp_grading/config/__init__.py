from .loaders import ConfigLoadError, load_settings, load_yaml_config, settings_from_dict
from .models import EngineSettings, MainConfig, RiskThresholds

__all__ = [
    "ConfigLoadError",
    "EngineSettings",
    "MainConfig",
    "RiskThresholds",
    "load_settings",
    "load_yaml_config",
    "settings_from_dict",
]
