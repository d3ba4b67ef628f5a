"""Configuration module for clawx."""

from clawx.config.loader import load_config, get_config_path, save_config
from clawx.config.schema import Config, GatewayConfig, GatewayProcessConfig, LoggingConfig
from clawx.config.access import get_config, clear_config_cache

__all__ = [
    "Config",
    "GatewayConfig",
    "GatewayProcessConfig",
    "LoggingConfig",
    "load_config",
    "save_config",
    "get_config_path",
    "get_config",
    "clear_config_cache",
]
