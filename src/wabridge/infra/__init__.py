"""Infrastructure layer: configuration."""

from .config import (
    BridgeConfig,
    get_config,
    get_default_config,
    load_config,
    parse_config,
    reload_config,
    reset_config_cache,
    save_config,
)

__all__ = [
    "BridgeConfig",
    "get_config",
    "get_default_config",
    "load_config",
    "parse_config",
    "reload_config",
    "reset_config_cache",
    "save_config",
]
