"""Configuration management for mcpy."""

from .base import (
    Config,
    BaseRemoteConfig,
    ConfigError,
    Settings,
    ValidationError,
)
from .remotes import LocalConfig, S3Config, ProxyConfig

__all__ = [
    "Config",
    "BaseRemoteConfig",
    "ConfigError",
    "Settings",
    "ValidationError",
    "LocalConfig",
    "S3Config",
    "ProxyConfig",
]
