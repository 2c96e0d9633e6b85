"""Configuration management for the anonymous reaction subsystem."""

from .config import (
    SystemConfig,
    ZKConfig,
    MembershipConfig,
    StorageConfig,
    ProcessorConfig,
    ConfigError,
    DEFAULT_CIRCUIT_VERSION,
    load_config,
    save_config,
)

__all__ = ['SystemConfig', 'ZKConfig', 'MembershipConfig', 'StorageConfig',
           'ProcessorConfig', 'ConfigError', 'DEFAULT_CIRCUIT_VERSION',
           'load_config', 'save_config']
