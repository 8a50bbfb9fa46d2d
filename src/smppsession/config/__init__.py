"""
SMPP Configuration Management

Validated dataclass configuration for the session client, loadable from
keyword arguments, environment variables and JSON files.
"""

from .base import BaseConfig
from .settings import (
    ClientConfig,
    LoggingConfig,
    create_client_config,
    create_client_config_from_sources,
    load_config_from_env,
    load_config_from_file,
    merge_configurations,
)

__all__ = [
    'BaseConfig',
    'ClientConfig',
    'LoggingConfig',
    'create_client_config',
    'create_client_config_from_sources',
    'load_config_from_env',
    'load_config_from_file',
    'merge_configurations',
]
