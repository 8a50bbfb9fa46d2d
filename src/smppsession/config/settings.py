"""
SMPP Client Configuration Settings

Configuration classes and factory functions for the session client, with
validation and layered loading from files, the environment and keyword
overrides.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..exceptions import SMPPValidationException
from ..protocol import InterfaceVersion
from ..protocol.constants import MAX_PASSWORD_LENGTH, MAX_SYSTEM_ID_LENGTH
from ..utils import mask_sensitive_data
from .base import (
    BaseConfig,
    convert_env_value,
    env_converter,
    field_types,
    is_config_type,
    read_json_object,
)

_VALID_LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _positive(name: str, value: float) -> None:
    if value <= 0:
        raise SMPPValidationException(
            f'Invalid {name}: {value} (must be > 0)',
            field_name=name,
            field_value=str(value),
            validation_rule='positive_number',
        )


@dataclass
class LoggingConfig(BaseConfig):
    """Logging configuration settings"""

    level: str = 'INFO'
    format: str = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    log_file: Optional[str] = None
    enable_console: bool = True

    def validate(self) -> None:
        """Validate logging configuration"""
        if self.level.upper() not in _VALID_LOG_LEVELS:
            raise SMPPValidationException(
                f'Invalid log level: {self.level}',
                field_name='level',
                field_value=self.level,
                validation_rule='log_level',
            )


@dataclass
class ClientConfig(BaseConfig):
    """Complete session client configuration"""

    # Connection details
    host: str = 'localhost'
    port: int = 2775

    # Authentication
    system_id: str = ''
    password: str = ''
    system_type: str = ''
    interface_version: int = InterfaceVersion.VERSION_3_4

    # Timeouts (seconds)
    connect_timeout: float = 10.0
    bind_timeout: float = 30.0
    response_timeout: float = 30.0
    unbind_timeout: float = 5.0
    enquire_link_interval: float = 10.0

    # Characters per message part
    default_length_limit: int = 140
    unicode_length_limit: int = 70

    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Validate complete client configuration"""
        if not self.host:
            raise SMPPValidationException(
                'Host cannot be empty',
                field_name='host',
                field_value=self.host,
                validation_rule='non_empty',
            )

        if not (1 <= self.port <= 65535):
            raise SMPPValidationException(
                f'Invalid port: {self.port} (must be 1-65535)',
                field_name='port',
                field_value=str(self.port),
                validation_rule='port_range',
            )

        # Both are C-octet strings, the limits include the terminating NUL
        if len(self.system_id) >= MAX_SYSTEM_ID_LENGTH:
            raise SMPPValidationException(
                f'System ID too long: {len(self.system_id)} > {MAX_SYSTEM_ID_LENGTH - 1}',
                field_name='system_id',
                field_value=self.system_id,
                validation_rule='max_length',
            )

        if len(self.password) >= MAX_PASSWORD_LENGTH:
            raise SMPPValidationException(
                f'Password too long: {len(self.password)} > {MAX_PASSWORD_LENGTH - 1}',
                field_name='password',
                field_value='***',
                validation_rule='max_length',
            )

        if len(self.system_type) >= 13:
            raise SMPPValidationException(
                f'System type too long: {len(self.system_type)} > 12',
                field_name='system_type',
                field_value=self.system_type,
                validation_rule='max_length',
            )

        if self.interface_version not in (
            InterfaceVersion.VERSION_3_3,
            InterfaceVersion.VERSION_3_4,
        ):
            raise SMPPValidationException(
                f'Unsupported interface version: 0x{self.interface_version:02X}',
                field_name='interface_version',
                field_value=f'0x{self.interface_version:02X}',
                validation_rule='supported_version',
            )

        _positive('connect_timeout', self.connect_timeout)
        _positive('bind_timeout', self.bind_timeout)
        _positive('response_timeout', self.response_timeout)
        _positive('unbind_timeout', self.unbind_timeout)
        _positive('enquire_link_interval', self.enquire_link_interval)

        for name in ('default_length_limit', 'unicode_length_limit'):
            value = getattr(self, name)
            if value < 1:
                raise SMPPValidationException(
                    f'Invalid {name}: {value} (must be >= 1)',
                    field_name=name,
                    field_value=str(value),
                    validation_rule='min_value',
                )

        self.logging.validate()

    def __repr__(self) -> str:
        return (
            f'ClientConfig(host={self.host!r}, port={self.port}, '
            f'system_id={self.system_id!r}, '
            f'password={mask_sensitive_data(self.password, "password")!r})'
        )


def create_client_config(**kwargs) -> ClientConfig:
    """
    Create a validated client configuration.

    Args:
        **kwargs: Configuration parameters; ``logging`` may be a dict

    Returns:
        Validated ClientConfig instance

    Raises:
        SMPPValidationException: If configuration is invalid
    """
    return ClientConfig.from_dict(kwargs)


# Environment suffixes for nested logging settings
_LOGGING_ENV_KEYS = {'LOG_LEVEL': 'level', 'LOG_FILE': 'log_file'}


def _hex_int(raw: str) -> int:
    return int(raw, 16)


def load_config_from_env(prefix: str = 'SMPP_') -> Dict[str, Any]:
    """
    Collect ``ClientConfig`` values from ``<prefix><FIELD>`` variables.

    ``INTERFACE_VERSION`` is read as hex (``34`` means 0x34) and
    ``LOG_LEVEL`` / ``LOG_FILE`` fill the nested logging section. Only
    variables that are set appear in the result.
    """
    config: Dict[str, Any] = {}

    for name, annotation in field_types(ClientConfig).items():
        if is_config_type(annotation):
            continue
        env_key = f'{prefix}{name.upper()}'
        raw = os.getenv(env_key)
        if raw is None:
            continue
        converter = _hex_int if name == 'interface_version' else env_converter(annotation)
        config[name] = convert_env_value(env_key, name, raw, converter)

    for suffix, name in _LOGGING_ENV_KEYS.items():
        raw = os.getenv(f'{prefix}{suffix}')
        if raw is not None:
            config.setdefault('logging', {})[name] = raw

    return config


def load_config_from_file(file_path: Union[str, Path]) -> Dict[str, Any]:
    """Raw configuration mapping from a JSON file, not yet validated."""
    return read_json_object(file_path)


def merge_configurations(*configs: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge multiple configuration dictionaries.
    Later configurations override earlier ones; nested dicts are merged.
    """
    result: Dict[str, Any] = {}

    for config in configs:
        if not isinstance(config, dict):
            continue

        for key, value in config.items():
            if (
                isinstance(value, dict)
                and key in result
                and isinstance(result[key], dict)
            ):
                result[key] = merge_configurations(result[key], value)
            else:
                result[key] = value

    return result


def create_client_config_from_sources(
    file_path: Optional[Union[str, Path]] = None,
    env_prefix: str = 'SMPP_',
    **overrides,
) -> ClientConfig:
    """
    Create client configuration from multiple sources.

    Priority order (highest to lowest):
    1. Keyword overrides
    2. Environment variables
    3. Configuration file
    4. Defaults

    Args:
        file_path: Optional configuration file path
        env_prefix: Environment variable prefix
        **overrides: Direct configuration overrides

    Returns:
        Validated ClientConfig instance
    """
    configs = []

    if file_path:
        configs.append(load_config_from_file(file_path))

    configs.append(load_config_from_env(env_prefix))

    if overrides:
        configs.append(overrides)

    return create_client_config(**merge_configurations(*configs))
