"""
Configuration Base Class

Dataclass configuration with validation and dict, environment and JSON file
round-tripping. Nested ``BaseConfig`` fields are converted from plain
dictionaries.
"""

import json
import os
import typing
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Callable, Dict, Type, TypeVar, Union

from ..exceptions import SMPPValidationException

ConfigT = TypeVar('ConfigT', bound='BaseConfig')
PathLike = Union[str, Path]

_TRUE_VALUES = ('true', '1', 'yes', 'on')


def field_types(cls: type) -> Dict[str, Any]:
    """Resolved annotation of every dataclass field of ``cls``"""
    hints = typing.get_type_hints(cls)
    return {f.name: hints.get(f.name, f.type) for f in fields(cls)}


def is_config_type(candidate: Any) -> bool:
    return isinstance(candidate, type) and issubclass(candidate, BaseConfig)


def _parse_bool(raw: str) -> bool:
    return raw.strip().lower() in _TRUE_VALUES


def env_converter(annotation: Any) -> Callable[[str], Any]:
    """Converter from an environment string to a field of type ``annotation``"""
    if annotation is bool:
        return _parse_bool
    if annotation is int:
        return int
    if annotation is float:
        return float
    return str


def convert_env_value(
    env_key: str, field_name: str, raw: str, converter: Callable[[str], Any]
) -> Any:
    try:
        return converter(raw)
    except (TypeError, ValueError) as e:
        raise SMPPValidationException(
            f'Invalid environment value for {env_key}: {raw}',
            field_name=field_name,
            field_value=raw,
            validation_rule='env_type_conversion',
            original_error=e,
        ) from e


def _file_error(path: Path, message: str, rule: str, error=None) -> SMPPValidationException:
    return SMPPValidationException(
        f'{message}: {path}',
        field_name='config_file',
        field_value=str(path),
        validation_rule=rule,
        original_error=error,
    )


def read_json_object(file_path: PathLike) -> Dict[str, Any]:
    """
    Read a JSON configuration file that must hold a single object.

    Raises:
        SMPPValidationException: If the file is missing, unreadable, not JSON
            or not a JSON object
    """
    path = Path(file_path)
    if not path.is_file():
        raise _file_error(path, 'Configuration file not found', 'file_exists')

    try:
        data = json.loads(path.read_text(encoding='utf-8'))
    except json.JSONDecodeError as e:
        raise _file_error(path, 'Invalid JSON in configuration file', 'valid_json', e) from e
    except OSError as e:
        raise _file_error(path, 'Error reading configuration file', 'file_readable', e) from e

    if not isinstance(data, dict):
        raise _file_error(path, 'Configuration file must contain a JSON object', 'json_object')
    return data


@dataclass
class BaseConfig:
    """Base for validated, serializable configuration dataclasses."""

    def validate(self) -> None:
        """Check field values; subclasses raise ``SMPPValidationException``."""

    @classmethod
    def from_dict(cls: Type[ConfigT], data: Dict[str, Any]) -> ConfigT:
        """Build and validate a config; unknown keys are ignored."""
        types = field_types(cls)
        kwargs: Dict[str, Any] = {}
        for name, value in data.items():
            annotation = types.get(name)
            if annotation is None:
                continue
            if is_config_type(annotation) and isinstance(value, dict):
                value = annotation.from_dict(value)
            kwargs[name] = value

        try:
            config = cls(**kwargs)
            config.validate()
        except (TypeError, ValueError) as e:
            raise SMPPValidationException(
                f'Invalid configuration data for {cls.__name__}: {e}',
                field_name='config_data',
                validation_rule='type_conversion',
                original_error=e,
            ) from e
        return config

    @classmethod
    def from_env(cls: Type[ConfigT], prefix: str = '') -> ConfigT:
        """Build a config from variables named ``<PREFIX><FIELD>``; nested configs are skipped."""
        prefix = prefix.upper()
        values: Dict[str, Any] = {}

        for name, annotation in field_types(cls).items():
            if is_config_type(annotation):
                continue
            env_key = prefix + name.upper()
            raw = os.getenv(env_key)
            if raw is not None:
                values[name] = convert_env_value(
                    env_key, name, raw, env_converter(annotation)
                )

        return cls.from_dict(values)

    @classmethod
    def from_file(cls: Type[ConfigT], file_path: PathLike) -> ConfigT:
        return cls.from_dict(read_json_object(file_path))

    def to_dict(self) -> Dict[str, Any]:
        """Plain-dict form; nested configs become nested dicts."""
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            result[f.name] = value.to_dict() if isinstance(value, BaseConfig) else value
        return result

    def to_file(self, file_path: PathLike) -> None:
        """Write the config as indented JSON, creating parent directories."""
        path = Path(file_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(
                json.dumps(self.to_dict(), indent=2, default=str), encoding='utf-8'
            )
        except OSError as e:
            raise _file_error(path, 'Error writing configuration file', 'file_writable', e) from e
