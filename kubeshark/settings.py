"""Merging flag values into configuration objects and the config file on disk."""

from __future__ import annotations

import dataclasses
import logging
import os
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any, Callable

import yaml

from .config_struct import ConfigStruct
from .config_structs import PROGRAM
from .fields import (
    Kind,
    ValueParseError,
    field_kind,
    field_name,
    get_parsed_value,
    set_zero_for_readonly_fields,
    to_dict,
    update_from_dict,
)

log = logging.getLogger(__name__)

SEPARATOR = "="
SET_COMMAND_NAME = "set"
DEBUG_FLAG = "debug"
CONFIG_FILE_NAME = "config.yaml"

_Merge = Callable[[str, dataclasses.Field, Any], None]


class ConfigFlagError(ValueError):
    """A flag names no configuration field or carries a value of the wrong kind."""


def _is_nested(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def _merge_flag(obj: Any, flag_path: Sequence[str], full_flag_name: str, merge: _Merge) -> None:
    if not flag_path:
        raise ConfigFlagError(f'flag "{full_flag_name}" not found')
    head = flag_path[0]
    for field in dataclasses.fields(obj):
        name = field_name(field)
        value = getattr(obj, field.name)
        if (field_kind(field) is Kind.STRUCT or _is_nested(value)) and name == head:
            _merge_flag(value, flag_path[1:], full_flag_name, merge)
            return
        if len(flag_path) > 1 or name != head:
            continue
        merge(head, field, obj)
        return
    raise ConfigFlagError(f'flag "{full_flag_name}" not found')


def merge_flag_value(
    config: Any, flag_path: Sequence[str], full_flag_name: str, flag_value: str
) -> None:
    """Set the field at ``flag_path`` from a single flag string."""

    def merge(flag_name: str, field: dataclasses.Field, owner: Any) -> None:
        kind = field_kind(field)
        if kind.is_list:
            merge_flag_values(owner, [flag_name], full_flag_name, [flag_value])
            return
        try:
            parsed = get_parsed_value(kind, flag_value)
        except ValueParseError as err:
            raise ConfigFlagError(
                f"invalid value {flag_value} for flag name {flag_name}, expected {kind}"
            ) from err
        setattr(owner, field.name, parsed)

    _merge_flag(config, list(flag_path), full_flag_name, merge)


def merge_flag_values(
    config: Any, flag_path: Sequence[str], full_flag_name: str, flag_values: Iterable[str]
) -> None:
    """Set the list field at ``flag_path`` from several flag strings."""
    values = list(flag_values)

    def merge(flag_name: str, field: dataclasses.Field, owner: Any) -> None:
        kind = field_kind(field)
        if not kind.is_list:
            raise ConfigFlagError(
                f"invalid values {','.join(values)} for flag name {flag_name}, expected {kind}"
            )
        element = kind.element or Kind.ANY
        parsed_values = []
        for value in values:
            try:
                parsed_values.append(get_parsed_value(element, value))
            except ValueParseError as err:
                raise ConfigFlagError(
                    f"invalid value {value} for flag name {flag_name}, expected {element}"
                ) from err
        setattr(owner, field.name, parsed_values)

    _merge_flag(config, list(flag_path), full_flag_name, merge)


def merge_set_flag(config: Any, set_values: Iterable[str]) -> None:
    """Apply ``key.path=value`` arguments; a key given more than once sets a list.

    Valid arguments are applied even when others fail; every failure is
    reported together in one ConfigFlagError.
    """
    errors: list[str] = []
    set_map: dict[str, list[str]] = {}

    for set_value in set_values:
        if SEPARATOR not in set_value:
            errors.append(
                f"Ignoring set argument {set_value} "
                f"(set argument format: <flag name>=<flag value>)"
            )
            continue
        key, value = set_value.split(SEPARATOR, 1)
        set_map.setdefault(key, []).append(value)

    for key, values in set_map.items():
        flag_path = key.split(".")
        try:
            if len(values) > 1:
                merge_flag_values(config, flag_path, key, values)
            else:
                merge_flag_value(config, flag_path, key, values[0])
        except ConfigFlagError as err:
            errors.append(str(err))

    if errors:
        raise ConfigFlagError("\n".join(errors))


def default_config_file_path() -> str:
    """The config file in the user's dot folder."""
    return os.path.join(str(Path.home()), f".{PROGRAM}", CONFIG_FILE_NAME)


def get_config_with_defaults() -> ConfigStruct:
    """A default configuration with every read-only field reset."""
    config = ConfigStruct()
    set_zero_for_readonly_fields(config)
    return config


def pretty_yaml(config: Any) -> str:
    """Render a configuration object (or mapping) as block-style YAML."""
    data = to_dict(config) if _is_nested(config) else config
    return yaml.safe_dump(data, sort_keys=False, default_flow_style=False, allow_unicode=True)


def write_config(config: Any, path: str | os.PathLike[str] | None = None) -> str:
    """Write the configuration as YAML and return the path written."""
    target = os.fspath(path) if path is not None else default_config_file_path()
    text = pretty_yaml(config)
    if not os.path.exists(target):
        directory = os.path.dirname(target)
        if directory:
            os.makedirs(directory, mode=0o700, exist_ok=True)
    with open(target, "w", encoding="utf-8") as handle:
        handle.write(text)
    return target


def load_config_file(
    config: Any,
    config_file_path: str | os.PathLike[str] | None = None,
    cwd: str | os.PathLike[str] | None = None,
    silent: bool = False,
) -> str:
    """Load YAML into ``config`` and return the path it came from.

    A config file named after the program in the working directory wins over
    ``config_file_path``. Raises FileNotFoundError if neither exists.
    """
    base = os.fspath(cwd) if cwd is not None else os.getcwd()
    fallback = (
        os.fspath(config_file_path)
        if config_file_path is not None
        else default_config_file_path()
    )
    cwd_config = os.path.join(base, f"{PROGRAM}.yaml")
    try:
        handle = open(cwd_config, encoding="utf-8")
        used = cwd_config
    except OSError:
        handle = open(fallback, encoding="utf-8")
        used = fallback
    with handle:
        data = yaml.safe_load(handle.read())

    update_from_dict(config, data or {})

    if not silent:
        log.info("Found config file! path=%s", used)
    return used