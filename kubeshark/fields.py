"""Typed, YAML-named dataclass fields and the helpers that work on them.

Configuration classes declare their fields with :func:`yaml_field`, which
records the YAML key, the value kind and a few flags in the field metadata.
The helpers here use that metadata to parse flag strings, export objects to
plain dictionaries and load them back.
"""

from __future__ import annotations

import copy
import dataclasses
import enum
import re
from collections.abc import Mapping
from typing import Any, Callable

_META_NAME = "yaml_name"
_META_KIND = "yaml_kind"
_META_READONLY = "readonly"
_META_OMITEMPTY = "omitempty"

_MISSING: Any = object()


class Kind(enum.Enum):
    """The kind of value a configuration field holds."""

    STRING = "string"
    BOOL = "bool"
    INT = "int"
    INT8 = "int8"
    INT16 = "int16"
    INT32 = "int32"
    INT64 = "int64"
    UINT = "uint"
    UINT8 = "uint8"
    UINT16 = "uint16"
    UINT32 = "uint32"
    UINT64 = "uint64"
    STRING_LIST = "[]string"
    BOOL_LIST = "[]bool"
    INT_LIST = "[]int"
    UINT_LIST = "[]uint"
    LIST = "slice"
    MAP = "map"
    STRUCT = "struct"
    ANY = "interface"

    @property
    def is_list(self) -> bool:
        """Whether fields of this kind hold a list."""
        return self is Kind.LIST or self in _LIST_ELEMENTS

    @property
    def element(self) -> Kind | None:
        """The kind of the items of a typed list, or None."""
        return _LIST_ELEMENTS.get(self)

    def __str__(self) -> str:
        return self.value


_LIST_ELEMENTS = {
    Kind.STRING_LIST: Kind.STRING,
    Kind.BOOL_LIST: Kind.BOOL,
    Kind.INT_LIST: Kind.INT,
    Kind.UINT_LIST: Kind.UINT,
}

_SIGNED_RANGES = {
    Kind.INT: 64,
    Kind.INT8: 8,
    Kind.INT16: 16,
    Kind.INT32: 32,
    Kind.INT64: 64,
}

_UNSIGNED_RANGES = {
    Kind.UINT: 64,
    Kind.UINT8: 8,
    Kind.UINT16: 16,
    Kind.UINT32: 32,
    Kind.UINT64: 64,
}

_TRUE_STRINGS = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_STRINGS = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_SIGNED_RE = re.compile(r"[+-]?[0-9]+")
_UNSIGNED_RE = re.compile(r"[0-9]+")


class ValueParseError(ValueError):
    """A value does not match the kind of the field it is meant for."""


def _in_range(kind: Kind, number: int) -> bool:
    if kind in _SIGNED_RANGES:
        bits = _SIGNED_RANGES[kind]
        return -(1 << (bits - 1)) <= number <= (1 << (bits - 1)) - 1
    bits = _UNSIGNED_RANGES[kind]
    return 0 <= number <= (1 << bits) - 1


def _zero_value(kind: Kind) -> Any:
    if kind is Kind.STRING:
        return ""
    if kind is Kind.BOOL:
        return False
    if kind in _SIGNED_RANGES or kind in _UNSIGNED_RANGES:
        return 0
    if kind.is_list:
        return []
    if kind is Kind.MAP:
        return {}
    return None


def yaml_field(
    name: str,
    kind: Kind,
    *,
    default: Any = _MISSING,
    factory: Callable[[], Any] | None = None,
    readonly: bool = False,
    omitempty: bool = False,
) -> Any:
    """Declare a dataclass field with a YAML key and a value kind.

    Without a default or factory the field starts at the zero value of its
    kind; struct fields need a factory.
    """
    if factory is not None and default is not _MISSING:
        raise TypeError("give either a default or a factory, not both")
    metadata = {
        _META_NAME: name,
        _META_KIND: kind,
        _META_READONLY: readonly,
        _META_OMITEMPTY: omitempty,
    }
    if factory is None:
        if default is _MISSING:
            if kind is Kind.STRUCT:
                raise TypeError(f"struct field {name!r} needs a factory")
            default = _zero_value(kind)
        if isinstance(default, (list, dict, set)):
            template = default

            def factory() -> Any:
                return copy.deepcopy(template)

        else:
            return dataclasses.field(default=default, metadata=metadata)
    return dataclasses.field(default_factory=factory, metadata=metadata)


def field_name(field: dataclasses.Field) -> str:
    """The YAML key of a field, falling back to its attribute name."""
    return field.metadata.get(_META_NAME) or field.name


def field_kind(field: dataclasses.Field) -> Kind:
    """The declared kind of a field; undeclared fields are of any kind."""
    return field.metadata.get(_META_KIND, Kind.ANY)


def get_parsed_value(kind: Kind, value: str) -> Any:
    """Parse a flag string into a value of the given scalar kind."""
    if kind is Kind.STRING:
        return value
    if kind is Kind.BOOL:
        if value in _TRUE_STRINGS:
            return True
        if value in _FALSE_STRINGS:
            return False
    elif kind in _SIGNED_RANGES:
        if _SIGNED_RE.fullmatch(value):
            number = int(value)
            if _in_range(kind, number):
                return number
    elif kind in _UNSIGNED_RANGES:
        if _UNSIGNED_RE.fullmatch(value):
            number = int(value)
            if _in_range(kind, number):
                return number
    raise ValueParseError("value to parse does not match type")


def _is_nested(value: Any) -> bool:
    return dataclasses.is_dataclass(value) and not isinstance(value, type)


def set_zero_for_readonly_fields(obj: Any) -> None:
    """Reset every field marked read-only, descending into nested structs."""
    for field in dataclasses.fields(obj):
        value = getattr(obj, field.name)
        if _is_nested(value):
            set_zero_for_readonly_fields(value)
            continue
        if field.metadata.get(_META_READONLY):
            setattr(obj, field.name, _zero_value(field_kind(field)))


def _is_zero(value: Any) -> bool:
    if value is None:
        return True
    if _is_nested(value):
        return all(_is_zero(getattr(value, f.name)) for f in dataclasses.fields(value))
    if isinstance(value, (str, bytes, bool, int, float, list, tuple, dict, set)):
        return not value
    return False


def _export(value: Any) -> Any:
    if _is_nested(value):
        return to_dict(value)
    if isinstance(value, (list, tuple)):
        return [_export(item) for item in value]
    if isinstance(value, Mapping):
        return {key: _export(item) for key, item in value.items()}
    if isinstance(value, enum.Enum):
        return value.value
    return value


def to_dict(obj: Any) -> dict[str, Any]:
    """Export a configuration object to a dictionary keyed by YAML names."""
    result: dict[str, Any] = {}
    for field in dataclasses.fields(obj):
        value = getattr(obj, field.name)
        if field.metadata.get(_META_OMITEMPTY) and _is_zero(value):
            continue
        result[field_name(field)] = _export(value)
    return result


def _mismatch(key: str, value: Any, kind: Kind) -> ValueParseError:
    return ValueParseError(f"invalid value {value!r} for field {key}, expected {kind}")


def _coerce(kind: Kind, value: Any, key: str, current: Any) -> Any:
    if value is None:
        return _zero_value(kind)
    if kind is Kind.STRING:
        if isinstance(value, str):
            return value
        if isinstance(value, bool):
            return "true" if value else "false"
        if isinstance(value, (int, float)):
            return str(value)
        raise _mismatch(key, value, kind)
    if kind is Kind.BOOL:
        if isinstance(value, bool):
            return value
        raise _mismatch(key, value, kind)
    if kind in _SIGNED_RANGES or kind in _UNSIGNED_RANGES:
        if isinstance(value, int) and not isinstance(value, bool) and _in_range(kind, value):
            return value
        raise _mismatch(key, value, kind)
    if kind.is_list:
        if not isinstance(value, (list, tuple)):
            raise _mismatch(key, value, kind)
        element = kind.element
        if element is None:
            return list(value)
        return [_coerce(element, item, key, None) for item in value]
    if kind is Kind.MAP:
        if not isinstance(value, Mapping):
            raise _mismatch(key, value, kind)
        template = None
        if isinstance(current, Mapping):
            template = next((item for item in current.values() if _is_nested(item)), None)
        if template is None:
            return dict(value)
        item_type = type(template)
        result = {}
        for item_key, item_value in value.items():
            item = item_type()
            if item_value is not None:
                update_from_dict(item, item_value)
            result[item_key] = item
        return result
    return value


def update_from_dict(obj: Any, data: Mapping[str, Any]) -> None:
    """Load values keyed by YAML names into a configuration object.

    Unknown keys are ignored; values of the wrong kind raise ValueParseError.
    """
    if not isinstance(data, Mapping):
        raise ValueParseError(f"expected a mapping for {type(obj).__name__}, got {data!r}")
    by_name = {field_name(field): field for field in dataclasses.fields(obj)}
    for key, value in data.items():
        field = by_name.get(key)
        if field is None:
            continue
        current = getattr(obj, field.name)
        if _is_nested(current):
            if value is not None:
                update_from_dict(current, value)
            continue
        setattr(obj, field.name, _coerce(field_kind(field), value, key, current))