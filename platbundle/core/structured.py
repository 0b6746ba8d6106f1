"""Helpers for reading untyped TOML tables.

Two flavours:

- ``get_*`` helpers are lenient and return None for missing or mistyped values.
  They suit optional tool configuration.
- ``field_*`` helpers are strict. A missing key is None, but a present key of the
  wrong type raises ``FieldTypeError`` naming the dotted key and the expected
  type. Manifest parsing uses these so a typo never silently becomes a default.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TypeGuard, cast

StrDict = dict[str, object]
ObjList = list[object]

__all__ = [
    "FieldTypeError",
    "ObjList",
    "StrDict",
    "as_obj_list",
    "as_str_dict",
    "field_int",
    "field_int_pair",
    "field_str",
    "field_str_list",
    "field_str_map",
    "field_table",
    "get_int",
    "get_list",
    "get_str",
    "get_table",
    "is_str_dict",
]


class FieldTypeError(ValueError):
    """A known key holds a value of the wrong type."""

    def __init__(self, key: str, expected: str) -> None:
        super().__init__(f"'{key}' must be {expected}")
        self.key = key
        self.expected = expected


def is_str_dict(obj: object) -> TypeGuard[StrDict]:
    if not isinstance(obj, dict):
        return False
    d = cast(dict[object, object], obj)
    return all(isinstance(k, str) for k in d.keys())


def as_str_dict(obj: object) -> StrDict | None:
    if is_str_dict(obj):
        return obj
    return None


def as_obj_list(obj: object) -> ObjList | None:
    if isinstance(obj, list):
        return cast(ObjList, obj)
    return None


def get_str(table: Mapping[str, object], key: str) -> str | None:
    """Get a stripped, non-empty string or None."""
    value = table.get(key)
    if not isinstance(value, str):
        return None
    s = value.strip()
    return s or None


def get_int(table: Mapping[str, object], key: str) -> int | None:
    value = table.get(key)
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value


def get_table(table: Mapping[str, object], key: str) -> StrDict | None:
    return as_str_dict(table.get(key))


def get_list(table: Mapping[str, object], key: str) -> ObjList | None:
    return as_obj_list(table.get(key))


# -----------------------------------------------------------------------------
# Strict accessors
# -----------------------------------------------------------------------------


def _dotted(prefix: str, key: str) -> str:
    return f"{prefix}.{key}" if prefix else key


def field_str(table: Mapping[str, object], key: str, *, prefix: str = "") -> str | None:
    value = table.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise FieldTypeError(_dotted(prefix, key), "a string")
    return value.strip() or None


def field_int(table: Mapping[str, object], key: str, *, prefix: str = "") -> int | None:
    value = table.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise FieldTypeError(_dotted(prefix, key), "an integer")
    return value


def field_str_list(
    table: Mapping[str, object], key: str, *, prefix: str = ""
) -> tuple[str, ...] | None:
    value = table.get(key)
    if value is None:
        return None
    items = as_obj_list(value)
    if items is None or not all(isinstance(item, str) for item in items):
        raise FieldTypeError(_dotted(prefix, key), "a list of strings")
    return tuple(cast(list[str], items))


def field_str_map(
    table: Mapping[str, object], key: str, *, prefix: str = ""
) -> dict[str, str] | None:
    value = table.get(key)
    if value is None:
        return None
    mapping = as_str_dict(value)
    if mapping is None or not all(isinstance(v, str) for v in mapping.values()):
        raise FieldTypeError(_dotted(prefix, key), "a table of strings")
    return cast(dict[str, str], dict(mapping))


def field_int_pair(
    table: Mapping[str, object], key: str, *, prefix: str = ""
) -> tuple[int, int] | None:
    value = table.get(key)
    if value is None:
        return None
    items = as_obj_list(value)
    if (
        items is None
        or len(items) != 2
        or not all(isinstance(v, int) and not isinstance(v, bool) for v in items)
    ):
        raise FieldTypeError(_dotted(prefix, key), "a pair of integers")
    first, second = cast(list[int], items)
    return (first, second)


def field_table(table: Mapping[str, object], key: str, *, prefix: str = "") -> StrDict | None:
    value = table.get(key)
    if value is None:
        return None
    nested = as_str_dict(value)
    if nested is None:
        raise FieldTypeError(_dotted(prefix, key), "a table")
    return nested
