"""Helpers for reading writer settings from flat string mappings.

Settings arrive as strings, either from a job configuration mapping or from
environment variables. These helpers turn them into typed values and raise
ConfigurationError with the offending key when they cannot.
"""

from __future__ import annotations

import re
from collections.abc import Mapping

from bulk_writer.exceptions import ConfigurationError

_BYTE_SIZE_PATTERN = re.compile(r"^\s*(\d+)\s*([kmg]?b?)\s*$", re.IGNORECASE)

_BYTE_UNITS = {
    "": 1,
    "b": 1,
    "k": 1024,
    "kb": 1024,
    "m": 1024**2,
    "mb": 1024**2,
    "g": 1024**3,
    "gb": 1024**3,
}

_TRUE_VALUES = frozenset({"true", "yes", "on", "1"})
_FALSE_VALUES = frozenset({"false", "no", "off", "0"})


def parse_byte_size(value: str | int, key: str = "value") -> int:
    """Parse a byte size such as ``"1mb"``, ``"512kb"`` or ``"4096"``.

    Args:
        value: Raw setting value. Integers are returned unchanged.
        key: Setting name used in error messages.

    Returns:
        Size in bytes.

    Raises:
        ConfigurationError: If the value is not a recognised size.
    """
    if isinstance(value, int):
        return value
    match = _BYTE_SIZE_PATTERN.match(value)
    if match is None:
        raise ConfigurationError(f"Invalid byte size for '{key}': {value!r}")
    number, unit = match.groups()
    return int(number) * _BYTE_UNITS[unit.lower()]


def parse_int(value: str | int, key: str = "value") -> int:
    """Parse a plain integer setting."""
    if isinstance(value, int):
        return value
    try:
        return int(value.strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid integer for '{key}': {value!r}") from exc


def parse_float(value: str | float, key: str = "value") -> float:
    """Parse a floating point setting."""
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(value.strip())
    except ValueError as exc:
        raise ConfigurationError(f"Invalid number for '{key}': {value!r}") from exc


def parse_bool(value: str | bool, key: str = "value") -> bool:
    """Parse a boolean setting (``true/false``, ``yes/no``, ``on/off``, ``1/0``)."""
    if isinstance(value, bool):
        return value
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean for '{key}': {value!r}")


def lookup(settings: Mapping[str, str], key: str, default: str | None = None) -> str | None:
    """Return a stripped setting value, treating blank strings as unset."""
    value = settings.get(key)
    if value is None or not str(value).strip():
        return default
    return str(value).strip()


__all__ = [
    "lookup",
    "parse_bool",
    "parse_byte_size",
    "parse_float",
    "parse_int",
]
