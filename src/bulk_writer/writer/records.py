"""Record boundary helpers: unwrapping and rdata reprojection.

Records reach the writer either as plain mappings or as wrapper objects that
know how to turn themselves into one. The nested ``rdata`` field arrives in
its textual ``(k1=v1, k2=v2)`` form and is reshaped into a list of
``{"mapid": ..., "value": ...}`` objects before serialization.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol, runtime_checkable

from bulk_writer.exceptions import MalformedRecordError

_DELIMITERS = {"(": ")", "{": "}", "[": "]"}


@runtime_checkable
class Unwrappable(Protocol):
    """Protocol for externally-encoded records.

    Example:
        >>> class Row:
        ...     def to_mapping(self):
        ...         return {"rid": "1"}
        >>> isinstance(Row(), Unwrappable)
        True
    """

    def to_mapping(self) -> Mapping[str, Any]:
        """Return the record as an ordered field mapping."""
        ...


def to_mapping(record: Any) -> dict[str, Any]:
    """Resolve a record into a fresh, ordered dict.

    The returned dict is a copy, so the writer can pop and rewrite fields
    without touching the caller's data.

    Args:
        record: A mapping or an Unwrappable wrapper.

    Returns:
        The record fields in their original order.

    Raises:
        MalformedRecordError: If the record is neither form, or the wrapper
            does not unwrap to a mapping.
    """
    if isinstance(record, Mapping):
        return dict(record)
    if isinstance(record, Unwrappable):
        mapping = record.to_mapping()
        if not isinstance(mapping, Mapping):
            raise MalformedRecordError(
                f"{type(record).__name__}.to_mapping() returned "
                f"{type(mapping).__name__}, expected a mapping"
            )
        return dict(mapping)
    raise MalformedRecordError(
        f"Unsupported record type {type(record).__name__}; "
        "expected a mapping or an object with to_mapping()"
    )


def parse_rdata(text: str) -> list[tuple[str, str]]:
    """Parse the textual form of a flat map into key/value pairs.

    Accepts one pair of surrounding delimiters, ``()``, ``{}`` or ``[]``,
    around a comma-separated list of ``key=value`` tokens. Each token is
    split on its first ``=``; whitespace around keys and values is dropped.
    Commas inside values are not supported.

    Args:
        text: For example ``"(a=1, b=2)"``.

    Returns:
        Pairs in input order, e.g. ``[("a", "1"), ("b", "2")]``.

    Raises:
        MalformedRecordError: If delimiters are missing or a token is not
            ``key=value``.
    """
    stripped = text.strip()
    if len(stripped) < 2 or _DELIMITERS.get(stripped[0]) != stripped[-1]:
        raise MalformedRecordError(f"rdata is not a delimited key=value list: {text!r}")

    body = stripped[1:-1].strip()
    if not body:
        return []

    pairs: list[tuple[str, str]] = []
    for token in body.split(","):
        key, sep, value = token.partition("=")
        key = key.strip()
        if not sep or not key:
            raise MalformedRecordError(f"rdata entry {token.strip()!r} is not key=value")
        pairs.append((key, value.strip()))
    return pairs


def project_rdata(value: Any) -> list[dict[str, str]]:
    """Reshape an rdata value into the document's list-of-objects form.

    Args:
        value: The textual ``(k=v, ...)`` form, or a mapping that is already
            structured.

    Returns:
        ``[{"mapid": k, "value": v}, ...]`` with keys and values as strings.

    Raises:
        MalformedRecordError: If the value cannot be parsed.
    """
    if isinstance(value, Mapping):
        pairs = [(str(k), str(v)) for k, v in value.items()]
    elif isinstance(value, str):
        pairs = parse_rdata(value)
    else:
        raise MalformedRecordError(
            f"rdata must be text or a mapping, got {type(value).__name__}"
        )
    return [{"mapid": key, "value": item} for key, item in pairs]
