"""Serialization of records into bulk wire operations.

Each builder returns an Operation holding newline-terminated JSON lines:

    {"index":{}}\\n<document>\\n                 target-assigned id
    {"index":{"_id":"<id>"}}\\n<document>\\n     explicit id
    {"delete":{"_id":"<id>", ...}}\\n            delete
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any

from bulk_writer.exceptions import ConfigurationError, EncodingError, MalformedRecordError
from bulk_writer.writer.models import RDATA_FIELD, SYNTHETIC_ID, Operation, OperationType
from bulk_writer.writer.records import project_rdata

_SEPARATORS = (",", ":")


def _dumps(value: Any) -> str:
    try:
        return json.dumps(
            value, ensure_ascii=False, allow_nan=False, separators=_SEPARATORS
        )
    except (TypeError, ValueError) as exc:
        raise EncodingError(f"Cannot serialize record to JSON: {exc}") from exc


def _encode(text: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as exc:
        raise EncodingError(f"Cannot encode operation as UTF-8: {exc}") from exc


def _read_id(mapping: Mapping[str, Any], id_field: str) -> str:
    if id_field not in mapping or mapping[id_field] is None:
        raise MalformedRecordError(f"Record has no identifier field '{id_field}'")
    return str(mapping[id_field])


def build_document(mapping: dict[str, Any]) -> str:
    """Serialize a record body with its rdata field reprojected.

    The rdata value is removed from the mapping, reshaped by
    `project_rdata`, and re-added as the last field of the document.

    Args:
        mapping: Record fields. Modified in place (rdata is popped).

    Returns:
        Compact JSON text of the document.

    Raises:
        MalformedRecordError: If rdata is missing or malformed.
        EncodingError: If a field value is not JSON serializable.
    """
    if RDATA_FIELD not in mapping:
        raise MalformedRecordError(f"Record has no '{RDATA_FIELD}' field")
    rdata = project_rdata(mapping.pop(RDATA_FIELD))
    mapping[RDATA_FIELD] = rdata
    return _dumps(mapping)


def build_index_operation(mapping: dict[str, Any], id_field: str = SYNTHETIC_ID) -> Operation:
    """Build the header and document lines of an index operation.

    When `id_field` is the synthetic-id sentinel the target assigns the id
    and the record's id field is not read.

    Args:
        mapping: Unwrapped record fields. Modified in place.
        id_field: Configured id field name.

    Returns:
        An index Operation.
    """
    if id_field == SYNTHETIC_ID:
        header: dict[str, Any] = {"index": {}}
    else:
        header = {"index": {SYNTHETIC_ID: _read_id(mapping, id_field)}}

    text = f"{_dumps(header)}\n{build_document(mapping)}\n"
    return Operation(kind=OperationType.INDEX, payload=_encode(text))


def build_delete_operation(mapping: dict[str, Any], id_field: str) -> Operation:
    """Build the single line of a delete operation.

    The identifier is written under the wire-level ``_id`` key, first,
    followed by the remaining record fields in their original order.

    Args:
        mapping: Unwrapped record fields.
        id_field: Configured id field name. Must not be the synthetic-id sentinel.

    Returns:
        A delete Operation.

    Raises:
        ConfigurationError: If the target assigns ids, so no id is known.
        MalformedRecordError: If the record has no identifier.
    """
    if id_field == SYNTHETIC_ID:
        raise ConfigurationError(
            "Delete requires an explicit id field; the writer is configured "
            "to let the target assign ids"
        )
    document_id = _read_id(mapping, id_field)
    body: dict[str, Any] = {SYNTHETIC_ID: document_id}
    body.update((key, value) for key, value in mapping.items() if key != SYNTHETIC_ID)

    text = f"{_dumps({OperationType.DELETE.value: body})}\n"
    return Operation(kind=OperationType.DELETE, payload=_encode(text))


__all__ = [
    "build_delete_operation",
    "build_document",
    "build_index_operation",
]
