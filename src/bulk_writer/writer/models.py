"""Domain models for the bulk writer.

This module defines the configuration, state and wire-operation types shared
by the buffer, the operation builders and the writer itself.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Self

from bulk_writer.exceptions import ConfigurationError
from bulk_writer.settings import lookup, parse_bool, parse_byte_size, parse_int

SYNTHETIC_ID = "_id"
"""Id-field sentinel meaning "let the target assign ids". Also the wire-level id key."""

RDATA_FIELD = "rdata"
"""Reserved record field holding the nested ``key=value`` structure."""

DEFAULT_BATCH_SIZE_BYTES = 1024 * 1024
DEFAULT_BATCH_SIZE_ENTRIES = 1000


class OperationType(str, Enum):
    """Kind of bulk operation a writer emits.

    Attributes:
        INDEX: Create or replace the document.
        DELETE: Remove the document with the record's id.
    """

    INDEX = "index"
    DELETE = "delete"


class WriterStatus(str, Enum):
    """Lifecycle status of a BulkWriter.

    Attributes:
        OPEN: Accepting operations.
        CLOSING: Final flush, refresh and transport release in progress.
        CLOSED: Terminal; no operation is valid.
    """

    OPEN = "open"
    CLOSING = "closing"
    CLOSED = "closed"


@dataclass(frozen=True, slots=True)
class WriterConfig:
    """Configuration for BulkWriter.

    Attributes:
        target: Name of the target collection (index) every operation goes to.
        operation_type: Operation emitted by ``dispatch`` (default: index).
        id_field: Record field holding the document id, or ``SYNTHETIC_ID``
            to let the target assign ids (default).
        batch_size_bytes: Buffer capacity in bytes (default: 1 MiB).
        batch_size_entries: Entry count that forces a flush; 0 disables the
            check (default: 1000).
        refresh_after_write: Refresh the target on close when at least one
            bulk request was sent (default: True).
    """

    target: str
    operation_type: OperationType = OperationType.INDEX
    id_field: str = SYNTHETIC_ID
    batch_size_bytes: int = DEFAULT_BATCH_SIZE_BYTES
    batch_size_entries: int = DEFAULT_BATCH_SIZE_ENTRIES
    refresh_after_write: bool = True

    def __post_init__(self) -> None:
        if self.batch_size_bytes <= 0:
            raise ConfigurationError(
                f"batch_size_bytes must be positive, got {self.batch_size_bytes}"
            )
        if self.batch_size_entries < 0:
            raise ConfigurationError(
                f"batch_size_entries must not be negative, got {self.batch_size_entries}"
            )
        try:
            operation_type = OperationType(self.operation_type)
        except ValueError as exc:
            raise ConfigurationError(
                f"Unknown operation type {self.operation_type!r}; "
                f"expected one of {[t.value for t in OperationType]}"
            ) from exc
        # Frozen dataclass: normalise plain strings to the enum in place.
        object.__setattr__(self, "operation_type", operation_type)

    @classmethod
    def from_settings(cls, settings: Mapping[str, str]) -> Self:
        """Build a config from connector-style settings.

        Recognised keys: ``es.resource``, ``es.operation.type``,
        ``es.mapping.id``, ``es.batch.size.bytes``, ``es.batch.size.entries``
        and ``es.batch.write.refresh``.

        Args:
            settings: Flat mapping of setting names to string values.

        Returns:
            A validated WriterConfig.

        Raises:
            ConfigurationError: If a value cannot be parsed.
        """
        return cls._from_lookup(
            settings,
            target="es.resource",
            operation_type="es.operation.type",
            id_field="es.mapping.id",
            batch_size_bytes="es.batch.size.bytes",
            batch_size_entries="es.batch.size.entries",
            refresh_after_write="es.batch.write.refresh",
        )

    @classmethod
    def from_env(cls, prefix: str = "BULK_WRITER_") -> Self:
        """Build a config from ``BULK_WRITER_*`` environment variables."""
        return cls._from_lookup(
            os.environ,
            target=f"{prefix}TARGET",
            operation_type=f"{prefix}OPERATION_TYPE",
            id_field=f"{prefix}ID_FIELD",
            batch_size_bytes=f"{prefix}BATCH_SIZE_BYTES",
            batch_size_entries=f"{prefix}BATCH_SIZE_ENTRIES",
            refresh_after_write=f"{prefix}REFRESH_AFTER_WRITE",
        )

    @classmethod
    def _from_lookup(cls, source: Mapping[str, str], **keys: str) -> Self:
        batch_bytes = lookup(source, keys["batch_size_bytes"])
        batch_entries = lookup(source, keys["batch_size_entries"])
        refresh = lookup(source, keys["refresh_after_write"])
        operation_type = lookup(source, keys["operation_type"], OperationType.INDEX.value)

        return cls(
            target=lookup(source, keys["target"], "") or "",
            operation_type=(operation_type or OperationType.INDEX.value).lower(),
            id_field=lookup(source, keys["id_field"], SYNTHETIC_ID) or SYNTHETIC_ID,
            batch_size_bytes=(
                parse_byte_size(batch_bytes, keys["batch_size_bytes"])
                if batch_bytes is not None
                else DEFAULT_BATCH_SIZE_BYTES
            ),
            batch_size_entries=(
                parse_int(batch_entries, keys["batch_size_entries"])
                if batch_entries is not None
                else DEFAULT_BATCH_SIZE_ENTRIES
            ),
            refresh_after_write=(
                parse_bool(refresh, keys["refresh_after_write"]) if refresh is not None else True
            ),
        )


@dataclass
class WriterState:
    """Mutable lifecycle state of a single writer.

    Attributes:
        status: Current lifecycle status.
        executed_bulk_write: Whether any flush has succeeded since construction.
        refresh_after_write: Copied from configuration; decides the refresh on close.
    """

    status: WriterStatus = WriterStatus.OPEN
    executed_bulk_write: bool = False
    refresh_after_write: bool = True

    @property
    def requires_refresh(self) -> bool:
        """True when closing should issue a refresh request."""
        return self.refresh_after_write and self.executed_bulk_write


@dataclass
class WriterMetrics:
    """Counters describing what a writer has sent so far."""

    operations: int = field(default=0)
    bulk_requests: int = field(default=0)
    bytes_sent: int = field(default=0)
    refreshes: int = field(default=0)


@dataclass(frozen=True, slots=True)
class Operation:
    """A serialized bulk operation ready to be appended to the buffer.

    Attributes:
        kind: Whether this is an index or a delete operation.
        payload: UTF-8 encoded, newline-terminated bulk lines.
    """

    kind: OperationType
    payload: bytes

    @property
    def length(self) -> int:
        """Length of the payload in bytes."""
        return len(self.payload)
