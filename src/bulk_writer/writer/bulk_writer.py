"""Buffered bulk writer for a single target collection."""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import Any, Self

from bulk_writer.exceptions import ConfigurationError, RecordTooLargeError, WriterClosedError
from bulk_writer.transport.base import Transport
from bulk_writer.writer.buffer import BatchBuffer
from bulk_writer.writer.models import (
    Operation,
    OperationType,
    WriterConfig,
    WriterMetrics,
    WriterState,
    WriterStatus,
)
from bulk_writer.writer.operations import build_delete_operation, build_index_operation
from bulk_writer.writer.records import to_mapping

logger = logging.getLogger(__name__)


class BulkWriter:
    """Buffers index/delete operations and sends them as bulk requests.

    Operations are serialized on arrival and copied into a fixed-size
    BatchBuffer. The buffer is flushed through the transport before an
    append that would overflow it, and right after an append that reaches
    the entry threshold. Every flush blocks until the transport returns.

    Lifecycle is OPEN -> CLOSING -> CLOSED. `close` sends whatever is still
    buffered, refreshes the target if configured and anything was written,
    and always releases the transport. Use the writer as a context manager
    so that happens on error paths too.

    Not thread-safe: one owner drives a writer instance.

    Args:
        config: Writer configuration; binds the target collection.
        transport: Collaborator that sends bulk and refresh requests.

    Example:
        ```python
        config = WriterConfig(target="records", id_field="rid")
        with BulkWriter(config, RequestsTransport()) as writer:
            for record in records:
                writer.dispatch(record)
        ```
    """

    def __init__(self, config: WriterConfig, transport: Transport) -> None:
        self._config = config
        self._transport = transport
        self._buffer = BatchBuffer(config.batch_size_bytes, config.batch_size_entries)
        self._state = WriterState(refresh_after_write=config.refresh_after_write)
        self._metrics = WriterMetrics()

    def __enter__(self) -> Self:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()

    @property
    def config(self) -> WriterConfig:
        """Configuration this writer was built with."""
        return self._config

    @property
    def target(self) -> str:
        """Name of the bound target collection."""
        return self._config.target

    @property
    def buffer(self) -> BatchBuffer:
        """The writer's batch buffer."""
        return self._buffer

    @property
    def state(self) -> WriterState:
        """Current lifecycle state."""
        return self._state

    @property
    def is_closed(self) -> bool:
        """True once the writer has left the OPEN state."""
        return self._state.status is not WriterStatus.OPEN

    def get_metrics(self) -> WriterMetrics:
        """Return a snapshot of the writer's counters."""
        return WriterMetrics(
            operations=self._metrics.operations,
            bulk_requests=self._metrics.bulk_requests,
            bytes_sent=self._metrics.bytes_sent,
            refreshes=self._metrics.refreshes,
        )

    def dispatch(self, record: Any) -> None:
        """Write a record using the configured operation type.

        This is the entry point for normal use; `index` and `delete` are
        available for callers that mix operations.

        Args:
            record: A mapping or an Unwrappable record.
        """
        if self._config.operation_type == OperationType.INDEX:
            self.index(record)
        else:
            self.delete(record)

    def index(self, record: Any) -> None:
        """Buffer an index operation for a record.

        Args:
            record: A mapping or an Unwrappable record with an ``rdata``
                field, and the id field when ids are explicit.

        Raises:
            ConfigurationError: If the target collection name is empty.
            MalformedRecordError: If the id or rdata field is missing or malformed.
            EncodingError: If the record cannot be serialized.
            RecordTooLargeError: If the operation cannot fit an empty buffer.
            TransportError: If a triggered flush fails.
        """
        self._ensure_open()
        self._require_target()
        operation = build_index_operation(to_mapping(record), self._config.id_field)
        self._enqueue(operation)

    def delete(self, record: Any) -> None:
        """Buffer a delete operation for a record.

        Args:
            record: A mapping or an Unwrappable record holding the id field.

        Raises:
            ConfigurationError: If the target is empty or the writer lets the
                target assign ids (no id to delete by).
            MalformedRecordError: If the record has no identifier.
            TransportError: If a triggered flush fails.
        """
        self._ensure_open()
        self._require_target()
        operation = build_delete_operation(to_mapping(record), self._config.id_field)
        self._enqueue(operation)

    def flush(self) -> None:
        """Send the buffered operations as one bulk request.

        Does nothing when the buffer is empty. The transport receives its own
        copy of the pending bytes. The buffer is reset only after
        the transport returns; if it raises, the buffered operations stay in
        place and `flush` may be called again.

        Raises:
            WriterClosedError: If the writer is already closed.
            TransportError: If the bulk request fails.
        """
        if self._state.status is WriterStatus.CLOSED:
            raise WriterClosedError("Cannot flush a closed writer")
        if self._buffer.is_empty():
            return

        size = self._buffer.size
        entries = self._buffer.entries
        try:
            payload = bytes(self._buffer.view())
            self._transport.bulk(self._config.target, payload, size)
        except Exception as exc:
            self._log_event(
                "bulk_flush_failed",
                logging.WARNING,
                bytes=size,
                entries=entries,
                error=str(exc),
            )
            raise

        self._buffer.reset()
        self._state.executed_bulk_write = True
        self._metrics.bulk_requests += 1
        self._metrics.bytes_sent += size
        self._log_event("bulk_flush", logging.INFO, bytes=size, entries=entries)

    def close(self) -> None:
        """Flush pending operations, refresh if needed, release the transport.

        Calling `close` again after it has run is a no-op. The transport is
        released even when the final flush or the refresh fails; that
        failure is then re-raised.

        Raises:
            TransportError: If the final flush, refresh or release fails.
        """
        if self._state.status is not WriterStatus.OPEN:
            return

        self._state.status = WriterStatus.CLOSING
        try:
            self.flush()
            if self._state.requires_refresh:
                self._transport.refresh(self._config.target)
                self._metrics.refreshes += 1
                self._log_event("refresh", logging.INFO)
        finally:
            try:
                self._transport.close()
            finally:
                self._state.status = WriterStatus.CLOSED
                self._log_event(
                    "writer_closed",
                    logging.INFO,
                    pending_bytes=self._buffer.size,
                    bulk_requests=self._metrics.bulk_requests,
                )

    def _enqueue(self, operation: Operation) -> None:
        if operation.length >= self._buffer.capacity:
            raise RecordTooLargeError(
                f"{operation.kind.value} operation of {operation.length} bytes does not "
                f"fit a batch of {self._buffer.capacity} bytes",
                length=operation.length,
                capacity=self._buffer.capacity,
            )

        # Flush before the append so the region is never written past capacity.
        if self._buffer.would_overflow(operation.length):
            self.flush()

        self._buffer.append(operation.payload)
        self._metrics.operations += 1
        logger.debug(
            "Buffered %s operation (%d bytes, %d entries pending)",
            operation.kind.value,
            operation.length,
            self._buffer.entries,
        )

        if self._buffer.should_flush_by_count():
            self.flush()

    def _ensure_open(self) -> None:
        if self._state.status is not WriterStatus.OPEN:
            raise WriterClosedError("Cannot write to closed writer")

    def _require_target(self) -> None:
        if not self._config.target:
            raise ConfigurationError("No target collection given")

    def _log_event(self, event: str, level: int, **fields: Any) -> None:
        """Log a lifecycle event as structured JSON."""
        log_entry = {
            "event": event,
            "target": self._config.target,
            "timestamp": datetime.now(UTC).isoformat(),
            **fields,
        }
        logger.log(level, json.dumps(log_entry))
