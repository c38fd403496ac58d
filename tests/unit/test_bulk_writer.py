"""Unit tests for BulkWriter."""

from __future__ import annotations

import json
import logging
from typing import Any
from unittest.mock import MagicMock

import pytest
from conftest import RecordingTransport, forty_byte_record

from bulk_writer.exceptions import (
    ConfigurationError,
    EncodingError,
    MalformedRecordError,
    RecordTooLargeError,
    TransportError,
    WriterClosedError,
)
from bulk_writer.transport.base import Transport
from bulk_writer.writer.bulk_writer import BulkWriter
from bulk_writer.writer.models import SYNTHETIC_ID, OperationType, WriterConfig, WriterStatus


def make_writer(
    transport: RecordingTransport,
    *,
    capacity: int = 1024,
    entries: int = 0,
    id_field: str = SYNTHETIC_ID,
    refresh: bool = True,
    target: str = "records",
    operation_type: OperationType = OperationType.INDEX,
) -> BulkWriter:
    config = WriterConfig(
        target=target,
        operation_type=operation_type,
        id_field=id_field,
        batch_size_bytes=capacity,
        batch_size_entries=entries,
        refresh_after_write=refresh,
    )
    return BulkWriter(config, transport)


class TestBulkWriterIndex:
    """Test cases for index operations."""

    def test_recording_transport_satisfies_protocol(self, transport: RecordingTransport) -> None:
        """The test double is a valid Transport."""
        assert isinstance(transport, Transport)

    def test_synthetic_id_header(self, transport: RecordingTransport) -> None:
        """With the sentinel id field, the header is {"index":{}}."""
        writer = make_writer(transport)

        writer.index({"rid": "42", "rdata": "(a=1)"})
        writer.close()

        lines = transport.bulk_payloads[0].split(b"\n")
        assert lines[0] == b'{"index":{}}'

    def test_explicit_id_header(self, transport: RecordingTransport) -> None:
        """With id field 'rid', the record's id goes into the header."""
        writer = make_writer(transport, id_field="rid")

        writer.index({"rid": "42", "rdata": "(a=1)"})
        writer.close()

        lines = transport.bulk_payloads[0].split(b"\n")
        assert lines[0] == b'{"index":{"_id":"42"}}'

    def test_rdata_reprojection(
        self, transport: RecordingTransport, sample_record: dict[str, Any]
    ) -> None:
        """rdata is written once, as a list of mapid/value objects."""
        writer = make_writer(transport, id_field="rid")

        writer.index(sample_record)
        writer.close()

        document = transport.bulk_payloads[0].split(b"\n")[1].decode("utf-8")
        assert document.count('"rdata"') == 1
        assert json.loads(document) == {
            "rid": "42",
            "name": "alpha",
            "rdata": [{"mapid": "a", "value": "1"}, {"mapid": "b", "value": "2"}],
        }

    def test_caller_record_is_not_modified(
        self, transport: RecordingTransport, sample_record: dict[str, Any]
    ) -> None:
        """The writer works on a copy of the record."""
        writer = make_writer(transport)

        writer.index(sample_record)

        assert sample_record == {"rid": "42", "name": "alpha", "rdata": "(a=1, b=2)"}

    def test_unwrappable_record(self, transport: RecordingTransport) -> None:
        """Wrapped records are unwrapped before serialization."""

        class Row:
            def to_mapping(self) -> dict[str, Any]:
                return {"rid": "5", "rdata": "(x=y)"}

        writer = make_writer(transport, id_field="rid")

        writer.index(Row())
        writer.close()

        assert transport.bulk_payloads[0].startswith(b'{"index":{"_id":"5"}}\n')

    def test_empty_target_is_configuration_error(self, transport: RecordingTransport) -> None:
        """An index without a target collection fails."""
        writer = make_writer(transport, target="")

        with pytest.raises(ConfigurationError, match="target"):
            writer.index({"rdata": "()"})
        assert writer.buffer.is_empty()

    def test_malformed_record_leaves_buffer_untouched(
        self, transport: RecordingTransport
    ) -> None:
        """Serialization errors surface before any buffer mutation."""
        writer = make_writer(transport, id_field="rid")

        with pytest.raises(MalformedRecordError):
            writer.index({"rdata": "(a=1)"})
        with pytest.raises(MalformedRecordError):
            writer.index({"rid": "1", "rdata": "a=1"})

        assert writer.buffer.size == 0
        assert writer.buffer.entries == 0


class TestBulkWriterDelete:
    """Test cases for delete operations."""

    def test_delete_line(self, transport: RecordingTransport) -> None:
        """Deletes carry the id under _id."""
        writer = make_writer(transport, id_field="rid")

        writer.delete({"rid": "42"})
        writer.close()

        assert transport.bulk_payloads == [b'{"delete":{"_id":"42","rid":"42"}}\n']

    def test_delete_requires_explicit_id(self, transport: RecordingTransport) -> None:
        """Delete in synthetic-id mode fails without touching the buffer."""
        writer = make_writer(transport, id_field=SYNTHETIC_ID)
        writer.index({"rdata": "()"})
        size_before = writer.buffer.size
        entries_before = writer.buffer.entries

        with pytest.raises(ConfigurationError):
            writer.delete({"rid": "42"})

        assert writer.buffer.size == size_before
        assert writer.buffer.entries == entries_before
        assert transport.calls == []

    def test_delete_empty_target(self, transport: RecordingTransport) -> None:
        """A delete without a target collection fails."""
        writer = make_writer(transport, id_field="rid", target="")

        with pytest.raises(ConfigurationError):
            writer.delete({"rid": "1"})


class TestBulkWriterDispatch:
    """Test cases for routing by operation type."""

    def test_dispatch_index(self, transport: RecordingTransport) -> None:
        """Index-configured writers index."""
        writer = make_writer(transport)

        writer.dispatch({"rdata": "()"})
        writer.close()

        assert transport.bulk_payloads[0].startswith(b'{"index"')

    def test_dispatch_delete(self, transport: RecordingTransport) -> None:
        """Delete-configured writers delete."""
        writer = make_writer(transport, id_field="rid", operation_type=OperationType.DELETE)

        writer.dispatch({"rid": "3"})
        writer.close()

        assert transport.bulk_payloads[0].startswith(b'{"delete"')

    def test_dispatch_from_settings_string(self, transport: RecordingTransport) -> None:
        """Operation type read as text from settings still routes by value."""
        config = WriterConfig.from_settings(
            {"es.resource": "records", "es.operation.type": "delete", "es.mapping.id": "rid"}
        )
        writer = BulkWriter(config, transport)

        writer.dispatch({"rid": "3"})
        writer.close()

        assert transport.bulk_payloads == [b'{"delete":{"_id":"3","rid":"3"}}\n']


class TestBulkWriterThresholds:
    """Test cases for capacity and count driven flushing."""

    def test_scenario_capacity_100_threshold_2(self, transport: RecordingTransport) -> None:
        """Three 40-byte operations flush as 80 then 40 bytes."""
        writer = make_writer(transport, capacity=100, entries=2)

        writer.index(forty_byte_record())
        assert (writer.buffer.size, writer.buffer.entries) == (40, 1)

        writer.index(forty_byte_record())
        assert (writer.buffer.size, writer.buffer.entries) == (0, 0)

        writer.index(forty_byte_record())
        assert (writer.buffer.size, writer.buffer.entries) == (40, 1)

        writer.close()

        assert [len(p) for p in transport.bulk_payloads] == [80, 40]
        assert transport.calls == ["bulk", "bulk", "refresh", "close"]

    def test_flush_before_overflowing_append(self, transport: RecordingTransport) -> None:
        """A fragment that would fill the buffer forces a flush first."""
        writer = make_writer(transport, capacity=100)

        writer.index(forty_byte_record())
        writer.index(forty_byte_record())
        assert transport.bulk_payloads == []

        writer.index(forty_byte_record())

        assert [len(p) for p in transport.bulk_payloads] == [80]
        assert writer.buffer.size == 40

    def test_size_stays_below_capacity(self, transport: RecordingTransport) -> None:
        """Across many appends the buffer never reaches capacity."""
        writer = make_writer(transport, capacity=150)

        for i in range(25):
            writer.index({"n": "x" * (i % 9), "rdata": "(k=v)"})
            assert writer.buffer.size < writer.buffer.capacity

        writer.close()
        assert all(len(p) < 150 for p in transport.bulk_payloads)
        assert sum(p.count(b"\n") for p in transport.bulk_payloads) == 50

    def test_count_threshold_flushes_before_next_operation(
        self, transport: RecordingTransport
    ) -> None:
        """Reaching the entry threshold flushes within the same call."""
        writer = make_writer(transport, entries=3)

        for _ in range(3):
            writer.index({"rdata": "()"})

        assert len(transport.bulk_payloads) == 1
        assert transport.bulk_payloads[0].count(b'{"index":{}}') == 3
        assert writer.buffer.is_empty()

    def test_record_too_large(self, transport: RecordingTransport) -> None:
        """A single operation that cannot fit an empty buffer is rejected."""
        writer = make_writer(transport, capacity=40)
        writer.index({"rdata": "()"})

        with pytest.raises(RecordTooLargeError) as exc_info:
            writer.index(forty_byte_record())

        assert exc_info.value.length == 40
        assert exc_info.value.capacity == 40
        assert transport.calls == []
        assert writer.buffer.entries == 1


class TestBulkWriterFlush:
    """Test cases for flush."""

    def test_flush_resets_buffer(self, transport: RecordingTransport) -> None:
        """After a successful flush the buffer is empty."""
        writer = make_writer(transport)
        writer.index({"rdata": "()"})

        writer.flush()

        assert writer.buffer.size == 0
        assert writer.buffer.entries == 0
        assert writer.state.executed_bulk_write
        assert transport.bulk_targets == ["records"]

    def test_flush_empty_buffer_is_noop(self, transport: RecordingTransport) -> None:
        """Nothing is sent for an empty buffer."""
        writer = make_writer(transport)

        writer.flush()

        assert transport.calls == []
        assert not writer.state.executed_bulk_write

    def test_failed_flush_keeps_buffer_for_retry(self, transport: RecordingTransport) -> None:
        """A transport failure leaves the batch in place; retrying sends it."""
        writer = make_writer(transport)
        writer.index({"rdata": "(a=1)"})
        size = writer.buffer.size
        transport.fail_bulk = TransportError("unavailable", status_code=503)

        with pytest.raises(TransportError):
            writer.flush()

        assert writer.buffer.size == size
        assert writer.buffer.entries == 1
        assert not writer.state.executed_bulk_write

        transport.fail_bulk = None
        writer.flush()

        assert len(transport.bulk_payloads) == 1
        assert len(transport.bulk_payloads[0]) == size

    def test_failed_overflow_flush_rejects_operation(self, transport: RecordingTransport) -> None:
        """When the pre-append flush fails, the new operation is not buffered."""
        writer = make_writer(transport, capacity=100)
        writer.index(forty_byte_record())
        writer.index(forty_byte_record())
        transport.fail_bulk = TransportError("down")

        with pytest.raises(TransportError):
            writer.index(forty_byte_record())

        assert writer.buffer.size == 80
        assert writer.buffer.entries == 2

    def test_sent_payloads_survive_later_appends(self) -> None:
        """Each bulk call gets bytes the next batch cannot overwrite."""
        transport = MagicMock()
        writer = make_writer(transport, entries=1)

        writer.index({"n": "first", "rdata": "()"})
        writer.index({"n": "SECND", "rdata": "()"})

        first, second = (call.args[1] for call in transport.bulk.call_args_list)
        assert isinstance(first, bytes)
        assert first == b'{"index":{}}\n{"n":"first","rdata":[]}\n'
        assert second == b'{"index":{}}\n{"n":"SECND","rdata":[]}\n'

    def test_non_finite_number_leaves_buffer_untouched(self, transport: RecordingTransport) -> None:
        """A NaN field is rejected before anything is buffered."""
        writer = make_writer(transport)
        writer.index({"n": 1.5, "rdata": "()"})
        size = writer.buffer.size

        with pytest.raises(EncodingError):
            writer.index({"n": float("nan"), "rdata": "()"})

        assert writer.buffer.size == size
        assert writer.buffer.entries == 1

    def test_metrics(self, transport: RecordingTransport) -> None:
        """Metrics count operations, requests and bytes."""
        writer = make_writer(transport, capacity=100, entries=2)

        for _ in range(3):
            writer.index(forty_byte_record())
        writer.close()

        metrics = writer.get_metrics()
        assert metrics.operations == 3
        assert metrics.bulk_requests == 2
        assert metrics.bytes_sent == 120
        assert metrics.refreshes == 1

    def test_flush_logs_structured_event(
        self, transport: RecordingTransport, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Each flush logs a JSON event with size and entry count."""
        writer = make_writer(transport)
        writer.index(forty_byte_record())

        with caplog.at_level(logging.INFO, logger="bulk_writer.writer.bulk_writer"):
            writer.flush()

        events = [json.loads(r.getMessage()) for r in caplog.records]
        assert events[0]["event"] == "bulk_flush"
        assert events[0]["target"] == "records"
        assert events[0]["bytes"] == 40
        assert events[0]["entries"] == 1


class TestBulkWriterClose:
    """Test cases for close and the writer lifecycle."""

    def test_close_flushes_and_refreshes(self, transport: RecordingTransport) -> None:
        """One pending index yields one bulk call, then refresh, then close."""
        writer = make_writer(transport, refresh=True)
        writer.index(forty_byte_record())

        writer.close()

        assert len(transport.bulk_payloads) == 1
        assert transport.bulk_payloads[0].count(b"\n") == 2
        assert transport.refreshed == ["records"]
        assert transport.calls == ["bulk", "refresh", "close"]
        assert writer.state.status is WriterStatus.CLOSED

    def test_close_without_refresh(self, transport: RecordingTransport) -> None:
        """No refresh when refresh-after-write is off."""
        writer = make_writer(transport, refresh=False)
        writer.index(forty_byte_record())

        writer.close()

        assert transport.calls == ["bulk", "close"]

    def test_close_without_writes_skips_refresh(self, transport: RecordingTransport) -> None:
        """No refresh when nothing was ever flushed."""
        writer = make_writer(transport, refresh=True)

        writer.close()

        assert transport.calls == ["close"]

    def test_close_is_idempotent(self, transport: RecordingTransport) -> None:
        """A second close does nothing."""
        writer = make_writer(transport)
        writer.index(forty_byte_record())

        writer.close()
        writer.close()

        assert transport.calls == ["bulk", "refresh", "close"]

    def test_operations_after_close_are_rejected(self, transport: RecordingTransport) -> None:
        """A closed writer accepts nothing."""
        writer = make_writer(transport, id_field="rid")
        writer.close()

        with pytest.raises(WriterClosedError):
            writer.index({"rid": "1", "rdata": "()"})
        with pytest.raises(WriterClosedError):
            writer.delete({"rid": "1"})
        with pytest.raises(RuntimeError):
            writer.dispatch({"rid": "1", "rdata": "()"})
        with pytest.raises(WriterClosedError):
            writer.flush()

    def test_failed_final_flush_still_releases_transport(
        self, transport: RecordingTransport
    ) -> None:
        """The transport is closed even when the final flush fails."""
        writer = make_writer(transport)
        writer.index(forty_byte_record())
        transport.fail_bulk = TransportError("down")

        with pytest.raises(TransportError):
            writer.close()

        assert transport.closed
        assert transport.calls == ["bulk", "close"]
        assert writer.state.status is WriterStatus.CLOSED

    def test_failed_refresh_still_releases_transport(self, transport: RecordingTransport) -> None:
        """The transport is closed even when the refresh fails."""
        writer = make_writer(transport)
        writer.index(forty_byte_record())
        transport.fail_refresh = TransportError("refresh failed")

        with pytest.raises(TransportError, match="refresh"):
            writer.close()

        assert transport.closed
        assert writer.state.status is WriterStatus.CLOSED

    def test_context_manager_closes_on_success(self, transport: RecordingTransport) -> None:
        """Leaving the block flushes and releases the transport."""
        with make_writer(transport) as writer:
            writer.index(forty_byte_record())
            assert not writer.is_closed

        assert writer.is_closed
        assert transport.calls == ["bulk", "refresh", "close"]

    def test_context_manager_closes_on_error(self, transport: RecordingTransport) -> None:
        """Pending data is flushed and the transport released when the body raises."""
        with pytest.raises(MalformedRecordError):
            with make_writer(transport) as writer:
                writer.index(forty_byte_record())
                writer.index({"no": "rdata"})

        assert len(transport.bulk_payloads) == 1
        assert transport.closed
