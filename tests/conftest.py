"""Pytest configuration and fixtures for bulk-writer tests."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest

from bulk_writer.writer.models import WriterConfig


@dataclass
class RecordingTransport:
    """In-memory transport that records every call in order.

    Payloads are copied at call time, since the writer hands over a view
    of a buffer it reuses after the call returns.
    """

    bulk_payloads: list[bytes] = field(default_factory=list)
    bulk_targets: list[str] = field(default_factory=list)
    refreshed: list[str] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    closed: bool = False
    fail_bulk: BaseException | None = None
    fail_refresh: BaseException | None = None

    def bulk(self, target: str, payload: Any, length: int) -> None:
        self.calls.append("bulk")
        if self.fail_bulk is not None:
            raise self.fail_bulk
        self.bulk_targets.append(target)
        self.bulk_payloads.append(bytes(payload[:length]))

    def refresh(self, target: str) -> None:
        self.calls.append("refresh")
        if self.fail_refresh is not None:
            raise self.fail_refresh
        self.refreshed.append(target)

    def close(self) -> None:
        self.calls.append("close")
        self.closed = True


@pytest.fixture()
def transport() -> RecordingTransport:
    """Provide a fresh recording transport."""
    return RecordingTransport()


@pytest.fixture()
def index_config() -> WriterConfig:
    """Writer config indexing into 'records' with explicit 'rid' ids."""
    return WriterConfig(target="records", id_field="rid", batch_size_entries=0)


@pytest.fixture()
def sample_record() -> dict[str, Any]:
    """Provide a record with an id and a textual rdata field."""
    return {"rid": "42", "name": "alpha", "rdata": "(a=1, b=2)"}


def forty_byte_record(suffix: str = "abcdefg") -> dict[str, str]:
    """A record whose synthetic-id index operation is exactly 40 bytes.

    13 bytes of ``{"index":{}}\\n`` plus 26 bytes of
    ``{"n":"abcdefg","rdata":[]}`` plus the trailing newline.
    """
    assert len(suffix) == 7
    return {"n": suffix, "rdata": "()"}
