"""Bulk Writer.

Client-side buffering of index and delete operations into size- and
count-bounded bulk requests against a document store.
"""

from bulk_writer.exceptions import (
    BulkWriterError,
    ConfigurationError,
    EncodingError,
    MalformedRecordError,
    RecordTooLargeError,
    TransportError,
    WriterClosedError,
)
from bulk_writer.transport import HttpxTransport, RequestsTransport, Transport, TransportConfig
from bulk_writer.writer import (
    SYNTHETIC_ID,
    BatchBuffer,
    BulkWriter,
    OperationType,
    Unwrappable,
    WriterConfig,
)

__version__ = "0.1.0"

__all__ = [
    "SYNTHETIC_ID",
    "BatchBuffer",
    "BulkWriter",
    "BulkWriterError",
    "ConfigurationError",
    "EncodingError",
    "HttpxTransport",
    "MalformedRecordError",
    "OperationType",
    "RecordTooLargeError",
    "RequestsTransport",
    "Transport",
    "TransportConfig",
    "TransportError",
    "Unwrappable",
    "WriterClosedError",
    "WriterConfig",
]
