"""Exception hierarchy for the bulk writer.

Every error raised by the package derives from BulkWriterError so callers
can catch the whole family at a job boundary. Nothing is retried or dropped
internally: each error fails the operation that triggered it.
"""


class BulkWriterError(Exception):
    """Base exception for all bulk writer errors."""

    pass


class ConfigurationError(BulkWriterError):
    """Invalid or inconsistent writer configuration.

    Raised when:
    - The target collection name is empty
    - A delete is requested while the target assigns document ids
    - A settings value cannot be parsed
    """

    pass


class EncodingError(BulkWriterError):
    """A record could not be serialized to JSON or encoded as UTF-8."""

    pass


class MalformedRecordError(BulkWriterError):
    """A record does not have the shape the writer expects.

    Raised when:
    - The record is neither a mapping nor unwrappable into one
    - The identifier field is missing in explicit-id mode
    - The rdata field is missing or not a `key=value` list
    """

    pass


class RecordTooLargeError(BulkWriterError):
    """A single operation does not fit into an empty batch buffer."""

    def __init__(self, message: str, length: int = 0, capacity: int = 0) -> None:
        super().__init__(message)
        self.length = length
        self.capacity = capacity


class BufferOverflowError(BulkWriterError):
    """An append would write past the fixed buffer capacity."""

    pass


class TransportError(BulkWriterError):
    """A bulk, refresh or close call against the remote store failed."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class WriterClosedError(BulkWriterError, RuntimeError):
    """An operation was attempted on a closed writer."""

    pass


__all__ = [
    "BufferOverflowError",
    "BulkWriterError",
    "ConfigurationError",
    "EncodingError",
    "MalformedRecordError",
    "RecordTooLargeError",
    "TransportError",
    "WriterClosedError",
]
