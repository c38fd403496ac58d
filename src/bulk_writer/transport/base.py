"""Base Protocol for bulk transports.

This module defines the Transport protocol the writer sends batches through.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class Transport(Protocol):
    """Protocol for the network collaborator of a BulkWriter.

    Implementations send one bulk request per call and report failure by
    raising TransportError. Partial item failures inside a successful bulk
    response are not inspected.

    Example:
        >>> from bulk_writer.transport import RequestsTransport, Transport
        >>> isinstance(RequestsTransport(), Transport)
        True
    """

    def bulk(self, target: str, payload: bytes | memoryview, length: int) -> None:
        """Send ``payload[:length]`` as a single bulk request to `target`."""
        ...

    def refresh(self, target: str) -> None:
        """Make recent writes to `target` visible to search."""
        ...

    def close(self) -> None:
        """Release underlying connections."""
        ...
