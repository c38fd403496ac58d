"""Fixed-capacity byte buffer for pending bulk operations.

The buffer knows nothing about wire formats. It copies already-serialized
fragments into a preallocated region and tracks how many bytes and entries
it holds, so the writer can decide when to flush.
"""

from __future__ import annotations

from bulk_writer.exceptions import BufferOverflowError, ConfigurationError


class BatchBuffer:
    """Byte and entry accumulator with a fixed capacity.

    The region is allocated once and never grows. Callers must check
    `would_overflow` and flush before appending; `append` refuses to write
    past capacity rather than reallocating.

    Args:
        capacity: Size of the region in bytes. Must be positive.
        entries_threshold: Entry count at which `should_flush_by_count`
            turns true. 0 disables the count check.

    Example:
        ```python
        buffer = BatchBuffer(capacity=1024, entries_threshold=2)
        if buffer.would_overflow(len(data)):
            send(buffer.view())
            buffer.reset()
        buffer.append(data)
        ```
    """

    def __init__(self, capacity: int, entries_threshold: int = 0) -> None:
        if capacity <= 0:
            raise ConfigurationError(f"Buffer capacity must be positive, got {capacity}")
        if entries_threshold < 0:
            raise ConfigurationError(
                f"Entries threshold must not be negative, got {entries_threshold}"
            )
        self._region = bytearray(capacity)
        self._capacity = capacity
        self._entries_threshold = entries_threshold
        self._size = 0
        self._entries = 0

    @property
    def capacity(self) -> int:
        """Total size of the region in bytes."""
        return self._capacity

    @property
    def entries_threshold(self) -> int:
        """Entry count that triggers a flush (0 when disabled)."""
        return self._entries_threshold

    @property
    def size(self) -> int:
        """Number of bytes currently held."""
        return self._size

    @property
    def entries(self) -> int:
        """Number of fragments appended since the last reset."""
        return self._entries

    def __len__(self) -> int:
        return self._size

    def is_empty(self) -> bool:
        """True when no bytes are pending."""
        return self._size == 0

    def capacity_remaining(self) -> int:
        """Bytes left before the region is full."""
        return self._capacity - self._size

    def would_overflow(self, length: int) -> bool:
        """Check whether appending `length` bytes needs a flush first.

        The check is strict: a fragment that would exactly fill the region
        also counts as overflowing.

        Args:
            length: Size of the fragment about to be appended.

        Returns:
            True if `size + length >= capacity`.
        """
        return self._size + length >= self._capacity

    def append(self, data: bytes) -> None:
        """Copy a fragment into the region and count it as one entry.

        Args:
            data: Serialized fragment.

        Raises:
            BufferOverflowError: If the fragment does not fit.
        """
        length = len(data)
        if self.would_overflow(length):
            raise BufferOverflowError(
                f"Appending {length} bytes to a buffer holding {self._size} "
                f"of {self._capacity} bytes would overflow"
            )
        self._region[self._size : self._size + length] = data
        self._size += length
        self._entries += 1

    def should_flush_by_count(self) -> bool:
        """True when the entry threshold is enabled and has been reached."""
        return self._entries_threshold > 0 and self._entries >= self._entries_threshold

    def view(self) -> memoryview:
        """Read-only view over the pending bytes (offsets 0..size)."""
        return memoryview(self._region)[: self._size].toreadonly()

    def reset(self) -> None:
        """Mark the buffer empty. The region is kept, not reallocated."""
        self._size = 0
        self._entries = 0
