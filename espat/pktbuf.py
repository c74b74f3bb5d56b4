"""Packet buffers holding data received on a network connection."""

from __future__ import annotations

from typing import Any, Iterator, Optional


class PacketBuffer:
    """A fixed-size payload that can be chained to further buffers."""

    def __init__(self, length: int) -> None:
        if length < 0:
            raise ValueError("packet buffer length must not be negative")
        self.payload = bytearray(length)
        self.next: Optional[PacketBuffer] = None
        self.chain_len = 0
        self.rd_ptr = 0
        self.conn: Any = None

    def __repr__(self) -> str:
        return (
            f"PacketBuffer(payload_len={self.payload_len}, "
            f"chain_len={self.chain_len}, rd_ptr={self.rd_ptr})"
        )

    @property
    def payload_len(self) -> int:
        """Size of the payload in bytes."""
        return len(self.payload)

    def copy_from(self, data) -> int:
        """Copy ``data`` into the payload and return the number of bytes copied.

        If ``data`` is longer than the payload, the part that fits is copied
        and BufferError is raised.
        """
        view = memoryview(data).cast("B")
        count = min(len(view), self.payload_len)
        self.payload[:count] = view[:count]
        if count != len(view):
            raise BufferError(
                f"{len(view) - count} of {len(view)} bytes did not fit the payload"
            )
        return count

    def chain(self) -> Iterator[PacketBuffer]:
        """Yield this buffer and every buffer chained after it."""
        buf: Optional[PacketBuffer] = self
        while buf is not None:
            yield buf
            buf = buf.next

    def __iter__(self) -> Iterator[PacketBuffer]:
        return self.chain()

    def append(self, other: PacketBuffer) -> int:
        """Chain ``other`` after the last buffer; return the new chain length."""
        last = self
        count = 0
        for buf in self.chain():
            if buf is other:
                raise ValueError("buffer is already part of this chain")
            last = buf
            count += 1
        tail = list(other.chain())
        if any(buf is self for buf in tail):
            raise ValueError("appending would create a cycle")
        last.next = other
        self.chain_len = count + len(tail)
        return self.chain_len