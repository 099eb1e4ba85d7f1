"""Bounded accumulator for subprocess output."""

from __future__ import annotations

__all__ = ["CapturedOutput"]


class CapturedOutput:
    """Interleaved stdout+stderr with a hard byte ceiling.

    The ceiling stops growth at write time: bytes past it are counted and
    dropped, never buffered, so a multi-minute run that prints tens of
    megabytes cannot grow the heap.
    """

    def __init__(self, limit: int) -> None:
        if limit < 0:
            msg = f"limit must be non-negative, got {limit}"
            raise ValueError(msg)
        self.limit = limit
        self.dropped = 0
        self._buffer = bytearray()

    def __len__(self) -> int:
        return len(self._buffer)

    @property
    def full(self) -> bool:
        return len(self._buffer) >= self.limit

    def write(self, chunk: bytes) -> int:
        """Append as much of ``chunk`` as fits. Returns the bytes kept."""
        room = self.limit - len(self._buffer)
        kept = chunk[: max(room, 0)]
        self._buffer += kept
        self.dropped += len(chunk) - len(kept)
        return len(kept)

    def text(self) -> str:
        return self._buffer.decode("utf-8", errors="replace")
