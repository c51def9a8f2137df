from __future__ import annotations

import io
import os
from typing import BinaryIO

from segmented_transfer.errors import InvalidArgument


class BoundedReader(io.RawIOBase):
    """Read at most ``limit`` bytes from an underlying binary stream.

    Never requests more than the remaining budget from ``raw``, so a single
    source can be cut into consecutive parts. With ``close_underlying=False``
    closing this reader leaves ``raw`` open for the next part.
    """

    def __init__(self, raw: BinaryIO, limit: int, *, close_underlying: bool = True) -> None:
        super().__init__()
        self.raw = raw
        self.close_underlying = close_underlying
        if limit < 0:
            raise InvalidArgument(f"Bound must not be negative: {limit}")
        self.limit = limit
        self.bytes_read = 0

    @property
    def remaining(self) -> int:
        return self.limit - self.bytes_read

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        view = memoryview(buffer).cast("B")
        want = min(len(view), self.remaining)
        if want <= 0:
            return 0
        chunk = self.raw.read(want)
        if not chunk:
            return 0
        n = len(chunk)
        view[:n] = chunk
        self.bytes_read += n
        return n

    def close(self) -> None:
        if self.closed:
            return
        try:
            if self.close_underlying:
                self.raw.close()
        finally:
            super().close()


def stream_length(stream: BinaryIO) -> int:
    """Return the number of bytes left in a seekable stream without consuming them."""
    if not stream.seekable():
        raise InvalidArgument("Cannot determine length of a non-seekable stream")
    current = stream.tell()
    end = stream.seek(0, os.SEEK_END)
    stream.seek(current, os.SEEK_SET)
    return end - current
