"""Join several ranged reads of one object into a single sequential stream."""

from __future__ import annotations

import io
import logging
from typing import BinaryIO
from typing import Optional

from segmented_transfer.errors import InvalidArgument
from segmented_transfer.errors import OperationNotSupported
from segmented_transfer.errors import SegmentFetchFailed
from segmented_transfer.planning.segment_planner import Segment
from segmented_transfer.planning.segment_planner import partition
from segmented_transfer.reader.sources import SegmentSource


# Largest value reported by available_hint(), matching a signed 32-bit int
MAX_AVAILABLE_HINT = 2**31 - 1


class SequentialRangeReader(io.RawIOBase):
    """Forward-only stream over an object fetched as consecutive byte ranges.

    The object is partitioned into ``section_count`` segments. A segment's
    stream is opened only when the caller asks for bytes past the end of the
    previous one, so at most one backing stream is open at any time.
    ``readinto`` keeps filling the caller's buffer across segment boundaries
    and only returns short at the real end of the object.

    Not thread safe; one instance serves one transfer.
    """

    def __init__(
        self,
        path: str,
        source: SegmentSource,
        total_size: int,
        section_count: int,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        super().__init__()
        self._backing: Optional[BinaryIO] = None
        if total_size <= 0:
            raise InvalidArgument(f"Size of object must be greater than zero: {total_size}")
        if section_count <= 1:
            raise InvalidArgument(f"Number of sections must be greater than one: {section_count}")
        self.path = path
        self.source = source
        self.total_size = total_size
        self.segments: list[Segment] = partition(total_size, section_count)
        self.logger = logger if logger is not None else logging.getLogger(__name__)

        self._next_index = 0
        self._bytes_read = 0
        self._segment_bytes = 0

    @property
    def bytes_read(self) -> int:
        return self._bytes_read

    @property
    def current_segment(self) -> Optional[int]:
        """Zero-based index of the segment being read, None when no stream is open."""
        if self._backing is None:
            return None
        return self._next_index - 1

    @property
    def exhausted(self) -> bool:
        return self._backing is None and self._next_index >= len(self.segments)

    def readable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return False

    def available_hint(self) -> int:
        return min(self.total_size - self._bytes_read, MAX_AVAILABLE_HINT)

    def read_byte(self) -> Optional[int]:
        """Return the next byte, or None at end of stream."""
        buf = bytearray(1)
        if self.readinto(buf) == 0:
            return None
        return buf[0]

    def readinto(self, buffer) -> int:  # type: ignore[no-untyped-def]
        if self.closed:
            raise ValueError("I/O operation on closed file.")
        view = memoryview(buffer).cast("B")
        filled = 0
        while filled < len(view):
            if self._backing is None:
                if self._next_index >= len(self.segments):
                    break
                self._open_next()
            chunk = self._read_backing(len(view) - filled)
            if not chunk:
                self._finish_segment()
                continue
            n = len(chunk)
            view[filled : filled + n] = chunk
            filled += n
        self._bytes_read += filled
        return filled

    def skip(self, n: int) -> int:
        raise OperationNotSupported("skip is not supported")

    def mark(self, readlimit: int = 0) -> None:
        raise OperationNotSupported("mark is not supported")

    def reset(self) -> None:
        raise OperationNotSupported("reset is not supported")

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        raise OperationNotSupported("seek is not supported")

    def truncate(self, size: Optional[int] = None) -> int:
        raise OperationNotSupported("truncate is not supported")

    def close(self) -> None:
        if self.closed:
            return
        try:
            self._close_backing()
        finally:
            super().close()

    def _open_next(self) -> None:
        index = self._next_index
        segment = self.segments[index]
        self.logger.debug(
            f"Opening segment {index + 1}/{len(self.segments)} of {self.path} "
            f"[{segment.start_inclusive}, {segment.end_inclusive}]"
        )
        try:
            stream = self.source.open_segment(segment)
        except SegmentFetchFailed:
            self.close()
            raise
        except Exception as e:
            self.close()
            raise SegmentFetchFailed(index + 1, segment) from e
        self._next_index = index + 1
        self._backing = stream
        self._segment_bytes = 0

    def _read_backing(self, size: int) -> bytes:
        assert self._backing is not None
        index = self._next_index - 1
        segment = self.segments[index]
        try:
            chunk = self._backing.read(min(size, segment.size - self._segment_bytes))
        except Exception as e:
            self.close()
            raise SegmentFetchFailed(index + 1, segment) from e
        self._segment_bytes += len(chunk)
        return chunk

    def _finish_segment(self) -> None:
        index = self._next_index - 1
        segment = self.segments[index]
        received = self._segment_bytes
        self._close_backing()
        if received != segment.size:
            self.close()
            raise SegmentFetchFailed(
                index + 1,
                segment,
                f"Segment {index + 1} of {self.path} ended after {received} of {segment.size} bytes",
            )
        self.logger.debug(f"Segment {index + 1}/{len(self.segments)} of {self.path} exhausted")

    def _close_backing(self) -> None:
        stream, self._backing = self._backing, None
        if stream is not None:
            stream.close()
