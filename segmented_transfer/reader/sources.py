from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import BinaryIO
from typing import Protocol
from typing import Union

from segmented_transfer.errors import SegmentFetchFailed
from segmented_transfer.planning.segment_planner import Segment
from segmented_transfer.store.base import ObjectStoreClient
from segmented_transfer.streams import BoundedReader


logger = logging.getLogger(__name__)


class SegmentSource(Protocol):
    """Opens a stream yielding exactly the bytes of one segment."""

    def open_segment(self, segment: Segment) -> BinaryIO: ...


class RangedGetSource:
    """Fetch each segment with a ranged GET against the object store."""

    def __init__(self, store: ObjectStoreClient, path: str) -> None:
        self.store = store
        self.path = path
        self.fetch_count = 0

    def open_segment(self, segment: Segment) -> BinaryIO:
        self.fetch_count += 1
        logger.debug(
            f"GET {self.path} range #{self.fetch_count} bytes={segment.start_inclusive}-{segment.end_inclusive}"
        )
        return self.store.ranged_get(self.path, segment.start_inclusive, segment.end_inclusive)


class LocalFileSource:
    """Serve segments out of a local file, for offline verification."""

    def __init__(self, file_path: Union[str, os.PathLike]) -> None:
        self.file_path = Path(file_path)
        self.fetch_count = 0

    def open_segment(self, segment: Segment) -> BinaryIO:
        self.fetch_count += 1
        fp = self.file_path.open("rb")
        try:
            file_size = os.fstat(fp.fileno()).st_size
            if segment.end_inclusive >= file_size:
                raise SegmentFetchFailed(
                    self.fetch_count,
                    segment,
                    f"{self.file_path} holds {file_size} bytes, segment ends at {segment.end_inclusive}",
                )
            fp.seek(segment.start_inclusive)
        except BaseException:
            fp.close()
            raise
        return BoundedReader(fp, segment.size)  # type: ignore[return-value]
