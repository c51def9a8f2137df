"""Segmented object transfer over S3-compatible stores."""

from segmented_transfer.planning.segment_planner import Segment
from segmented_transfer.planning.segment_planner import partition
from segmented_transfer.reader.range_joining import SequentialRangeReader
from segmented_transfer.retry import CreateOnDemandRetryPolicy
from segmented_transfer.writer.chunked_upload import ChunkedUploadCoordinator


__all__ = [
    "ChunkedUploadCoordinator",
    "CreateOnDemandRetryPolicy",
    "Segment",
    "SequentialRangeReader",
    "partition",
]
