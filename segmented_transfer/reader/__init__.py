from segmented_transfer.reader.range_joining import SequentialRangeReader
from segmented_transfer.reader.sources import LocalFileSource
from segmented_transfer.reader.sources import RangedGetSource
from segmented_transfer.reader.sources import SegmentSource


__all__ = ["LocalFileSource", "RangedGetSource", "SegmentSource", "SequentialRangeReader"]
