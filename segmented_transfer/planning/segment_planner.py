"""Pure planning logic for segmented transfers.

No IO; deterministic mapping from an object size and a section count to
contiguous inclusive byte ranges.
"""

from __future__ import annotations

from dataclasses import dataclass

from segmented_transfer.errors import InvalidArgument


@dataclass(frozen=True)
class Segment:
    start_inclusive: int
    end_inclusive: int

    def __post_init__(self) -> None:
        if self.start_inclusive < 0 or self.end_inclusive < self.start_inclusive:
            raise InvalidArgument(f"Invalid segment [{self.start_inclusive}, {self.end_inclusive}]")

    @property
    def size(self) -> int:
        return self.end_inclusive - self.start_inclusive + 1


def partition(total_size: int, section_count: int) -> list[Segment]:
    """Split ``[0, total_size)`` into contiguous inclusive segments.

    Every segment has ``total_size // section_count`` bytes except the last,
    which also absorbs the remainder. When there are fewer bytes than
    sections, one single-byte segment per byte is produced instead.

    Args:
        total_size: Size of the object in bytes.
        section_count: Number of segments requested.

    Returns:
        Segments in ascending order, first starting at 0 and last ending at
        ``total_size - 1``.
    """
    if total_size <= 0:
        raise InvalidArgument(f"Size must be greater than zero: {total_size}")
    if section_count < 1:
        raise InvalidArgument(f"Number of sections must be one or greater: {section_count}")

    sections = min(section_count, total_size)
    if sections == 1:
        return [Segment(0, total_size - 1)]

    base = total_size // sections
    remainder = total_size - base * sections

    segments: list[Segment] = []
    position = 0
    for i in range(sections):
        size = base + remainder if i == sections - 1 else base
        segments.append(Segment(position, position + size - 1))
        position += size
    return segments
