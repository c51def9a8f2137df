from __future__ import annotations

import logging
from dataclasses import dataclass
from dataclasses import field
from typing import BinaryIO
from typing import Optional

from segmented_transfer.errors import EmptyUpload
from segmented_transfer.errors import InvalidArgument
from segmented_transfer.errors import PartUploadFailed
from segmented_transfer.store.base import MultipartHandle
from segmented_transfer.store.base import ObjectStoreClient
from segmented_transfer.store.base import UploadPart
from segmented_transfer.streams import BoundedReader
from segmented_transfer.streams import stream_length


# Smallest part size S3-compatible stores accept for every part but the last
DEFAULT_SPLIT_SIZE = 5 * 1024 * 1024


@dataclass
class MultipartResult:
    path: str
    upload_id: str
    parts: list[UploadPart] = field(default_factory=list)
    size_bytes: int = 0


def plan_part_sizes(content_length: int, split_size: int) -> list[int]:
    """Sizes of the parts a source of ``content_length`` bytes is cut into."""
    if split_size <= 0:
        raise InvalidArgument(f"Split size must be greater than zero: {split_size}")
    if content_length < 0:
        raise InvalidArgument(f"Content length must not be negative: {content_length}")
    splits, remainder = divmod(content_length, split_size)
    sizes = [split_size] * splits
    if remainder:
        sizes.append(remainder)
    return sizes


class ChunkedUploadCoordinator:
    """Upload a byte stream as sequential multipart parts of at most ``split_size`` bytes."""

    def __init__(
        self,
        store: ObjectStoreClient,
        split_size: int = DEFAULT_SPLIT_SIZE,
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        if split_size <= 0:
            raise InvalidArgument(f"Split size must be greater than zero: {split_size}")
        self.store = store
        self.split_size = split_size
        self.logger = logger if logger is not None else logging.getLogger(__name__)

    def upload(self, path: str, source: BinaryIO, content_length: Optional[int] = None) -> MultipartResult:
        """Upload ``source`` to ``path`` and complete the multipart upload.

        Args:
            path: Destination object path.
            source: Stream positioned at the first byte to upload. It is
                read sequentially and left open.
            content_length: Bytes to upload; measured from the stream when
                omitted, which requires a seekable source.

        Returns:
            The completed upload with its part manifest in ascending order.
        """
        if content_length is None:
            content_length = stream_length(source)
        part_sizes = plan_part_sizes(content_length, self.split_size)

        handle = self.store.initiate_multipart_upload(path)
        self.logger.debug(
            f"MPU {handle.upload_id} started for {path}: {content_length} bytes in {len(part_sizes)} parts"
        )

        parts: list[UploadPart] = []
        try:
            for part_number, size in enumerate(part_sizes, start=1):
                parts.append(self._upload_part(handle, part_number, source, size))
            if not parts:
                raise EmptyUpload(f"No parts to complete for {path}")
        except Exception:
            self._abort(handle)
            raise

        self.store.complete_multipart_upload(handle, parts)
        self.logger.debug(f"MPU {handle.upload_id} completed for {path} with {len(parts)} parts")
        return MultipartResult(
            path=path,
            upload_id=handle.upload_id,
            parts=parts,
            size_bytes=sum(p.size_bytes for p in parts),
        )

    def _upload_part(self, handle: MultipartHandle, part_number: int, source: BinaryIO, size: int) -> UploadPart:
        bounded = BoundedReader(source, size, close_underlying=False)
        try:
            with bounded:
                part = self.store.upload_part(handle, part_number, bounded)  # type: ignore[arg-type]
                sent = bounded.bytes_read
        except Exception as e:
            self.logger.error(f"Error uploading part {part_number} of {handle.path}: {e}")
            raise PartUploadFailed(part_number, f"Failed to upload part {part_number} of {handle.path}: {e}") from e

        if sent != size:
            raise PartUploadFailed(
                part_number,
                f"Source for {handle.path} ended after {sent} of {size} bytes in part {part_number}",
            )
        return part

    def _abort(self, handle: MultipartHandle) -> None:
        try:
            self.store.abort_multipart_upload(handle)
        except Exception as e:
            self.logger.warning(f"Failed to abort MPU {handle.upload_id} for {handle.path}: {e}")
