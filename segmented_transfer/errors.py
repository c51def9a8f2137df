"""Error types raised by segmented transfers and store adapters."""

import io
from typing import Any
from typing import Optional


class TransferError(Exception):
    """Base class for all transfer errors."""


class InvalidArgument(TransferError, ValueError):
    """Bad partition, split or configuration input. Never retried."""


class OperationNotSupported(TransferError, io.UnsupportedOperation):
    """Stream operation that a forward-only reader cannot honour."""


class SegmentFetchFailed(TransferError):
    """Opening or reading one range segment failed during a download."""

    def __init__(self, segment_number: int, segment: Any = None, message: str = ""):
        self.segment_number = segment_number
        self.segment = segment
        if not message:
            message = f"Failed to fetch segment {segment_number}"
            if segment is not None:
                message += f" (bytes {segment.start_inclusive}-{segment.end_inclusive})"
        super().__init__(message)


class PartUploadFailed(TransferError):
    """A multipart part upload failed; the whole upload is aborted."""

    def __init__(self, part_number: int, message: str = ""):
        self.part_number = part_number
        super().__init__(message or f"Failed to upload part {part_number}")


class EmptyUpload(TransferError):
    """Multipart completion was attempted with zero parts."""


class StorageError(TransferError):
    """Error reported by the backing object store."""

    def __init__(self, message: str = "", code: Optional[str] = None):
        self.code = code
        super().__init__(message or f"Storage error: {code}")


class ContainerMissing(StorageError):
    """The directory an object is written into does not exist."""


class BucketMissing(StorageError):
    """The bucket an object is written into does not exist."""


class ContainerNotEmpty(StorageError):
    """A bucket or directory still holds entries and cannot be deleted."""


class ObjectMissing(StorageError):
    """The requested object does not exist."""
