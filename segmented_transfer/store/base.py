from __future__ import annotations

from dataclasses import dataclass
from typing import BinaryIO
from typing import Mapping
from typing import Optional
from typing import Protocol
from typing import Sequence


SEPARATOR = "/"


@dataclass
class MultipartHandle:
    path: str
    upload_id: str


@dataclass
class UploadPart:
    part_number: int
    etag: str
    size_bytes: int


@dataclass
class StoreEntry:
    name: str
    path: str
    is_container: bool = False
    size_bytes: int = 0


def split_path(path: str) -> tuple[str, str]:
    """Split ``bucket/key`` into its bucket and key; the key may be empty."""
    bucket, _, key = path.lstrip(SEPARATOR).partition(SEPARATOR)
    return bucket, key


class ObjectStoreClient(Protocol):
    """Store operations the transfer core depends on."""

    def ranged_get(self, path: str, start_inclusive: int, end_inclusive: int) -> BinaryIO: ...

    def get(self, path: str) -> BinaryIO: ...

    def put(
        self,
        path: str,
        stream: BinaryIO,
        content_length: Optional[int],
        headers: Optional[Mapping[str, str]] = None,
    ) -> None: ...

    def initiate_multipart_upload(self, path: str) -> MultipartHandle: ...

    def upload_part(self, handle: MultipartHandle, part_number: int, stream: BinaryIO) -> UploadPart: ...

    def complete_multipart_upload(self, handle: MultipartHandle, parts: Sequence[UploadPart]) -> None: ...

    def abort_multipart_upload(self, handle: MultipartHandle) -> None: ...

    def create_container(self, path: str) -> None: ...

    def delete_container(self, path: str) -> None: ...

    def list_children(self, path: str) -> list[StoreEntry]: ...

    def delete_entry(self, path: str) -> None: ...

    def head(self, path: str) -> dict[str, str]: ...

    def put_metadata(self, path: str, metadata: Mapping[str, str]) -> None: ...
