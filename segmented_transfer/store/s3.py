"""boto3-backed implementation of the object store operations."""

from __future__ import annotations

import contextlib
import logging
from typing import Any
from typing import BinaryIO
from typing import Iterator
from typing import Mapping
from typing import Optional
from typing import Sequence

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError
from botocore.exceptions import ClientError

from segmented_transfer.errors import BucketMissing
from segmented_transfer.errors import ContainerMissing
from segmented_transfer.errors import ContainerNotEmpty
from segmented_transfer.errors import ObjectMissing
from segmented_transfer.errors import StorageError
from segmented_transfer.retry import CreateOnDemandRetryPolicy
from segmented_transfer.retry import error_is
from segmented_transfer.store.base import SEPARATOR
from segmented_transfer.store.base import MultipartHandle
from segmented_transfer.store.base import StoreEntry
from segmented_transfer.store.base import UploadPart
from segmented_transfer.store.base import split_path
from segmented_transfer.streams import BoundedReader
from segmented_transfer.streams import stream_length


logger = logging.getLogger(__name__)


_ERROR_TYPES: dict[str, type[StorageError]] = {
    "NoSuchBucket": BucketMissing,
    "NoSuchKey": ObjectMissing,
    "NotFound": ObjectMissing,
    "404": ObjectMissing,
    "BucketNotEmpty": ContainerNotEmpty,
}


def translate_client_error(error: ClientError, path: str) -> StorageError:
    """Map a botocore ClientError onto the storage error taxonomy."""
    code = str(error.response.get("Error", {}).get("Code", ""))
    message = error.response.get("Error", {}).get("Message") or str(error)
    error_type = _ERROR_TYPES.get(code, StorageError)
    return error_type(f"{message} [path={path}]", code=code)


@contextlib.contextmanager
def _translate_errors(path: str) -> Iterator[None]:
    try:
        yield
    except ClientError as e:
        raise translate_client_error(e, path) from e
    except BotoCoreError as e:
        raise StorageError(f"{e} [path={path}]", code=e.__class__.__name__) from e


def _directory_key(key: str) -> str:
    return key.rstrip(SEPARATOR) + SEPARATOR


def _streamable(stream: BinaryIO, content_length: int) -> bool:
    """True when ``stream`` is rewindable and holds exactly ``content_length`` bytes from offset 0."""
    return stream.seekable() and stream.tell() == 0 and stream_length(stream) == content_length


class S3ObjectStore:
    """Object store operations over a synchronous boto3 S3 client.

    Paths are ``bucket/key``. A path with no key addresses the bucket
    itself; a key ending in ``/`` (or passed to the container operations)
    addresses a directory, stored as a zero-byte marker object.
    """

    def __init__(self, client: Any, region: Optional[str] = None, *, strict_directories: bool = False) -> None:
        self.client = client
        self.region = region
        # Writes require the parent directory marker to exist
        self.strict_directories = strict_directories

    @classmethod
    def from_config(cls, config: Any) -> "S3ObjectStore":
        boto_cfg = BotoConfig(
            connect_timeout=config.s3_connect_timeout_seconds,
            read_timeout=config.s3_read_timeout_seconds,
            retries={"max_attempts": config.s3_max_attempts, "mode": "standard"},
        )
        session = boto3.session.Session(
            aws_access_key_id=config.s3_access_key or None,
            aws_secret_access_key=config.s3_secret_key or None,
            region_name=config.s3_region,
        )
        client = session.client("s3", endpoint_url=(config.s3_endpoint_url or None), config=boto_cfg)
        return cls(client, region=config.s3_region, strict_directories=config.test_type == "directory")

    def _require_directory(self, path: str) -> None:
        if not self.strict_directories:
            return
        bucket, key = split_path(path)
        parent, sep, _ = key.rpartition(SEPARATOR)
        if not sep:
            return
        try:
            with _translate_errors(path):
                self.client.head_object(Bucket=bucket, Key=_directory_key(parent))
        except ObjectMissing as e:
            raise ContainerMissing(f"Directory {bucket}/{parent} does not exist [path={path}]", code=e.code) from e

    # Reads

    def ranged_get(self, path: str, start_inclusive: int, end_inclusive: int) -> BinaryIO:
        bucket, key = split_path(path)
        with _translate_errors(path):
            resp = self.client.get_object(Bucket=bucket, Key=key, Range=f"bytes={start_inclusive}-{end_inclusive}")
        return resp["Body"]

    def get(self, path: str) -> BinaryIO:
        bucket, key = split_path(path)
        with _translate_errors(path):
            resp = self.client.get_object(Bucket=bucket, Key=key)
        return resp["Body"]

    def head(self, path: str) -> dict[str, str]:
        bucket, key = split_path(path)
        with _translate_errors(path):
            resp = self.client.head_object(Bucket=bucket, Key=key)
        return dict(resp.get("Metadata", {}))

    # Writes

    def put(
        self,
        path: str,
        stream: BinaryIO,
        content_length: Optional[int],
        headers: Optional[Mapping[str, str]] = None,
    ) -> None:
        bucket, key = split_path(path)
        self._require_directory(path)
        put_kwargs: dict[str, Any] = {"Bucket": bucket, "Key": key, "Metadata": dict(headers or {})}
        if content_length is not None and _streamable(stream, content_length):
            # botocore rewinds a seekable body from offset 0 for checksums and retries
            put_kwargs["Body"] = stream
            put_kwargs["ContentLength"] = content_length
            size = content_length
        else:
            body = self._read_body(path, stream, content_length)
            put_kwargs["Body"] = body
            size = len(body)
        with _translate_errors(path):
            self.client.put_object(**put_kwargs)
        logger.debug(f"PUT {path} ({size} bytes)")

    @staticmethod
    def _read_body(path: str, stream: BinaryIO, content_length: Optional[int]) -> bytes:
        if content_length is None:
            return stream.read()
        body = BoundedReader(stream, content_length, close_underlying=False).read()
        if len(body) != content_length:
            raise StorageError(
                f"Source ended after {len(body)} of {content_length} bytes [path={path}]",
                code="IncompleteBody",
            )
        return body

    def put_metadata(self, path: str, metadata: Mapping[str, str]) -> None:
        bucket, key = split_path(path)
        with _translate_errors(path):
            self.client.copy_object(
                Bucket=bucket,
                Key=key,
                CopySource={"Bucket": bucket, "Key": key},
                Metadata=dict(metadata),
                MetadataDirective="REPLACE",
            )

    def delete_entry(self, path: str) -> None:
        bucket, key = split_path(path)
        with _translate_errors(path):
            self.client.delete_object(Bucket=bucket, Key=key)

    # Multipart

    def initiate_multipart_upload(self, path: str) -> MultipartHandle:
        bucket, key = split_path(path)
        self._require_directory(path)
        with _translate_errors(path):
            resp = self.client.create_multipart_upload(Bucket=bucket, Key=key)
        return MultipartHandle(path=path, upload_id=resp["UploadId"])

    def upload_part(self, handle: MultipartHandle, part_number: int, stream: BinaryIO) -> UploadPart:
        bucket, key = split_path(handle.path)
        body = stream.read()
        with _translate_errors(handle.path):
            resp = self.client.upload_part(
                Bucket=bucket,
                Key=key,
                PartNumber=part_number,
                UploadId=handle.upload_id,
                Body=body,
            )
        return UploadPart(part_number=part_number, etag=resp["ETag"], size_bytes=len(body))

    def complete_multipart_upload(self, handle: MultipartHandle, parts: Sequence[UploadPart]) -> None:
        bucket, key = split_path(handle.path)
        manifest = [{"PartNumber": p.part_number, "ETag": p.etag} for p in parts]
        with _translate_errors(handle.path):
            self.client.complete_multipart_upload(
                Bucket=bucket,
                Key=key,
                UploadId=handle.upload_id,
                MultipartUpload={"Parts": manifest},
            )

    def abort_multipart_upload(self, handle: MultipartHandle) -> None:
        bucket, key = split_path(handle.path)
        with _translate_errors(handle.path):
            self.client.abort_multipart_upload(Bucket=bucket, Key=key, UploadId=handle.upload_id)

    # Containers

    def _create_bucket(self, bucket: str) -> None:
        create_kwargs: dict[str, Any] = {"Bucket": bucket}
        if self.region and self.region != "us-east-1":
            create_kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
        with _translate_errors(bucket):
            self.client.create_bucket(**create_kwargs)
        logger.info(f"Bucket '{bucket}' created")

    def create_container(self, path: str) -> None:
        bucket, key = split_path(path)
        if not key:
            self._create_bucket(bucket)
            return

        def put_marker() -> None:
            with _translate_errors(path):
                self.client.put_object(Bucket=bucket, Key=_directory_key(key), Body=b"")

        # Directories are created with their parents, so a missing bucket is created too
        CreateOnDemandRetryPolicy(
            error_is(BucketMissing),
            lambda: self._create_bucket(bucket),
            name="create-directory",
        ).attempt(put_marker)

    def delete_container(self, path: str) -> None:
        bucket, key = split_path(path)
        if not key:
            with _translate_errors(path):
                self.client.delete_bucket(Bucket=bucket)
            return

        if self.list_children(path):
            raise ContainerNotEmpty(f"Directory is not empty [path={path}]", code="DirectoryNotEmpty")
        with _translate_errors(path):
            self.client.delete_object(Bucket=bucket, Key=_directory_key(key))

    def list_children(self, path: str) -> list[StoreEntry]:
        bucket, key = split_path(path)
        prefix = _directory_key(key) if key else ""
        entries: list[StoreEntry] = []
        paginator = self.client.get_paginator("list_objects_v2")
        with _translate_errors(path):
            for page in paginator.paginate(Bucket=bucket, Prefix=prefix, Delimiter=SEPARATOR):
                for cp in page.get("CommonPrefixes", []) or []:
                    child = cp["Prefix"]
                    entries.append(
                        StoreEntry(
                            name=child[len(prefix) :].rstrip(SEPARATOR),
                            path=f"{bucket}{SEPARATOR}{child}",
                            is_container=True,
                        )
                    )
                for obj in page.get("Contents", []) or []:
                    child = obj["Key"]
                    if child == prefix:
                        continue
                    entries.append(
                        StoreEntry(
                            name=child[len(prefix) :],
                            path=f"{bucket}{SEPARATOR}{child}",
                            size_bytes=int(obj.get("Size", 0)),
                        )
                    )
        return entries
