"""Benchmark-style storage operations on top of an object store client.

Containers are addressed in one of two layouts:

* ``directory``: every container is a directory under
  ``<root_bucket>/<base_directory>/`` and objects keep their names.
* ``buckets``: every container is its own bucket (lowercase alphanumeric
  name) and objects live under ``objects/`` with sanitized names.
"""

from __future__ import annotations

import functools
import logging
import re
from typing import Any
from typing import BinaryIO
from typing import Callable
from typing import Mapping
from typing import Optional

from segmented_transfer.config import Config
from segmented_transfer.errors import BucketMissing
from segmented_transfer.errors import ContainerMissing
from segmented_transfer.errors import ContainerNotEmpty
from segmented_transfer.errors import InvalidArgument
from segmented_transfer.errors import ObjectMissing
from segmented_transfer.logging_config import transfer_scope
from segmented_transfer.reader.range_joining import SequentialRangeReader
from segmented_transfer.reader.sources import RangedGetSource
from segmented_transfer.retry import CreateOnDemandRetryPolicy
from segmented_transfer.retry import error_is
from segmented_transfer.store.base import SEPARATOR
from segmented_transfer.store.base import ObjectStoreClient
from segmented_transfer.writer.chunked_upload import ChunkedUploadCoordinator


BUCKET_OBJECTS_DIR = "objects"
DURABILITY_HEADER = "durability-level"
METADATA_PREFIX = "m-"

_NON_ALNUM = re.compile(r"[^a-z0-9]")


def sanitize_name(name: str) -> str:
    return _NON_ALNUM.sub("", name.lower())


class SegmentedStorage:
    def __init__(self, store: ObjectStoreClient, config: Config, logger: Optional[logging.Logger] = None) -> None:
        self.store = store
        self.config = config
        self.logger = logger if logger is not None else logging.getLogger(__name__)
        self.buckets_mode = config.test_type == "buckets"
        self.coordinator = ChunkedUploadCoordinator(store, config.split_size, logger=self.logger)

    # Paths

    def base_path(self) -> str:
        parts = [self.config.root_bucket, self.config.base_directory]
        return SEPARATOR.join(p for p in parts if p)

    def container_path(self, container: str) -> str:
        if self.buckets_mode:
            name = sanitize_name(container)
            if not name:
                raise InvalidArgument(f"Container name '{container}' has no usable characters for a bucket")
            return name
        return f"{self.base_path()}{SEPARATOR}{container}"

    def object_path(self, container: str, name: str) -> str:
        if self.buckets_mode:
            return SEPARATOR.join([self.container_path(container), BUCKET_OBJECTS_DIR, sanitize_name(name)])
        return f"{self.container_path(container)}{SEPARATOR}{name}"

    def _log(self, message: str) -> None:
        if self.config.logging:
            self.logger.info(message)

    # Containers

    def initialize(self) -> None:
        """Create the base directory the directory layout writes under."""
        if not self.buckets_mode:
            self.store.create_container(self.base_path())

    def create_container(self, container: str) -> None:
        if self.buckets_mode:
            self._log(f"Performing CREATE bucket at /{container}")
        else:
            self._log(f"Performing PUT dir at /{container}")
        self.store.create_container(self.container_path(container))

    def delete_container(self, container: str) -> None:
        if self.buckets_mode:
            self._log(f"Performing DELETE bucket at /{container}")
        else:
            self._log(f"Performing DELETE dir at /{container}")
        path = self.container_path(container)

        policy = CreateOnDemandRetryPolicy(
            error_is(ContainerNotEmpty),
            lambda: self._delete_children(path),
            name="empty-container",
            logger=self.logger,
        )
        with transfer_scope():
            try:
                policy.attempt(lambda: self.store.delete_container(path))
            except (BucketMissing, ContainerMissing) as e:
                self.logger.debug(f"Container {path} already gone: {e}")

    def _delete_children(self, path: str) -> None:
        for entry in self.store.list_children(path):
            if entry.is_container:
                self._delete_children(entry.path)
                self.store.delete_container(entry.path)
                continue
            try:
                self.store.delete_entry(entry.path)
            except ObjectMissing:
                self.logger.debug(f"Entry {entry.path} vanished before delete")

    # Objects

    def create_object(self, container: str, name: str, data: BinaryIO, length: int) -> None:
        if self.buckets_mode:
            self._log(f"Performing PUT bucketobject at /{container}/{BUCKET_OBJECTS_DIR}/{name}")
        else:
            self._log(f"Performing PUT at /{container}/{name}")
        path = self.object_path(container, name)
        content_length = None if self.config.chunked else length
        headers: dict[str, str] = {}
        if self.config.durability_level is not None:
            headers[DURABILITY_HEADER] = str(self.config.durability_level)

        write: Callable[[], Any]
        if self.config.multipart:
            write = functools.partial(self.coordinator.upload, path, data, length)
        else:
            write = functools.partial(self.store.put, path, data, content_length, headers)

        with transfer_scope():
            if not data.seekable():
                # A drained source cannot be replayed, so the first failure is final
                write()
                return

            start = data.tell()

            def write_from_start() -> None:
                data.seek(start)
                write()

            self._write_policy(container).attempt(write_from_start)

    def _write_policy(self, container: str) -> CreateOnDemandRetryPolicy:
        container_path = self.container_path(container)
        if self.buckets_mode:
            return CreateOnDemandRetryPolicy(
                error_is(BucketMissing),
                lambda: self.store.create_container(container_path),
                name="create-bucket",
                logger=self.logger,
            )
        return CreateOnDemandRetryPolicy(
            error_is(ContainerMissing, BucketMissing),
            lambda: self.store.create_container(container_path),
            name="create-directory",
            logger=self.logger,
        )

    def get_object(self, container: str, name: str) -> BinaryIO:
        path = self.object_path(container, name)
        if self.config.section_count == 1:
            if self.buckets_mode:
                self._log(f"Performing GET bucketobject at /{container}/{BUCKET_OBJECTS_DIR}/{name}")
            else:
                self._log(f"Performing GET at /{container}/{name}")
            return self.store.get(path)

        if self.config.object_size is None:
            msg = "object-size must be set when no-of-http-range-sections is set"
            self.logger.error(msg)
            raise InvalidArgument(msg)

        self._log(f"Performing GET with HTTP byte range at /{container}/{name}")
        return SequentialRangeReader(  # type: ignore[return-value]
            path,
            RangedGetSource(self.store, path),
            self.config.object_size,
            self.config.section_count,
            logger=self.logger,
        )

    def delete_object(self, container: str, name: str) -> None:
        if self.buckets_mode:
            self._log(f"Performing DELETE bucketobject at /{container}/{BUCKET_OBJECTS_DIR}/{name}")
        else:
            self._log(f"Performing DELETE at /{container}/{name}")
        path = self.object_path(container, name)
        try:
            self.store.delete_entry(path)
        except ObjectMissing:
            self.logger.debug(f"Object {path} already deleted")

    # Metadata

    def create_metadata(self, container: str, name: str, metadata: Mapping[str, str]) -> None:
        self._log(f"Performing POST at /{container}/{name}")
        prefixed = {f"{METADATA_PREFIX}{k}": v for k, v in metadata.items()}
        self.store.put_metadata(self.object_path(container, name), prefixed)

    def get_metadata(self, container: str, name: str) -> dict[str, str]:
        self._log(f"Performing HEAD at /{container}/{name}")
        return self.store.head(self.object_path(container, name))
