from segmented_transfer.store.base import MultipartHandle
from segmented_transfer.store.base import ObjectStoreClient
from segmented_transfer.store.base import StoreEntry
from segmented_transfer.store.base import UploadPart
from segmented_transfer.store.s3 import S3ObjectStore


__all__ = ["MultipartHandle", "ObjectStoreClient", "S3ObjectStore", "StoreEntry", "UploadPart"]
