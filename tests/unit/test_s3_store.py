import io
from unittest.mock import MagicMock

import pytest
from botocore.exceptions import ClientError
from botocore.exceptions import EndpointConnectionError

from segmented_transfer.errors import BucketMissing
from segmented_transfer.errors import ContainerMissing
from segmented_transfer.errors import ContainerNotEmpty
from segmented_transfer.errors import ObjectMissing
from segmented_transfer.errors import StorageError
from segmented_transfer.store.base import MultipartHandle
from segmented_transfer.store.base import UploadPart
from segmented_transfer.store.base import split_path
from segmented_transfer.store.s3 import S3ObjectStore


def _client_error(code: str, operation: str = "GetObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} happened"}}, operation)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def s3(client):
    return S3ObjectStore(client, region="eu-central-1")


def test_split_path():
    assert split_path("bucket/a/b.bin") == ("bucket", "a/b.bin")
    assert split_path("/bucket") == ("bucket", "")


def test_ranged_get_sends_inclusive_range(s3, client):
    body = io.BytesIO(b"abc")
    client.get_object.return_value = {"Body": body}

    assert s3.ranged_get("bench/obj", 10, 19) is body
    client.get_object.assert_called_once_with(Bucket="bench", Key="obj", Range="bytes=10-19")


@pytest.mark.parametrize(
    "code,error_type",
    [
        ("NoSuchBucket", BucketMissing),
        ("NoSuchKey", ObjectMissing),
        ("404", ObjectMissing),
        ("BucketNotEmpty", ContainerNotEmpty),
        ("InternalError", StorageError),
    ],
)
def test_client_errors_are_translated(s3, client, code, error_type):
    client.get_object.side_effect = _client_error(code)

    with pytest.raises(error_type) as exc_info:
        s3.get("bench/obj")

    assert exc_info.value.code == code
    assert "bench/obj" in str(exc_info.value)
    assert isinstance(exc_info.value.__cause__, ClientError)


def test_botocore_errors_become_storage_errors(s3, client):
    client.get_object.side_effect = EndpointConnectionError(endpoint_url="http://localhost:9000")

    with pytest.raises(StorageError) as exc_info:
        s3.ranged_get("bench/obj", 0, 1)

    assert exc_info.value.code == "EndpointConnectionError"


def test_put_reads_only_content_length(s3, client):
    stream = io.BytesIO(b"0123456789")

    s3.put("bench/obj", stream, 4, {"durability-level": "2"})

    client.put_object.assert_called_once_with(
        Bucket="bench", Key="obj", Body=b"0123", Metadata={"durability-level": "2"}
    )
    assert stream.tell() == 4


def test_put_without_length_sends_whole_stream(s3, client):
    s3.put("bench/obj", io.BytesIO(b"0123456789"), None)

    assert client.put_object.call_args.kwargs["Body"] == b"0123456789"


def test_multipart_round(s3, client):
    client.create_multipart_upload.return_value = {"UploadId": "u-1"}
    client.upload_part.side_effect = [{"ETag": '"e1"'}, {"ETag": '"e2"'}]

    handle = s3.initiate_multipart_upload("bench/big")
    p1 = s3.upload_part(handle, 1, io.BytesIO(b"aaaa"))
    p2 = s3.upload_part(handle, 2, io.BytesIO(b"bb"))
    s3.complete_multipart_upload(handle, [p1, p2])

    assert handle == MultipartHandle(path="bench/big", upload_id="u-1")
    assert p1 == UploadPart(part_number=1, etag='"e1"', size_bytes=4)
    client.complete_multipart_upload.assert_called_once_with(
        Bucket="bench",
        Key="big",
        UploadId="u-1",
        MultipartUpload={"Parts": [{"PartNumber": 1, "ETag": '"e1"'}, {"PartNumber": 2, "ETag": '"e2"'}]},
    )


def test_abort_multipart_upload(s3, client):
    s3.abort_multipart_upload(MultipartHandle(path="bench/big", upload_id="u-1"))

    client.abort_multipart_upload.assert_called_once_with(Bucket="bench", Key="big", UploadId="u-1")


def test_create_bucket_uses_location_constraint(s3, client):
    s3.create_container("newbucket")

    client.create_bucket.assert_called_once_with(
        Bucket="newbucket", CreateBucketConfiguration={"LocationConstraint": "eu-central-1"}
    )


def test_create_bucket_in_us_east_1_has_no_constraint(client):
    S3ObjectStore(client, region="us-east-1").create_container("newbucket")

    client.create_bucket.assert_called_once_with(Bucket="newbucket")


def test_create_directory_writes_marker(s3, client):
    s3.create_container("bench/stor/c1")

    client.put_object.assert_called_once_with(Bucket="bench", Key="stor/c1/", Body=b"")
    client.create_bucket.assert_not_called()


def test_create_directory_creates_missing_bucket(s3, client):
    client.put_object.side_effect = [_client_error("NoSuchBucket", "PutObject"), {}]

    s3.create_container("bench/stor/c1")

    client.create_bucket.assert_called_once()
    assert client.put_object.call_count == 2


def _paginate(pages):
    paginator = MagicMock()
    paginator.paginate.return_value = pages
    return paginator


def test_list_children_splits_prefixes_and_objects(s3, client):
    client.get_paginator.return_value = _paginate(
        [
            {
                "CommonPrefixes": [{"Prefix": "stor/c1/sub/"}],
                "Contents": [{"Key": "stor/c1/", "Size": 0}, {"Key": "stor/c1/a.bin", "Size": 12}],
            }
        ]
    )

    entries = s3.list_children("bench/stor/c1")

    client.get_paginator.return_value.paginate.assert_called_once_with(Bucket="bench", Prefix="stor/c1/", Delimiter="/")
    assert [(e.name, e.path, e.is_container, e.size_bytes) for e in entries] == [
        ("sub", "bench/stor/c1/sub/", True, 0),
        ("a.bin", "bench/stor/c1/a.bin", False, 12),
    ]


def test_delete_non_empty_directory_raises(s3, client):
    client.get_paginator.return_value = _paginate([{"Contents": [{"Key": "stor/c1/a.bin", "Size": 1}]}])

    with pytest.raises(ContainerNotEmpty):
        s3.delete_container("bench/stor/c1")
    client.delete_object.assert_not_called()


def test_delete_empty_directory_removes_marker(s3, client):
    client.get_paginator.return_value = _paginate([{"Contents": [{"Key": "stor/c1/", "Size": 0}]}])

    s3.delete_container("bench/stor/c1")

    client.delete_object.assert_called_once_with(Bucket="bench", Key="stor/c1/")


def test_delete_non_empty_bucket_is_translated(s3, client):
    client.delete_bucket.side_effect = _client_error("BucketNotEmpty", "DeleteBucket")

    with pytest.raises(ContainerNotEmpty):
        s3.delete_container("bench")


def test_head_and_put_metadata(s3, client):
    client.head_object.return_value = {"Metadata": {"m-color": "blue"}}

    assert s3.head("bench/obj") == {"m-color": "blue"}
    s3.put_metadata("bench/obj", {"m-size": "big"})

    client.copy_object.assert_called_once_with(
        Bucket="bench",
        Key="obj",
        CopySource={"Bucket": "bench", "Key": "obj"},
        Metadata={"m-size": "big"},
        MetadataDirective="REPLACE",
    )


def test_from_config_builds_boto_client(make_config, monkeypatch):
    session = MagicMock()
    monkeypatch.setattr("segmented_transfer.store.s3.boto3.session.Session", MagicMock(return_value=session))
    cfg = make_config(
        s3_endpoint_url="http://localhost:9000", s3_region="us-east-1", s3_max_attempts=3, test_type="directory"
    )

    store = S3ObjectStore.from_config(cfg)

    assert store.client is session.client.return_value
    assert store.strict_directories is True
    args, kwargs = session.client.call_args
    assert args == ("s3",)
    assert kwargs["endpoint_url"] == "http://localhost:9000"
    assert kwargs["config"].retries == {"max_attempts": 3, "mode": "standard"}


class NonSeekable(io.RawIOBase):
    def __init__(self, data: bytes) -> None:
        super().__init__()
        self._inner = io.BytesIO(data)

    def readable(self) -> bool:
        return True

    def readinto(self, buffer) -> int:
        chunk = self._inner.read(len(buffer))
        buffer[: len(chunk)] = chunk
        return len(chunk)


def test_put_with_short_source_is_rejected(s3, client):
    with pytest.raises(StorageError, match="ended after 3 of 7 bytes") as exc_info:
        s3.put("bench/obj", NonSeekable(b"abc"), 7)

    assert exc_info.value.code == "IncompleteBody"
    client.put_object.assert_not_called()


def test_put_streams_exact_seekable_source(s3, client):
    stream = io.BytesIO(b"0123456789")

    s3.put("bench/obj", stream, 10)

    kwargs = client.put_object.call_args.kwargs
    assert kwargs["Body"] is stream
    assert kwargs["ContentLength"] == 10
    assert stream.tell() == 0


def test_strict_put_into_missing_directory_raises_container_missing(client):
    client.head_object.side_effect = _client_error("404", "HeadObject")
    store = S3ObjectStore(client, strict_directories=True)

    with pytest.raises(ContainerMissing) as exc_info:
        store.put("bench/stor/c1/obj", NonSeekable(b"abc"), 3)

    client.head_object.assert_called_once_with(Bucket="bench", Key="stor/c1/")
    client.put_object.assert_not_called()
    assert isinstance(exc_info.value.__cause__, ObjectMissing)


def test_strict_multipart_checks_directory(client):
    client.head_object.side_effect = _client_error("404", "HeadObject")

    with pytest.raises(ContainerMissing):
        S3ObjectStore(client, strict_directories=True).initiate_multipart_upload("bench/stor/c1/big")

    client.create_multipart_upload.assert_not_called()


def test_strict_put_into_existing_directory(client):
    S3ObjectStore(client, strict_directories=True).put("bench/stor/c1/obj", io.BytesIO(b"abc"), 3)

    client.head_object.assert_called_once_with(Bucket="bench", Key="stor/c1/")
    client.put_object.assert_called_once()


def test_put_at_bucket_root_skips_directory_check(client):
    S3ObjectStore(client, strict_directories=True).put("bench/obj", io.BytesIO(b"abc"), 3)

    client.head_object.assert_not_called()
