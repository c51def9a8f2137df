import dataclasses
from typing import Any
from typing import Callable
from typing import Mapping
from typing import Optional

import dotenv

from segmented_transfer.errors import InvalidArgument
from segmented_transfer.utils import env
from segmented_transfer.utils import optional_int
from segmented_transfer.utils import parse_bool


dotenv.load_dotenv()


TEST_TYPES = ("directory", "buckets")


@dataclasses.dataclass
class Config:
    """Transfer and store configuration settings."""

    # Logging
    log_level: str = env("LOG_LEVEL:INFO")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=parse_bool)
    environment: str = env("ENVIRONMENT:dev")

    # S3 connection
    s3_endpoint_url: str = env("S3_ENDPOINT_URL:", convert=str)
    s3_region: str = env("S3_REGION:us-east-1")
    s3_access_key: str = env("S3_ACCESS_KEY:", convert=str)
    s3_secret_key: str = env("S3_SECRET_KEY:", convert=str)
    s3_connect_timeout_seconds: float = env("S3_CONNECT_TIMEOUT_SECONDS:10", convert=float)
    s3_read_timeout_seconds: float = env("S3_READ_TIMEOUT_SECONDS:300", convert=float)
    # Store-level retries live in botocore; the transfer core never retries
    s3_max_attempts: int = env("S3_MAX_ATTEMPTS:5", convert=int)

    # Layout: "directory" keeps containers as prefixes of root_bucket, "buckets" maps each to a bucket
    root_bucket: str = env("TRANSFER_ROOT_BUCKET:transfer-bench")
    test_type: str = env("TRANSFER_TEST_TYPE:directory")
    base_directory: str = env("TRANSFER_BASE_DIRECTORY:stor/cosbench")

    # Download segmentation (1 means a plain GET)
    section_count: int = env("TRANSFER_SECTION_COUNT:1", convert=int)
    object_size: Optional[int] = env("TRANSFER_OBJECT_SIZE:", convert=optional_int)

    # Upload behaviour
    multipart: bool = env("TRANSFER_MULTIPART:false", convert=parse_bool)
    split_size: int = env("TRANSFER_SPLIT_SIZE:5242880", convert=int)
    durability_level: Optional[int] = env("TRANSFER_DURABILITY_LEVEL:", convert=optional_int)
    chunked: bool = env("TRANSFER_CHUNKED:false", convert=parse_bool)

    # Per-operation info logging in the storage adapter
    logging: bool = env("TRANSFER_LOGGING:true", convert=parse_bool)

    def from_workload(self, workload: Mapping[str, Any]) -> "Config":
        """Return a copy overridden by benchmark workload keys, validated."""
        overrides: dict[str, Any] = {}
        for key, (field_name, convert) in WORKLOAD_KEYS.items():
            value = workload.get(key)
            if value is None or (isinstance(value, str) and not value.strip()):
                continue
            try:
                overrides[field_name] = convert(value)
            except ValueError as e:
                raise InvalidArgument(f"Invalid value for workload key '{key}': {value!r}") from e
        return validate_config(dataclasses.replace(self, **overrides))


def _workload_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return parse_bool(str(value))


WORKLOAD_KEYS: dict[str, tuple[str, Callable[[Any], Any]]] = {
    "no-of-http-range-sections": ("section_count", int),
    "object-size": ("object_size", int),
    "splitSize": ("split_size", int),
    "multipart": ("multipart", _workload_bool),
    "durability-level": ("durability_level", int),
    "chunked": ("chunked", _workload_bool),
    "manta-directory": ("base_directory", str),
    "logging": ("logging", _workload_bool),
    "test-type": ("test_type", str),
}


def validate_config(cfg: Config) -> Config:
    if cfg.section_count < 1:
        raise InvalidArgument(f"Sections should be set to one or greater: {cfg.section_count}")
    if cfg.section_count > 1 and cfg.object_size is None:
        raise InvalidArgument("object-size must be set when no-of-http-range-sections is greater than one")
    if cfg.object_size is not None and cfg.object_size <= 0:
        raise InvalidArgument(f"Object size must be greater than zero: {cfg.object_size}")
    if cfg.split_size <= 0:
        raise InvalidArgument(f"Split size must be greater than zero: {cfg.split_size}")

    test_type = cfg.test_type.strip().lower()
    if test_type not in TEST_TYPES:
        raise InvalidArgument(f"Unknown test type '{cfg.test_type}', expected one of {TEST_TYPES}")
    cfg.test_type = test_type
    cfg.base_directory = cfg.base_directory.strip("/")
    return cfg


def get_config() -> Config:
    """Get transfer configuration from the environment."""
    return validate_config(Config())
