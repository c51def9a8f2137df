#!/usr/bin/env python3
import argparse
import shutil
import sys
import time
from pathlib import Path
from typing import List
from typing import Optional

from segmented_transfer.config import get_config
from segmented_transfer.errors import TransferError
from segmented_transfer.logging_config import setup_loki_logging
from segmented_transfer.storage import SegmentedStorage
from segmented_transfer.store.s3 import S3ObjectStore


COPY_BUFFER_SIZE = 1024 * 1024


def _parse_args(argv: Optional[List[str]]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Segmented GET / chunked PUT against an S3-compatible store")
    parser.add_argument("--workload", action="append", default=[], metavar="KEY=VALUE", help="Workload override")
    sub = parser.add_subparsers(dest="command", required=True)

    get = sub.add_parser("get", help="Download an object, optionally as HTTP byte-range sections")
    get.add_argument("container")
    get.add_argument("object")
    get.add_argument("dest", type=Path)

    put = sub.add_parser("put", help="Upload a file, optionally as a multipart upload")
    put.add_argument("container")
    put.add_argument("object")
    put.add_argument("src", type=Path)
    return parser.parse_args(argv)


def _workload(pairs: List[str]) -> dict[str, str]:
    workload: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise SystemExit(f"--workload expects KEY=VALUE, got '{pair}'")
        workload[key.strip()] = value.strip()
    return workload


def main(argv: Optional[List[str]] = None) -> int:
    args = _parse_args(argv)
    config = get_config()
    if args.workload:
        config = config.from_workload(_workload(args.workload))
    logger = setup_loki_logging(config, "segmented-transfer")

    storage = SegmentedStorage(S3ObjectStore.from_config(config), config, logger=logger)
    t0 = time.monotonic()
    try:
        storage.initialize()
        if args.command == "get":
            with storage.get_object(args.container, args.object) as src, args.dest.open("wb") as dst:
                shutil.copyfileobj(src, dst, COPY_BUFFER_SIZE)
            size = args.dest.stat().st_size
        else:
            size = args.src.stat().st_size
            with args.src.open("rb") as src:
                storage.create_object(args.container, args.object, src, size)
    except TransferError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1

    dt = time.monotonic() - t0
    logger.info(f"{args.command} {args.container}/{args.object}: {size} bytes in {dt:.3f}s")
    return 0


if __name__ == "__main__":
    sys.exit(main())
