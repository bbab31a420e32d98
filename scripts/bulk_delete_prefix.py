#!/usr/bin/env python3
"""
Delete every object under a prefix of an S3 bucket.

Keys are listed, split into batches of 1000 (the DeleteObjects limit) and
removed with one bulk delete per batch. Each batch payload is written to a
temporary JSON file that is removed once its delete call returns.

Usage:
    python -m scripts.bulk_delete_prefix <bucket> <prefix>
"""
from __future__ import annotations

import json
import os
import sys
import tempfile
from collections.abc import Iterator

import boto3

BATCH_SIZE = 1000


def list_keys(s3, bucket: str, prefix: str) -> Iterator[str]:
    paginator = s3.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket, Prefix=prefix):
        for obj in page.get("Contents", []):
            yield obj["Key"]


def batched(keys: list[str], size: int = BATCH_SIZE) -> Iterator[list[str]]:
    for start in range(0, len(keys), size):
        yield keys[start:start + size]


def write_batch_file(keys: list[str]) -> str:
    """Write a DeleteObjects payload for ``keys`` and return the file path."""
    payload = {"Objects": [{"Key": key} for key in keys], "Quiet": True}
    fd, path = tempfile.mkstemp(prefix="delete_batch_", suffix=".json")
    with os.fdopen(fd, "w", encoding="utf-8") as fh:
        json.dump(payload, fh)
    return path


def delete_prefix(s3, bucket: str, prefix: str, batch_size: int = BATCH_SIZE) -> int:
    keys = list(list_keys(s3, bucket, prefix))
    print(f"Found {len(keys)} objects under s3://{bucket}/{prefix}")

    for number, batch in enumerate(batched(keys, batch_size), start=1):
        path = write_batch_file(batch)
        try:
            with open(path, encoding="utf-8") as fh:
                s3.delete_objects(Bucket=bucket, Delete=json.load(fh))
        finally:
            os.remove(path)
        print(f"  batch {number}: deleted {len(batch)} objects")

    return len(keys)


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) != 2:
        print("Usage: bulk_delete_prefix.py <bucket> <prefix>")
        sys.exit(1)
    bucket, prefix = args
    deleted = delete_prefix(boto3.client("s3"), bucket, prefix)
    print(f"Done: {deleted} objects deleted.")


if __name__ == "__main__":
    main()
