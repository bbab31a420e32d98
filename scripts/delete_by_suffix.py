#!/usr/bin/env python3
"""
Delete cached variants whose key contains a pattern.

The transformed-image bucket stores variants as <original key>/<operations>,
so the default pattern ".svg/" matches every variant rendered from an SVG
original. Matching objects are deleted one at a time.

Usage:
    python -m scripts.delete_by_suffix <bucket> [pattern]
"""
from __future__ import annotations

import sys
from collections.abc import Iterator

import boto3

DEFAULT_PATTERN = ".svg/"


def matching_keys(s3, bucket: str, pattern: str) -> Iterator[str]:
    paginator = s3.get_paginator("list_objects_v2")
    for page in paginator.paginate(Bucket=bucket):
        for obj in page.get("Contents", []):
            if pattern in obj["Key"]:
                yield obj["Key"]


def delete_matching(s3, bucket: str, pattern: str = DEFAULT_PATTERN) -> int:
    deleted = 0
    for key in matching_keys(s3, bucket, pattern):
        s3.delete_object(Bucket=bucket, Key=key)
        print(f"delete: s3://{bucket}/{key}")
        deleted += 1
    return deleted


def main(argv: list[str] | None = None) -> None:
    args = sys.argv[1:] if argv is None else argv
    if len(args) not in (1, 2):
        print("Usage: delete_by_suffix.py <bucket> [pattern]")
        sys.exit(1)
    bucket = args[0]
    pattern = args[1] if len(args) == 2 else DEFAULT_PATTERN
    deleted = delete_matching(boto3.client("s3"), bucket, pattern)
    print(f"Done: {deleted} objects deleted.")


if __name__ == "__main__":
    main()
