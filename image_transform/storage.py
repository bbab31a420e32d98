"""
AWS S3 access — source downloads and variant uploads.

The store wraps a plain boto3 client so the handler can be given any object
with ``get``/``put`` in tests.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from image_transform.exceptions import (
    CacheUploadFailed,
    SourceDownloadFailed,
    SourceImageNotFound,
)

logger = logging.getLogger(__name__)

_MISSING_KEY_CODES = {"NoSuchKey", "404", "NotFound"}


@dataclass(frozen=True)
class StoredObject:
    body: bytes
    content_type: str | None


class S3ImageStore:
    def __init__(self, client=None) -> None:
        self._client = client if client is not None else boto3.client("s3")

    def get(self, bucket: str, key: str) -> StoredObject:
        """Download an object. Missing keys raise SourceImageNotFound."""
        try:
            response = self._client.get_object(Bucket=bucket, Key=key)
            body = response["Body"].read()
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code", "")
            if error_code in _MISSING_KEY_CODES:
                raise SourceImageNotFound() from exc
            raise SourceDownloadFailed() from exc
        except BotoCoreError as exc:
            raise SourceDownloadFailed() from exc
        logger.info("Got response from S3 for %s", key)
        return StoredObject(body=body, content_type=response.get("ContentType"))

    def put(
        self,
        bucket: str,
        key: str,
        body: bytes,
        *,
        content_type: str,
        cache_control: str,
    ) -> None:
        try:
            self._client.put_object(
                Bucket=bucket,
                Key=key,
                Body=body,
                ContentType=content_type,
                CacheControl=cache_control,
            )
        except (BotoCoreError, ClientError) as exc:
            raise CacheUploadFailed() from exc
