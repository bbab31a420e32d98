"""
AWS Lambda handler — on-demand image transformation

Invoked through a Lambda function URL (payload v2) behind a CDN.

Flow:
  1. Splits the path: /<original key segments>/<operations | "original">.
  2. Downloads the original object from the original-image bucket.
  3. Returns PDFs, and SVGs that need no resize/format change, untouched.
  4. Auto-rotates, resizes and re-encodes everything else with Pillow.
  5. Uploads the variant to the transformed-image bucket when one is set.
  6. Serves the variant inline, or redirects to the cached copy when it is
     too large for a synchronous Lambda response.

Environment variables:
  originalImageBucketName     — bucket holding the originals
  transformedImageBucketName  — bucket for cached variants (optional)
  transformedImageCacheTTL    — Cache-Control value for variants
  maxImageSize                — largest body served inline, in bytes
"""
from __future__ import annotations

import base64
import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager
from functools import lru_cache
from http import HTTPStatus
from typing import Any, Protocol

from PIL import Image

from image_transform.config import Settings
from image_transform.exceptions import (
    CacheUploadFailed,
    ImageTooLarge,
    ImageTransformError,
    MethodNotAllowed,
    SourceImageNotFound,
    TransformFailed,
)
from image_transform.operations import (
    Operations,
    decide_output,
    parse_operations,
)
from image_transform.processor import SVG_CONTENT_TYPE, ImageProcessor
from image_transform.storage import S3ImageStore, StoredObject

logger = logging.getLogger()
logger.setLevel(logging.INFO)

PDF_CONTENT_TYPE = "application/pdf"

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET,HEAD,OPTIONS",
    "Access-Control-Allow-Headers": "*",
    "Access-Control-Max-Age": "600",
}


class ImageStore(Protocol):
    def get(self, bucket: str, key: str) -> StoredObject: ...

    def put(
        self, bucket: str, key: str, body: bytes, *, content_type: str, cache_control: str
    ) -> None: ...


class ServerTiming:
    """Collects named durations for the Server-Timing response header."""

    def __init__(self) -> None:
        self._entries: list[tuple[str, int]] = []

    @contextmanager
    def measure(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        yield
        # Only blocks that finish are reported
        self._entries.append((name, int((time.perf_counter() - start) * 1000)))

    def header(self) -> str:
        return ",".join(f"{name};dur={duration}" for name, duration in self._entries)


def split_request_path(path: str) -> tuple[str, Operations]:
    """Return (source key, operations) for /<key segments>/<operations>."""
    segments = path.split("/")
    operations = segments.pop()
    # Drop the empty segment before the leading slash
    segments = segments[1:]
    source_key = "/".join(segments)
    if not source_key:
        raise SourceImageNotFound()
    return source_key, parse_operations(operations)


class ImageTransformHandler:
    """Serves one request at a time from immutable settings and a store."""

    def __init__(self, settings: Settings, store: ImageStore) -> None:
        self._settings = settings
        self._store = store

    def __call__(self, event: dict) -> dict:
        try:
            return self._handle(event)
        except ImageTransformError as exc:
            return _error_response(exc)

    def _handle(self, event: dict) -> dict:
        http = event.get("requestContext", {}).get("http", {})
        method = http.get("method")

        if method == "OPTIONS":
            return {"statusCode": HTTPStatus.NO_CONTENT, "headers": dict(CORS_HEADERS), "body": ""}
        if method != "GET":
            raise MethodNotAllowed()

        source_key, ops = split_request_path(http.get("path", ""))
        timing = ServerTiming()

        with timing.measure("img-download"):
            source = self._store.get(self._settings.original_image_bucket_name, source_key)

        if source.content_type == PDF_CONTENT_TYPE:
            return self._passthrough(source, {})
        if source.content_type == SVG_CONTENT_TYPE and not (
            ops.mentions("width") or ops.mentions("format")
        ):
            return self._passthrough(
                source, {"Access-Control-Allow-Origin": CORS_HEADERS["Access-Control-Allow-Origin"]}
            )

        with timing.measure("img-transform"):
            data, content_type = self._transform(source, source_key, ops)

        too_big = len(data) > self._settings.max_image_size
        if self._settings.cache_enabled:
            try:
                with timing.measure("img-upload"):
                    self._store.put(
                        self._settings.transformed_image_bucket_name,
                        f"{source_key}/{ops.raw}",
                        data,
                        content_type=content_type,
                        cache_control=self._settings.transformed_image_cache_ttl,
                    )
            except CacheUploadFailed as exc:
                logger.warning("%s: %s", exc.detail, exc.__cause__)
            else:
                if too_big:
                    return {
                        "statusCode": HTTPStatus.FOUND,
                        "headers": {
                            "Location": f"/{source_key}?{ops.as_query_string()}",
                            "Cache-Control": "private,no-store",
                            "Server-Timing": timing.header(),
                        },
                    }

        if too_big:
            raise ImageTooLarge()

        return {
            "statusCode": HTTPStatus.OK,
            "body": base64.b64encode(data).decode("ascii"),
            "isBase64Encoded": True,
            "headers": {
                "Content-Type": content_type,
                "Cache-Control": self._settings.transformed_image_cache_ttl,
                "Server-Timing": timing.header(),
                **CORS_HEADERS,
            },
        }

    def _transform(self, source: StoredObject, source_key: str, ops: Operations) -> tuple[bytes, str]:
        logger.info("S3 Content-Type: %s", source.content_type)
        try:
            decision = decide_output(source.content_type, source_key, ops)
            processor = ImageProcessor(source.body, source.content_type)
            processed = processor.process(decision, width=ops.width, height=ops.height)
        except Exception as exc:
            raise TransformFailed() from exc
        content_type = (
            processed.content_type
            or source.content_type
            or Image.MIME.get(processor.source_format, "application/octet-stream")
        )
        return processed.data, content_type

    def _passthrough(self, source: StoredObject, extra_headers: dict[str, str]) -> dict:
        return {
            "statusCode": HTTPStatus.OK,
            "body": base64.b64encode(source.body).decode("ascii"),
            "isBase64Encoded": True,
            "headers": {
                "Content-Type": source.content_type,
                "Cache-Control": self._settings.transformed_image_cache_ttl,
                **extra_headers,
            },
        }


def _error_response(exc: ImageTransformError) -> dict:
    if exc.__cause__ is not None:
        logger.error("APPLICATION ERROR %s", exc.detail, exc_info=exc.__cause__)
    else:
        logger.error("APPLICATION ERROR %s", exc.detail)
    return {"statusCode": exc.status_code, "body": exc.detail}


@lru_cache
def get_default_handler() -> ImageTransformHandler:
    """Built once per Lambda container from the environment."""
    settings = Settings()
    logger.setLevel(settings.log_level.upper())
    return ImageTransformHandler(settings, S3ImageStore())


def handler(event: dict, context: Any) -> dict:
    """Lambda entry point."""
    return get_default_handler()(event)
