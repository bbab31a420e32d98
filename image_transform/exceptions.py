"""
Image transform — domain errors.

Every exception carries a preset status code and a short client-facing
message, so call sites only pick the class. The request handler converts
them to a response in one place and logs the underlying cause.
"""
from __future__ import annotations

from http import HTTPStatus


class ImageTransformError(Exception):
    status_code: int = HTTPStatus.INTERNAL_SERVER_ERROR
    detail: str = "Internal error"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


# ── Request ──────────────────────────────────────────────────────────────────

class MethodNotAllowed(ImageTransformError):
    status_code = HTTPStatus.METHOD_NOT_ALLOWED
    detail = "Only GET and OPTIONS methods are supported"


# ── Storage ──────────────────────────────────────────────────────────────────

class SourceImageNotFound(ImageTransformError):
    status_code = HTTPStatus.NOT_FOUND
    detail = "The requested image does not exist"


class SourceDownloadFailed(ImageTransformError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    detail = "Error downloading original image"


class CacheUploadFailed(ImageTransformError):
    """Raised by the store on put failures; the handler demotes it to a warning."""

    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    detail = "Could not upload transformed image to S3"


# ── Transformation ───────────────────────────────────────────────────────────

class TransformFailed(ImageTransformError):
    status_code = HTTPStatus.INTERNAL_SERVER_ERROR
    detail = "error transforming image"


class ImageTooLarge(ImageTransformError):
    status_code = HTTPStatus.FORBIDDEN
    detail = "Requested transformed image is too big"
