import io
from collections.abc import Callable

import pytest
from PIL import Image

from image_transform.config import Settings
from image_transform.exceptions import CacheUploadFailed, SourceImageNotFound
from image_transform.handler import ImageTransformHandler
from image_transform.storage import StoredObject

ORIGINAL_BUCKET = "originals"
TRANSFORMED_BUCKET = "variants"
CACHE_TTL = "max-age=600"


class FakeImageStore:
    """In-memory stand-in for S3ImageStore."""

    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], StoredObject] = {}
        self.puts: list[dict] = []
        self.fail_puts = False

    def add(self, key: str, body: bytes, content_type: str | None) -> None:
        self.objects[(ORIGINAL_BUCKET, key)] = StoredObject(body=body, content_type=content_type)

    def get(self, bucket: str, key: str) -> StoredObject:
        try:
            return self.objects[(bucket, key)]
        except KeyError:
            raise SourceImageNotFound() from None

    def put(self, bucket, key, body, *, content_type, cache_control) -> None:
        if self.fail_puts:
            raise CacheUploadFailed()
        self.puts.append(
            {
                "bucket": bucket,
                "key": key,
                "body": body,
                "content_type": content_type,
                "cache_control": cache_control,
            }
        )


def make_settings(**overrides) -> Settings:
    values = {
        "original_image_bucket_name": ORIGINAL_BUCKET,
        "transformed_image_bucket_name": TRANSFORMED_BUCKET,
        "transformed_image_cache_ttl": CACHE_TTL,
        "max_image_size": 4_700_000,
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def make_image(fmt: str = "JPEG", size: tuple[int, int] = (200, 100), mode: str = "RGB", **save_kwargs) -> bytes:
    buf = io.BytesIO()
    Image.new(mode, size, (200, 30, 30) if mode == "RGB" else (200, 30, 30, 128)).save(
        buf, format=fmt, **save_kwargs
    )
    return buf.getvalue()


def get_event(path: str, method: str = "GET") -> dict:
    return {"version": "2.0", "requestContext": {"http": {"method": method, "path": path}}}


@pytest.fixture
def store() -> FakeImageStore:
    return FakeImageStore()


@pytest.fixture
def make_handler(store: FakeImageStore) -> Callable[..., ImageTransformHandler]:
    def _make(**overrides) -> ImageTransformHandler:
        return ImageTransformHandler(make_settings(**overrides), store)

    return _make


def make_noise_image(fmt: str = "JPEG", size: tuple[int, int] = (128, 128)) -> bytes:
    """Detailed content, so encoder quality visibly changes the output size."""
    buf = io.BytesIO()
    channels = [Image.effect_noise(size, sigma) for sigma in (40, 60, 80)]
    Image.merge("RGB", channels).save(buf, format=fmt, quality=95)
    return buf.getvalue()


SAMPLE_SVG = (
    b'<svg xmlns="http://www.w3.org/2000/svg" width="40" height="20">'
    b'<rect width="40" height="20" fill="#c81e1e"/></svg>'
)


@pytest.fixture
def cairosvg_available() -> None:
    # cairocffi raises OSError, not ImportError, when libcairo is missing
    try:
        import cairosvg  # noqa: F401
    except (ImportError, OSError) as exc:
        pytest.skip(f"cairosvg needs the system libcairo: {exc}")
