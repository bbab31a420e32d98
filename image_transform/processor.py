"""
Image processor — auto-rotate, resize, re-encode.

Uses Pillow for image manipulation, with pillow-heif registered for HEIC
sources and cairosvg to rasterise SVG sources before they reach Pillow.

Resizing follows the usual codec default: with a single dimension the other
one is derived from the aspect ratio, with both the image is stretched to the
exact box. Animated GIF/WebP sources keep every frame when the output format
can hold an animation. Embedded colour profiles are converted to sRGB and
not carried into the output.
"""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass

from PIL import Image, ImageCms, ImageFile, ImageOps, ImageSequence
from pillow_heif import register_heif_opener

from image_transform.operations import OutputDecision, OutputFormat

logger = logging.getLogger(__name__)

register_heif_opener()

# Decode whatever is readable instead of failing on truncated uploads
ImageFile.LOAD_TRUNCATED_IMAGES = True

SVG_CONTENT_TYPE = "image/svg+xml"

_ANIMATED_FORMATS = {"GIF", "WEBP", "PNG"}

# Encoders that cannot store an alpha channel
_OPAQUE_FORMATS = {"JPEG"}

_SRGB_PROFILE = ImageCms.createProfile("sRGB")

# Modes littlecms can map onto sRGB, and the mode they come out as
_SRGB_OUTPUT_MODES = {"RGB": "RGB", "RGBA": "RGBA", "CMYK": "RGB", "L": "RGB"}


@dataclass(frozen=True)
class ProcessedImage:
    data: bytes
    # None when the decoded format of a raster source was kept
    content_type: str | None


class ImageProcessor:
    """Transform a single source image according to one request."""

    def __init__(self, image_data: bytes, content_type: str | None = None) -> None:
        self._rasterized = content_type == SVG_CONTENT_TYPE
        if self._rasterized:
            image_data = _rasterize_svg(image_data)
        self._image = Image.open(io.BytesIO(image_data))
        self._source_format = self._image.format or "PNG"
        # Frame iteration moves info along with the current frame
        self._loop = self._image.info.get("loop", 0)
        self._duration = self._image.info.get("duration", 100)
        self._icc_profile = self._image.info.get("icc_profile")

    @property
    def source_format(self) -> str:
        return self._source_format

    def process(
        self,
        decision: OutputDecision,
        *,
        width: int | None = None,
        height: int | None = None,
    ) -> ProcessedImage:
        pillow_format = (
            decision.format.pillow_format if decision.format else self._source_format
        )
        frames = [
            self._transform_frame(frame, width, height, pillow_format)
            for frame in self._frames(pillow_format)
        ]

        save_kwargs: dict = {}
        if decision.quality is not None:
            save_kwargs["quality"] = decision.quality
        if len(frames) > 1:
            save_kwargs.update(
                save_all=True,
                append_images=frames[1:],
                loop=self._loop,
                duration=self._duration,
            )

        buf = io.BytesIO()
        frames[0].save(buf, format=pillow_format, **save_kwargs)
        if decision.format:
            content_type = decision.format.content_type
        else:
            # An SVG kept "as decoded" is now a PNG
            content_type = Image.MIME[pillow_format] if self._rasterized else None
        logger.info(
            "Encoded %s %dx%d (%d frame(s), %d bytes)",
            pillow_format, frames[0].width, frames[0].height, len(frames), buf.tell(),
        )
        return ProcessedImage(data=buf.getvalue(), content_type=content_type)

    def _frames(self, pillow_format: str) -> list[Image.Image]:
        if getattr(self._image, "is_animated", False) and pillow_format in _ANIMATED_FORMATS:
            return [frame.copy() for frame in ImageSequence.Iterator(self._image)]
        return [self._image.copy()]

    def _transform_frame(
        self,
        frame: Image.Image,
        width: int | None,
        height: int | None,
        pillow_format: str,
    ) -> Image.Image:
        # Frame copies drop EXIF, so read the orientation from the source
        if "exif" in self._image.info:
            frame.info["exif"] = self._image.info["exif"]
        frame = ImageOps.exif_transpose(frame)
        if self._icc_profile:
            frame = _to_srgb(frame, self._icc_profile)
        if width or height:
            frame = frame.resize(_target_size(frame, width, height), Image.LANCZOS)
        return _convert_mode(frame, pillow_format)


def _to_srgb(img: Image.Image, icc_profile: bytes) -> Image.Image:
    """Convert pixels from the embedded profile to sRGB and drop the profile."""
    output_mode = _SRGB_OUTPUT_MODES.get(img.mode)
    if output_mode is None:
        return img
    try:
        converted = ImageCms.profileToProfile(
            img,
            ImageCms.ImageCmsProfile(io.BytesIO(icc_profile)),
            _SRGB_PROFILE,
            outputMode=output_mode,
        )
    except (OSError, ImageCms.PyCMSError) as exc:
        logger.warning("Ignoring unusable ICC profile: %s", exc)
        converted = img
    converted.info.pop("icc_profile", None)
    return converted


def _target_size(img: Image.Image, width: int | None, height: int | None) -> tuple[int, int]:
    if width and height:
        return width, height
    if width:
        return width, max(1, round(img.height * width / img.width))
    return max(1, round(img.width * height / img.height)), height


def _convert_mode(img: Image.Image, pillow_format: str) -> Image.Image:
    """Bring the pixel mode into something the target encoder accepts."""
    if pillow_format in _OPAQUE_FORMATS:
        if img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info):
            # Composite onto white background for JPEG
            img = img.convert("RGBA")
            background = Image.new("RGB", img.size, (255, 255, 255))
            background.paste(img, mask=img.split()[-1])
            return background
        if img.mode not in ("RGB", "L"):
            return img.convert("RGB")
        return img
    if pillow_format in ("WEBP", "AVIF") and img.mode not in ("RGB", "RGBA"):
        return img.convert("RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB")
    return img


def _rasterize_svg(svg_data: bytes) -> bytes:
    """Render an SVG document to PNG bytes."""
    # cairosvg loads libcairo on import; only SVG requests pay for it
    import cairosvg

    return cairosvg.svg2png(bytestring=svg_data)
