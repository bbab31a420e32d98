import io

from PIL import Image, ImageCms

from image_transform import processor as processor_module
from image_transform.operations import OutputDecision, OutputFormat
from image_transform.processor import ImageProcessor
from tests.conftest import SAMPLE_SVG, make_image, make_noise_image


def _open(data: bytes) -> Image.Image:
    return Image.open(io.BytesIO(data))


def test_resize_width_keeps_aspect_ratio() -> None:
    result = ImageProcessor(make_image()).process(OutputDecision(None), width=100)
    img = _open(result.data)
    assert img.size == (100, 50)
    assert img.format == "JPEG"
    assert result.content_type is None


def test_resize_both_dimensions_is_exact() -> None:
    result = ImageProcessor(make_image()).process(OutputDecision(OutputFormat.PNG), width=30, height=30)
    img = _open(result.data)
    assert img.size == (30, 30)
    assert img.format == "PNG"
    assert result.content_type == "image/png"


def test_no_dimensions_keeps_size() -> None:
    result = ImageProcessor(make_image(size=(64, 48))).process(OutputDecision(OutputFormat.WEBP, 80))
    img = _open(result.data)
    assert img.size == (64, 48)
    assert img.format == "WEBP"


def test_exif_orientation_is_applied() -> None:
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90° clockwise
    data = make_image(size=(200, 100), exif=exif)
    result = ImageProcessor(data).process(OutputDecision(None))
    assert _open(result.data).size == (100, 200)


def test_transparent_png_to_jpeg() -> None:
    data = make_image("PNG", mode="RGBA")
    result = ImageProcessor(data).process(OutputDecision(OutputFormat.JPEG, 70))
    img = _open(result.data)
    assert img.format == "JPEG"
    assert img.mode == "RGB"


def test_animated_gif_keeps_frames_as_webp() -> None:
    frames = [Image.new("RGB", (40, 40), color) for color in ("red", "green", "blue")]
    buf = io.BytesIO()
    frames[0].save(buf, format="GIF", save_all=True, append_images=frames[1:], duration=50, loop=0)

    result = ImageProcessor(buf.getvalue()).process(OutputDecision(OutputFormat.WEBP), width=20)
    img = _open(result.data)
    assert img.format == "WEBP"
    assert img.n_frames == 3
    assert img.size == (20, 20)


def test_svg_is_rasterized_before_decoding(monkeypatch) -> None:
    seen = []

    def fake_rasterize(svg: bytes) -> bytes:
        seen.append(svg)
        return make_image("PNG", size=(50, 50))

    monkeypatch.setattr(processor_module, "_rasterize_svg", fake_rasterize)
    result = ImageProcessor(b"<svg/>", "image/svg+xml").process(OutputDecision(OutputFormat.PNG), width=10)
    assert seen == [b"<svg/>"]
    assert _open(result.data).size == (10, 10)


def test_lower_quality_encodes_smaller() -> None:
    source = make_noise_image()
    for fmt in (OutputFormat.JPEG, OutputFormat.WEBP):
        low = ImageProcessor(source).process(OutputDecision(fmt, 10)).data
        high = ImageProcessor(source).process(OutputDecision(fmt, 95)).data
        assert len(low) < len(high)


def _srgb_icc() -> bytes:
    return ImageCms.ImageCmsProfile(ImageCms.createProfile("sRGB")).tobytes()


def test_embedded_profile_is_converted_to_srgb(monkeypatch) -> None:
    calls = []
    real_convert = ImageCms.profileToProfile

    def recording_convert(im, *args, **kwargs):
        calls.append(kwargs.get("outputMode"))
        return real_convert(im, *args, **kwargs)

    monkeypatch.setattr(ImageCms, "profileToProfile", recording_convert)
    source = make_image(size=(50, 50), icc_profile=_srgb_icc())
    assert _open(source).info.get("icc_profile")

    result = ImageProcessor(source).process(OutputDecision(OutputFormat.PNG), width=25)
    img = _open(result.data)
    assert calls == ["RGB"]
    assert "icc_profile" not in img.info
    r, g, b = img.convert("RGB").getpixel((12, 12))
    assert abs(r - 200) <= 4 and abs(g - 30) <= 4 and abs(b - 30) <= 4


def test_unreadable_profile_is_ignored(caplog) -> None:
    source = make_image(size=(20, 20), icc_profile=b"not a profile")
    result = ImageProcessor(source).process(OutputDecision(OutputFormat.JPEG, 80))
    assert _open(result.data).size == (20, 20)
    assert "Ignoring unusable ICC profile" in caplog.text


def test_svg_rasterized_by_cairosvg(cairosvg_available) -> None:
    result = ImageProcessor(SAMPLE_SVG, "image/svg+xml").process(OutputDecision(None))
    img = _open(result.data)
    assert img.format == "PNG"
    assert img.size == (40, 20)
    assert result.content_type == "image/png"
