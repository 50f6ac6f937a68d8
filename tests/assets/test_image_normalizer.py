"""Tests for image normalization before upload."""

from io import BytesIO

import pytest
from PIL import Image

from src.assets.image_processor import ImageNormalizer, NormalizedImage, extension_for_mime
from src.assets.strategies import DEFAULT_CONSTRAINTS, ImageConstraints
from conftest import make_image_bytes


def _open(data: bytes) -> Image.Image:
    return Image.open(BytesIO(data))


@pytest.fixture
def normalizer() -> ImageNormalizer:
    return ImageNormalizer()


class TestPassthrough:
    def test_no_constraints(self, normalizer, png_bytes):
        result = normalizer.normalize(png_bytes, "image/png", None)
        assert isinstance(result, NormalizedImage)
        assert result.data is png_bytes
        assert result.changed is False

    def test_undecodable_bytes(self, normalizer):
        svg = b'<svg xmlns="http://www.w3.org/2000/svg"></svg>'
        result = normalizer.normalize(svg, "image/svg+xml", DEFAULT_CONSTRAINTS)
        assert result.data == svg
        assert result.mime_type == "image/svg+xml"
        assert result.changed is False

    def test_already_within_limits(self, normalizer, png_bytes):
        result = normalizer.normalize(png_bytes, "image/png", DEFAULT_CONSTRAINTS)
        assert result.data == png_bytes
        assert (result.width, result.height) == (64, 48)
        assert result.changed is False


class TestConversion:
    def test_unaccepted_format_becomes_jpeg(self, normalizer):
        data = make_image_bytes(fmt="WEBP")
        result = normalizer.normalize(data, "image/webp", DEFAULT_CONSTRAINTS)
        assert result.mime_type == "image/jpeg"
        assert result.changed is True
        assert _open(result.data).format == "JPEG"

    def test_transparency_is_flattened_onto_white(self, normalizer):
        data = make_image_bytes(color=(0, 0, 0, 0), mode="RGBA")
        jpeg_only = ImageConstraints(accepted_mime_types=("image/jpeg",))
        result = normalizer.normalize(data, "image/png", jpeg_only)
        img = _open(result.data)
        assert img.mode == "RGB"
        r, g, b = img.getpixel((10, 10))
        assert min(r, g, b) > 240


class TestResize:
    def test_downscale_keeps_aspect_ratio(self, normalizer):
        data = make_image_bytes(width=2000, height=1000)
        result = normalizer.normalize(data, "image/png", ImageConstraints(max_width=1440))
        assert (result.width, result.height) == (1440, 720)
        assert result.mime_type == "image/png"
        assert _open(result.data).size == (1440, 720)

    def test_max_height(self, normalizer):
        data = make_image_bytes(width=300, height=900)
        result = normalizer.normalize(data, "image/png", ImageConstraints(max_height=300))
        assert (result.width, result.height) == (100, 300)

    def test_no_upscale(self, normalizer):
        data = make_image_bytes(width=100, height=50)
        result = normalizer.normalize(data, "image/png", ImageConstraints(max_width=1440, max_height=1440))
        assert result.changed is False
        assert (result.width, result.height) == (100, 50)


class TestCompression:
    def test_oversized_png_is_recompressed_as_jpeg(self, normalizer):
        noise = Image.effect_noise((800, 800), 80).convert("RGB")
        buf = BytesIO()
        noise.save(buf, format="PNG")
        data = buf.getvalue()

        limit = ImageConstraints(max_size_mb=0.25)
        assert len(data) > 0.25 * 1024 * 1024
        result = normalizer.normalize(data, "image/png", limit)
        assert result.changed is True
        assert result.mime_type == "image/jpeg"
        assert len(result.data) < len(data)


@pytest.mark.parametrize("mime,ext", [
    ("image/jpeg", "jpg"),
    ("image/png", "png"),
    ("image/webp", "webp"),
    ("application/octet-stream", "jpg"),
])
def test_extension_for_mime(mime, ext):
    assert extension_for_mime(mime) == ext
