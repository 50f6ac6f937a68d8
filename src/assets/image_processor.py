"""Image normalization before upload.

Brings image bytes within a platform's constraints:
    1. Convert to JPEG when the MIME type is not accepted
       (transparent areas flattened onto white)
    2. Resize within max width/height (aspect ratio preserved, no upscaling)
    3. Step JPEG quality down until the file fits the size limit

Bytes that already satisfy the constraints, or that Pillow cannot decode
(SVG, corrupt data), are passed through untouched.

Usage:
    from src.assets.image_processor import ImageNormalizer

    normalizer = ImageNormalizer()
    result = normalizer.normalize(data, "image/webp", strategy.constraints)
    # result.data → bytes, result.mime_type → "image/jpeg"
"""

from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from typing import Optional

from PIL import Image, UnidentifiedImageError

from src.common.logging import setup_logging

from .strategies import ImageConstraints

logger = setup_logging(module_name="assets.image_processor")

# --- Configuration ---

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/png": "PNG",
    "image/gif": "GIF",
    "image/webp": "WEBP",
}

_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/avif": "avif",
}

QUALITY_STEPS = (90, 80, 70, 60, 50, 40)


def extension_for_mime(mime_type: str) -> str:
    return _EXTENSIONS.get(mime_type, "jpg")


@dataclass
class NormalizedImage:
    """Result of normalizing a single image."""

    data: bytes
    mime_type: str
    width: int = 0
    height: int = 0
    changed: bool = False


# --- Core normalizer ---


class ImageNormalizer:
    """Converts, down-scales and re-compresses images for upload."""

    def normalize(
        self,
        data: bytes,
        mime_type: str,
        constraints: Optional[ImageConstraints],
    ) -> NormalizedImage:
        """Fit ``data`` within ``constraints``; passthrough when nothing to do."""
        if constraints is None:
            return NormalizedImage(data=data, mime_type=mime_type)

        try:
            img = Image.open(BytesIO(data))
            img.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            logger.debug("Cannot decode %s image, uploading as-is: %s", mime_type, e)
            return NormalizedImage(data=data, mime_type=mime_type)

        max_bytes = int(constraints.max_size_mb * 1024 * 1024) if constraints.max_size_mb else None
        needs_convert = mime_type not in constraints.accepted_mime_types
        needs_resize = self._exceeds_dimensions(img, constraints)
        needs_shrink = max_bytes is not None and len(data) > max_bytes

        if not (needs_convert or needs_resize or needs_shrink):
            return NormalizedImage(
                data=data, mime_type=mime_type, width=img.width, height=img.height,
            )

        # 1. Target format
        target_mime = "image/jpeg" if needs_convert else mime_type
        if target_mime not in _PIL_FORMATS:
            target_mime = "image/jpeg"

        # 2. Resize
        img = self._resize(img, constraints)

        # 3. Encode, stepping quality down for lossy formats
        output = self._encode(img, target_mime)
        if max_bytes is not None and len(output) > max_bytes:
            if target_mime not in ("image/jpeg", "image/webp") and "image/jpeg" in constraints.accepted_mime_types:
                target_mime = "image/jpeg"
            if target_mime in ("image/jpeg", "image/webp"):
                for quality in QUALITY_STEPS:
                    output = self._encode(img, target_mime, quality=quality)
                    if len(output) <= max_bytes:
                        break
            if len(output) > max_bytes:
                logger.warning(
                    "Image still %.2fMB after compression (limit %.2fMB)",
                    len(output) / (1024 * 1024), constraints.max_size_mb,
                )

        logger.debug(
            "Normalized image %s (%d bytes) -> %s (%d bytes, %dx%d)",
            mime_type, len(data), target_mime, len(output), img.width, img.height,
        )
        return NormalizedImage(
            data=output,
            mime_type=target_mime,
            width=img.width,
            height=img.height,
            changed=True,
        )

    # --- Pipeline stages ---

    @staticmethod
    def _exceeds_dimensions(img: Image.Image, constraints: ImageConstraints) -> bool:
        if constraints.max_width and img.width > constraints.max_width:
            return True
        return bool(constraints.max_height and img.height > constraints.max_height)

    def _resize(self, img: Image.Image, constraints: ImageConstraints) -> Image.Image:
        """Resize to fit within max dimensions, preserving aspect ratio.

        Does NOT upscale images smaller than the max dimensions.
        """
        if not self._exceeds_dimensions(img, constraints):
            return img

        max_w = constraints.max_width or img.width
        max_h = constraints.max_height or img.height
        ratio = min(max_w / img.width, max_h / img.height)
        new_w = max(int(img.width * ratio), 1)
        new_h = max(int(img.height * ratio), 1)

        return img.resize((new_w, new_h), Image.LANCZOS)

    def _encode(self, img: Image.Image, mime_type: str, quality: int = 90) -> bytes:
        buf = BytesIO()
        fmt = _PIL_FORMATS[mime_type]
        if fmt == "JPEG":
            self._flatten(img).save(buf, format="JPEG", quality=quality)
        elif fmt == "WEBP":
            img.save(buf, format="WEBP", quality=quality)
        elif fmt == "GIF":
            img.save(buf, format="GIF")
        else:
            img.save(buf, format=fmt, optimize=True)
        return buf.getvalue()

    @staticmethod
    def _flatten(img: Image.Image) -> Image.Image:
        """Drop the alpha channel onto a white background."""
        if img.mode in ("RGBA", "LA") or (img.mode == "P" and "transparency" in img.info):
            rgba = img.convert("RGBA")
            background = Image.new("RGB", rgba.size, (255, 255, 255))
            background.paste(rgba, mask=rgba.split()[-1])
            return background
        if img.mode != "RGB":
            return img.convert("RGB")
        return img
