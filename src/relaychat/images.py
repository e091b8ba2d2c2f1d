import base64
import io
import logging
from dataclasses import dataclass
from pathlib import Path

from PIL import Image

from relaychat.errors import ImageConversionFailed

logger = logging.getLogger(__name__)

MAX_IMAGE_BYTES = 10_000_000
JPEG_QUALITY = 70
FALLBACK_JPEG_QUALITY = 50
PREVIEW_MAX_SIDE = 256

_JPEG_MODES = {"RGB", "L", "CMYK"}


@dataclass(frozen=True, slots=True)
class EncodedImage:
    data: bytes
    mime_type: str

    def base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.base64()}"


def load_image(path: str | Path) -> Image.Image:
    with Image.open(Path(path).expanduser()) as image:
        image.load()
        return image.copy()


def jpeg_data(image: Image.Image, quality: int) -> bytes | None:
    try:
        if image.mode not in _JPEG_MODES:
            image = image.convert("RGB")
        buffer = io.BytesIO()
        image.save(buffer, format="JPEG", quality=quality)
        return buffer.getvalue()
    except (OSError, ValueError) as e:
        logger.debug(f"JPEG encoding failed at quality {quality}: {e}")
        return None


def png_data(image: Image.Image) -> bytes | None:
    try:
        buffer = io.BytesIO()
        image.save(buffer, format="PNG")
        return buffer.getvalue()
    except (OSError, ValueError) as e:
        logger.debug(f"PNG encoding failed: {e}")
        return None


def encode_image(
    image: Image.Image,
    *,
    max_bytes: int = MAX_IMAGE_BYTES,
    quality: int = JPEG_QUALITY,
    fallback_quality: int = FALLBACK_JPEG_QUALITY,
) -> EncodedImage:
    """Encode an image for inlining in a request.

    JPEG at ``quality`` first, PNG if JPEG fails. An oversized result is
    re-encoded once as JPEG at ``fallback_quality``.
    """
    data = jpeg_data(image, quality)
    mime_type = "image/jpeg"
    if data is None:
        data = png_data(image)
        mime_type = "image/png"
    if data is None:
        logger.error("Failed to convert image to data")
        raise ImageConversionFailed()

    if len(data) <= max_bytes:
        return EncodedImage(data=data, mime_type=mime_type)

    logger.info(f"Image is {len(data)} bytes, retrying at JPEG quality {fallback_quality}")
    compressed = jpeg_data(image, fallback_quality)
    if compressed is None:
        logger.error("Failed to compress image")
        raise ImageConversionFailed()
    if len(compressed) > max_bytes:
        logger.error(f"Image too large even after compression ({len(compressed)} bytes)")
        raise ImageConversionFailed()
    return EncodedImage(data=compressed, mime_type="image/jpeg")


def preview_data(image: Image.Image, max_side: int = PREVIEW_MAX_SIDE) -> bytes | None:
    preview = image.copy()
    preview.thumbnail((max_side, max_side))
    return jpeg_data(preview, JPEG_QUALITY)
