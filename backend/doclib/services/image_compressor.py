"""Image recompression for subject images using Pillow."""

import base64
import io
import logging

from PIL import Image, UnidentifiedImageError

from doclib.errors import ImageDecodeError
from doclib.services.file_storage import decode_data_url

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1200  # Max long side in px

# JPEG quality in percent: start at 90, step down by 10, stop at 10
START_QUALITY = 90
QUALITY_STEP = 10
MIN_QUALITY = 10


def open_image(data_url: str) -> Image.Image:
    """
    Decode a base64 image payload into a Pillow Image in RGB mode.

    Raises:
        ImageDecodeError: If the payload is not a readable image
    """
    try:
        data, _ = decode_data_url(data_url)
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise ImageDecodeError(f"Could not decode image: {e}") from e

    if img.mode != "RGB":
        img = img.convert("RGB")
    return img


def target_size(width: int, height: int, max_dimension: int = MAX_DIMENSION) -> tuple[int, int]:
    """Scale so the longer side fits ``max_dimension``, keeping aspect ratio. Never upscales."""
    if width > height and width > max_dimension:
        height = height * max_dimension / width
        width = max_dimension
    elif height > max_dimension:
        width = width * max_dimension / height
        height = max_dimension
    return max(int(width), 1), max(int(height), 1)


def encode_jpeg(img: Image.Image, quality: int) -> str:
    """Encode a Pillow Image as a JPEG data URL."""
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=quality)
    return "data:image/jpeg;base64," + base64.b64encode(buf.getvalue()).decode("ascii")


class ImageCompressor:
    """Downscales and re-encodes images until they fit a size budget."""

    def __init__(self, max_dimension: int = MAX_DIMENSION):
        self.max_dimension = max_dimension

    def compress(self, data_url: str, max_bytes: int) -> str:
        """
        Recompress an image payload as JPEG.

        Quality starts at 0.9 and drops by 0.1 while the encoded data URL is
        longer than ``max_bytes``. At quality 0.1 the result is returned even
        if it is still too large.

        Args:
            data_url: Base64 image, usually a data: URL
            max_bytes: Size budget for the encoded data URL

        Returns:
            JPEG data URL

        Raises:
            ImageDecodeError: If the input is not a readable image
        """
        img = open_image(data_url)
        size = target_size(img.width, img.height, self.max_dimension)
        if size != img.size:
            img = img.resize(size, Image.Resampling.LANCZOS)

        quality = START_QUALITY
        encoded = self._encode(img, quality)
        while len(encoded) > max_bytes and quality > MIN_QUALITY:
            quality -= QUALITY_STEP
            encoded = self._encode(img, quality)

        logger.debug(
            "Compressed image to %dx%d at quality %d (%d chars)", size[0], size[1], quality, len(encoded)
        )
        return encoded

    def _encode(self, img: Image.Image, quality: int) -> str:
        return encode_jpeg(img, quality)
