import io
import logging
from typing import Tuple

from PIL import Image, UnidentifiedImageError

from .errors import OutputVerificationError

logger = logging.getLogger(__name__)


def verify_png(data: bytes) -> Tuple[int, int]:
    """Decode ``data`` with Pillow and return its (width, height)."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format != 'PNG':
                raise OutputVerificationError(f"Expected a PNG image, Pillow found {img.format}")
            img.load()
            logger.debug(f"Verified {img.format} {img.mode} image of {img.size[0]}x{img.size[1]}")
            return img.size
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, SyntaxError, ValueError) as e:
        raise OutputVerificationError(f"Pillow could not decode the normalized PNG: {e}") from e
