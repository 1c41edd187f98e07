import logging
from typing import List, Optional

from .chunks import ChunkRecord, ImageSize, PngImage, parse, serialize
from .config import NormalizerConfig
from .errors import MissingEndError, MissingHeaderError, NotCgBIError, TranscodeError, UnsupportedImageError
from .transcoder import transcode
from .verify import verify_png


class _ChunkPlan:
    """Result of the classification pass: what to keep and what to transcode."""

    def __init__(self):
        self.kept: List[ChunkRecord] = []
        self.idat_data = bytearray()
        self.idat_count = 0
        self.first_idat_index: Optional[int] = None
        self.end_index: Optional[int] = None
        self.dropped: List[str] = []


class Normalizer:
    def __init__(self, config: Optional[NormalizerConfig] = None):
        self.config = config or NormalizerConfig()
        self.logger = logging.getLogger(self.__class__.__name__)

    def normalize(self, image: PngImage) -> PngImage:
        """Turn a CgBI image into a standard PNG image.

        Apple-specific chunks are dropped, every IDAT payload is merged and
        transcoded into a single IDAT placed right before IEND, and all other
        chunks keep their relative order. ``image`` itself is left untouched.
        """
        if not image.is_cgbi and self.config.require_cgbi:
            raise NotCgBIError("No CgBI chunk found; the image is already a standard PNG")

        size = self._check_header(image)
        plan = self._classify(image)
        if plan.end_index is None:
            raise MissingEndError("No IEND chunk found; image data would be lost")

        try:
            idat = transcode(bytes(plan.idat_data), size, self.config.compression_level)
        except TranscodeError as e:
            raise type(e)(
                f"{e} (data merged from {plan.idat_count} IDAT chunk(s), first at chunk #{plan.first_idat_index})"
            ) from e
        chunks = plan.kept[:plan.end_index] + [idat] + plan.kept[plan.end_index:]

        self.logger.info(
            f"Normalized {size.width}x{size.height} image: merged {plan.idat_count} IDAT chunk(s), "
            f"dropped {', '.join(plan.dropped) or 'nothing'}"
        )
        return PngImage(chunks)

    def _check_header(self, image: PngImage) -> ImageSize:
        if image.size is None:
            raise MissingHeaderError("No IHDR chunk found; image size is unknown")

        header = image.header
        if header is None or not header.is_supported:
            raise UnsupportedImageError(
                f"Only 8-bit non-interlaced RGBA images are supported, IHDR declares {header or image.size}"
            )

        types = image.chunk_types()
        if 'IDAT' in types and types.index('IDAT') < types.index('IHDR'):
            raise MissingHeaderError("IDAT chunk appears before IHDR")
        return image.size

    def _classify(self, image: PngImage) -> _ChunkPlan:
        plan = _ChunkPlan()
        for index, chunk in enumerate(image):
            chunk = chunk.copy()
            if chunk.type_tag == b'CgBI':
                plan.dropped.append(chunk.chunk_type)
            elif chunk.type_tag == b'IDAT':
                if plan.end_index is not None:
                    self.logger.warning(f"Ignoring IDAT chunk #{index} after IEND")
                    plan.dropped.append(chunk.chunk_type)
                    continue
                if plan.first_idat_index is None:
                    plan.first_idat_index = index
                plan.idat_data += chunk.payload
                plan.idat_count += 1
            else:
                if chunk.type_tag == b'IEND' and plan.end_index is None:
                    plan.end_index = len(plan.kept)
                plan.kept.append(chunk)
        return plan


def normalize(image: PngImage, config: Optional[NormalizerConfig] = None) -> PngImage:
    return Normalizer(config).normalize(image)


def normalize_bytes(data: bytes, config: Optional[NormalizerConfig] = None) -> bytes:
    """Convert a whole CgBI PNG file image into a standard PNG file image."""
    config = config or NormalizerConfig()
    image = parse(data, verify_crc=config.verify_crc)
    output = serialize(normalize(image, config))
    if config.verify_output:
        verify_png(output)
    return output
