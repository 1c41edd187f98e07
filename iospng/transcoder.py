"""Pixel data transcoding for CgBI images.

Apple stores IDAT data as raw deflate (no zlib header or Adler-32 trailer)
with every pixel in BGRA order. ``transcode`` inflates that stream, swaps the
blue and red bytes of each pixel while keeping the scanline layout, and
deflates the result again with a standard zlib wrapper.
"""
import logging
import zlib
from typing import Optional

from .chunks import BYTES_PER_PIXEL, ChunkRecord, ImageSize
from .errors import DecodeError, EncodeError

logger = logging.getLogger(__name__)


def inflate_raw(compressed: bytes, max_length: Optional[int] = None) -> bytes:
    """Decompress a headerless deflate stream.

    With ``max_length`` set, inflation stops once that many bytes are
    produced and the rest of the stream is ignored, so memory stays bounded
    by the size the IHDR declares.
    """
    decompressor = zlib.decompressobj(-zlib.MAX_WBITS)
    try:
        if max_length is None:
            raster = decompressor.decompress(compressed)
        else:
            raster = decompressor.decompress(compressed, max_length + 1)
    except zlib.error as e:
        raise DecodeError(f"Corrupt raw deflate stream in {len(compressed)} bytes of IDAT data: {e}") from e
    if max_length is not None and len(raster) > max_length:
        logger.warning(f"Raw deflate stream inflates past the declared {max_length} raster bytes, ignoring the rest")
        return raster[:max_length]
    if not decompressor.eof:
        raise DecodeError(f"Raw deflate stream ended early after {len(compressed)} bytes of IDAT data")
    if decompressor.unused_data:
        logger.warning(f"Ignoring {len(decompressor.unused_data)} bytes after end of deflate stream")
    return raster


def reorder_channels(raster: bytes, size: ImageSize) -> bytes:
    """Turn BGRA scanlines into RGBA scanlines.

    The filter byte leading each row is kept as is. Running this twice
    restores the input, but applying ``transcode`` twice does not, since the
    second pass would treat zlib data as raw deflate.
    """
    if size.width < 0 or size.height < 0:
        raise ValueError(f"Invalid image size {size.width}x{size.height}")
    stride = size.row_stride
    expected = size.raster_length
    if len(raster) < expected:
        raise DecodeError(
            f"Decompressed raster holds {len(raster)} bytes, "
            f"{size.width}x{size.height} RGBA needs {expected}"
        )
    if len(raster) > expected:
        logger.warning(f"Dropping {len(raster) - expected} trailing raster bytes")

    out = bytearray(raster[:expected])
    for row_start in range(0, expected, stride):
        pixels_start = row_start + 1
        pixels_end = row_start + stride
        blue = out[pixels_start:pixels_end:BYTES_PER_PIXEL]
        out[pixels_start:pixels_end:BYTES_PER_PIXEL] = out[pixels_start + 2:pixels_end:BYTES_PER_PIXEL]
        out[pixels_start + 2:pixels_end:BYTES_PER_PIXEL] = blue
    return bytes(out)


def deflate_zlib(raster: bytes, level: int = zlib.Z_DEFAULT_COMPRESSION) -> bytes:
    try:
        return zlib.compress(raster, level)
    except (zlib.error, MemoryError) as e:
        raise EncodeError(f"zlib compression failed: {e}") from e


def transcode(compressed: bytes, size: ImageSize, level: int = zlib.Z_DEFAULT_COMPRESSION) -> ChunkRecord:
    """Build the single replacement IDAT chunk for a CgBI image."""
    raster = inflate_raw(compressed, max(size.raster_length, 0))
    logger.debug(f"Inflated {len(compressed)} bytes of IDAT data into {len(raster)} raster bytes")
    payload = deflate_zlib(reorder_channels(raster, size), level)
    idat = ChunkRecord.build(b'IDAT', payload)
    logger.debug(f"New IDAT: {len(payload)} bytes, crc 0x{idat.checksum:08x}")
    return idat
