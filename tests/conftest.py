import struct
import zlib
from typing import List, Optional, Sequence

import pytest

from iospng.chunks import PNG_SIGNATURE, ChunkRecord

# Payload of the CgBI chunk Apple's pngcrush writes for RGBA images
CGBI_PAYLOAD = bytes.fromhex('50002006')


def raw_deflate(data: bytes) -> bytes:
    compressor = zlib.compressobj(zlib.Z_DEFAULT_COMPRESSION, zlib.DEFLATED, -zlib.MAX_WBITS)
    return compressor.compress(data) + compressor.flush()


def ihdr_payload(width: int, height: int, bit_depth: int = 8, color_type: int = 6, interlace: int = 0) -> bytes:
    return struct.pack('>iiBBBBB', width, height, bit_depth, color_type, 0, 0, interlace)


def bgra_raster(width: int, height: int, filters: Optional[Sequence[int]] = None) -> bytes:
    """Deterministic raster: pixel (x, y) is B=x, G=y, R=x+y+1, A=0xFF-x."""
    filters = filters or [0] * height
    rows = []
    for y in range(height):
        row = bytearray([filters[y]])
        for x in range(width):
            row += bytes([x & 0xFF, y & 0xFF, (x + y + 1) & 0xFF, (0xFF - x) & 0xFF])
        rows.append(bytes(row))
    return b''.join(rows)


def build_png(chunks: List[ChunkRecord]) -> bytes:
    return PNG_SIGNATURE + b''.join(chunk.encode() for chunk in chunks)


def cgbi_chunks(width: int, height: int, raster: Optional[bytes] = None, idat_parts: int = 1,
                ancillary: Sequence[ChunkRecord] = (), header: Optional[bytes] = None) -> List[ChunkRecord]:
    raster = bgra_raster(width, height) if raster is None else raster
    compressed = raw_deflate(raster)
    step = max(1, -(-len(compressed) // idat_parts))
    idats = [ChunkRecord.build(b'IDAT', compressed[i:i + step]) for i in range(0, len(compressed), step)]
    return (
        [ChunkRecord.build(b'CgBI', CGBI_PAYLOAD),
         ChunkRecord.build(b'IHDR', header if header is not None else ihdr_payload(width, height))]
        + list(ancillary)
        + idats
        + [ChunkRecord.build(b'IEND', b'')]
    )


@pytest.fixture
def make_cgbi():
    def _make(width: int = 3, height: int = 2, **kwargs) -> bytes:
        return build_png(cgbi_chunks(width, height, **kwargs))
    return _make


@pytest.fixture
def text_chunk() -> ChunkRecord:
    return ChunkRecord.build(b'tEXt', b'Software\x00Xcode')


@pytest.fixture
def cgbi_file(tmp_path, make_cgbi):
    path = tmp_path / "AppIcon60x60@2x.png"
    path.write_bytes(make_cgbi(4, 4, idat_parts=3))
    return path
