import logging
import struct
import zlib
from dataclasses import dataclass
from typing import Iterator, List, NamedTuple, Optional, Tuple

from .errors import BadSignatureError, ChecksumError, FormatError, TruncatedError

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b'\x89PNG\r\n\x1a\n'

# Wire layout of one chunk: length (0..4), type tag (4..8), payload, crc
CHUNK_HEADER_SIZE = 8
CHUNK_CRC_SIZE = 4
CHUNK_OVERHEAD = CHUNK_HEADER_SIZE + CHUNK_CRC_SIZE

BYTES_PER_PIXEL = 4
COLOR_TYPE_RGBA = 6


class ImageSize(NamedTuple):
    width: int
    height: int

    @classmethod
    def from_ihdr(cls, payload: bytes) -> 'ImageSize':
        if len(payload) < 8:
            raise FormatError(f"IHDR payload too short: {len(payload)} bytes")
        width, height = struct.unpack_from('>ii', payload, 0)
        return cls(width, height)

    @property
    def row_stride(self) -> int:
        """Bytes per scanline, filter byte included."""
        return 1 + self.width * BYTES_PER_PIXEL

    @property
    def raster_length(self) -> int:
        return self.height * self.row_stride


@dataclass(frozen=True)
class ImageHeader:
    width: int
    height: int
    bit_depth: int
    color_type: int
    compression: int
    filter_method: int
    interlace: int

    @classmethod
    def from_ihdr(cls, payload: bytes) -> 'ImageHeader':
        if len(payload) < 13:
            raise FormatError(f"IHDR payload too short: {len(payload)} bytes")
        return cls(*struct.unpack_from('>iiBBBBB', payload, 0))

    @property
    def size(self) -> ImageSize:
        return ImageSize(self.width, self.height)

    @property
    def is_supported(self) -> bool:
        return (self.bit_depth == 8 and self.color_type == COLOR_TYPE_RGBA
                and self.interlace == 0 and self.width > 0 and self.height > 0)


@dataclass(frozen=True)
class ChunkRecord:
    type_tag: bytes
    payload: bytes
    checksum: int

    def __post_init__(self):
        if len(self.type_tag) != 4:
            raise ValueError(f"Chunk type must be 4 bytes, got {self.type_tag!r}")

    @classmethod
    def build(cls, type_tag: bytes, payload: bytes) -> 'ChunkRecord':
        """Create a record whose checksum is computed from its content."""
        return cls(bytes(type_tag), bytes(payload), zlib.crc32(payload, zlib.crc32(type_tag)))

    @property
    def chunk_type(self) -> str:
        return self.type_tag.decode('ascii', errors='replace')

    @property
    def encoded_length(self) -> int:
        return CHUNK_OVERHEAD + len(self.payload)

    def compute_checksum(self) -> int:
        return zlib.crc32(self.payload, zlib.crc32(self.type_tag))

    def has_valid_checksum(self) -> bool:
        return self.compute_checksum() == self.checksum

    def copy(self) -> 'ChunkRecord':
        return ChunkRecord(bytes(bytearray(self.type_tag)), bytes(bytearray(self.payload)), self.checksum)

    def encode(self) -> bytes:
        return b''.join((
            struct.pack('>I', len(self.payload)),
            self.type_tag,
            self.payload,
            struct.pack('>I', self.checksum),
        ))


class PngImage:
    """An ordered, read-only sequence of chunks."""

    def __init__(self, chunks):
        self._chunks: Tuple[ChunkRecord, ...] = tuple(chunks)
        self._header: Optional[ImageHeader] = None
        self._size: Optional[ImageSize] = None
        index, ihdr = next(((i, c) for i, c in enumerate(self._chunks) if c.type_tag == b'IHDR'), (None, None))
        if ihdr is not None:
            try:
                self._size = ImageSize.from_ihdr(ihdr.payload)
            except FormatError as e:
                raise FormatError(f"IHDR chunk #{index}: {e}") from e
            if len(ihdr.payload) >= 13:
                self._header = ImageHeader.from_ihdr(ihdr.payload)

    @property
    def chunks(self) -> Tuple[ChunkRecord, ...]:
        return self._chunks

    @property
    def size(self) -> Optional[ImageSize]:
        return self._size

    @property
    def header(self) -> Optional[ImageHeader]:
        return self._header

    @property
    def is_cgbi(self) -> bool:
        return self.has_chunk(b'CgBI')

    def __iter__(self) -> Iterator[ChunkRecord]:
        return iter(self._chunks)

    def __len__(self) -> int:
        return len(self._chunks)

    def __eq__(self, other) -> bool:
        if not isinstance(other, PngImage):
            return NotImplemented
        return self._chunks == other._chunks

    def __repr__(self) -> str:
        return f"PngImage(size={self._size}, chunks={self.chunk_types()})"

    def chunk_types(self) -> List[str]:
        return [chunk.chunk_type for chunk in self._chunks]

    def find(self, type_tag: bytes) -> Optional[ChunkRecord]:
        return next((chunk for chunk in self._chunks if chunk.type_tag == type_tag), None)

    def find_all(self, type_tag: bytes) -> List[ChunkRecord]:
        return [chunk for chunk in self._chunks if chunk.type_tag == type_tag]

    def has_chunk(self, type_tag: bytes) -> bool:
        return self.find(type_tag) is not None


def iter_chunks(buffer: bytes, verify_crc: bool = False) -> Iterator[ChunkRecord]:
    """Yield the chunk records that follow the PNG signature in ``buffer``.

    Every length field is bounds-checked before slicing. The loop runs until
    the buffer is exhausted, so data after an IEND chunk is still read.
    """
    if buffer[:len(PNG_SIGNATURE)] != PNG_SIGNATURE:
        raise BadSignatureError(buffer[:len(PNG_SIGNATURE)])

    data = memoryview(buffer)
    offset = len(PNG_SIGNATURE)
    index = 0
    while offset < len(data):
        remaining = len(data) - offset
        if remaining < CHUNK_HEADER_SIZE:
            raise TruncatedError(index, offset, CHUNK_HEADER_SIZE, remaining)

        length = struct.unpack_from('>I', data, offset)[0]
        type_tag = bytes(data[offset + 4:offset + 8])
        if remaining < CHUNK_OVERHEAD + length:
            raise TruncatedError(index, offset, CHUNK_OVERHEAD + length, remaining)

        payload_start = offset + CHUNK_HEADER_SIZE
        payload_end = payload_start + length
        payload = bytes(data[payload_start:payload_end])
        checksum = struct.unpack_from('>I', data, payload_end)[0]
        chunk = ChunkRecord(type_tag, payload, checksum)

        if verify_crc and not chunk.has_valid_checksum():
            raise ChecksumError(index, offset, chunk.chunk_type, checksum, chunk.compute_checksum())

        logger.debug(f"Chunk #{index} {chunk.chunk_type} at offset {offset}, {length} bytes")
        yield chunk

        offset = payload_end + CHUNK_CRC_SIZE
        index += 1


def parse(buffer: bytes, verify_crc: bool = False) -> PngImage:
    """Parse a complete PNG file image (signature included) into a PngImage."""
    return PngImage(iter_chunks(buffer, verify_crc=verify_crc))


def serialize(image: PngImage) -> bytes:
    """Write ``image`` back out verbatim, prefixed with the PNG signature."""
    return PNG_SIGNATURE + b''.join(chunk.encode() for chunk in image)


def is_cgbi(buffer: bytes) -> bool:
    """Check if the PNG is iOS-optimized by looking for a CgBI chunk."""
    try:
        return any(chunk.type_tag == b'CgBI' for chunk in iter_chunks(buffer))
    except FormatError:
        return False
