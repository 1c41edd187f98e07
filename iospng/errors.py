class NormalizerError(Exception):
    """Base class for every error raised while normalizing a CgBI PNG."""


class FormatError(NormalizerError):
    """The input byte stream is not a well-formed PNG chunk stream."""


class BadSignatureError(FormatError):
    def __init__(self, found: bytes):
        self.found = bytes(found)
        super().__init__(f"Invalid PNG header: expected 137 80 78 71 13 10 26 10, got {list(self.found)}")


class TruncatedError(FormatError):
    def __init__(self, index: int, offset: int, needed: int, available: int):
        self.index = index
        self.offset = offset
        self.needed = needed
        self.available = available
        super().__init__(
            f"Chunk #{index} at offset {offset} needs {needed} bytes but only {available} remain"
        )


class ChecksumError(FormatError):
    def __init__(self, index: int, offset: int, chunk_type: str, expected: int, actual: int):
        self.index = index
        self.offset = offset
        self.chunk_type = chunk_type
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"CRC mismatch in {chunk_type} chunk #{index} at offset {offset}: "
            f"stored 0x{expected:08x}, computed 0x{actual:08x}"
        )


class MissingEndError(FormatError):
    """No IEND chunk terminates the stream."""


class MissingHeaderError(NormalizerError):
    """No IHDR chunk precedes the image data."""


class UnsupportedImageError(NormalizerError):
    """The IHDR declares a layout other than 8-bit, non-interlaced RGBA."""


class NotCgBIError(NormalizerError):
    """The input has no CgBI chunk, so it is already a standard PNG."""


class TranscodeError(NormalizerError):
    """The pixel data could not be transcoded."""


class DecodeError(TranscodeError):
    """The raw deflate stream is corrupt or too short for the image."""


class EncodeError(TranscodeError):
    """zlib failed while recompressing the reordered raster."""


class ConfigError(NormalizerError):
    """A configuration value is missing or malformed."""


class OutputVerificationError(NormalizerError):
    """The normalized PNG could not be decoded by Pillow."""
