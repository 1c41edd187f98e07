"""Convert Apple CgBI ("iOS-optimized") PNG files into standard PNG files."""
from .chunks import PNG_SIGNATURE, ChunkRecord, ImageHeader, ImageSize, PngImage, is_cgbi, parse, serialize
from .config import NormalizerConfig, load_config
from .errors import (
    BadSignatureError,
    ChecksumError,
    ConfigError,
    DecodeError,
    EncodeError,
    FormatError,
    MissingEndError,
    MissingHeaderError,
    NormalizerError,
    NotCgBIError,
    OutputVerificationError,
    TranscodeError,
    TruncatedError,
    UnsupportedImageError,
)
from .normalizer import Normalizer, normalize, normalize_bytes
from .transcoder import reorder_channels, transcode
from .verify import verify_png

__version__ = '0.1.0'
