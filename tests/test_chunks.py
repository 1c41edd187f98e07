import struct
import zlib

import pytest

from conftest import build_png, cgbi_chunks, ihdr_payload
from iospng.chunks import PNG_SIGNATURE, ChunkRecord, ImageHeader, ImageSize, PngImage, is_cgbi, parse, serialize
from iospng.errors import BadSignatureError, ChecksumError, FormatError, TruncatedError


def test_build_computes_crc_over_type_and_payload():
    chunk = ChunkRecord.build(b'tEXt', b'Title\x00icon')
    assert chunk.checksum == zlib.crc32(b'tEXtTitle\x00icon')
    assert chunk.has_valid_checksum()
    assert chunk.encoded_length == 12 + len(b'Title\x00icon')


def test_encode_layout():
    chunk = ChunkRecord.build(b'IEND', b'')
    encoded = chunk.encode()
    assert encoded[:4] == b'\x00\x00\x00\x00'
    assert encoded[4:8] == b'IEND'
    assert struct.unpack('>I', encoded[8:12])[0] == 0xAE426082


def test_type_tag_must_be_four_bytes():
    with pytest.raises(ValueError):
        ChunkRecord(b'IDA', b'', 0)


def test_copy_is_equal_but_independent():
    chunk = ChunkRecord.build(b'IDAT', b'\x01\x02\x03')
    copied = chunk.copy()
    assert copied == chunk
    assert copied is not chunk
    assert copied.payload is not chunk.payload


def test_parse_reads_chunks_in_order(make_cgbi):
    image = parse(make_cgbi(2, 2, idat_parts=2))
    assert image.chunk_types()[:2] == ['CgBI', 'IHDR']
    assert image.chunk_types()[-1] == 'IEND'
    assert len(image.find_all(b'IDAT')) == 2
    assert image.size == ImageSize(2, 2)
    assert image.is_cgbi


def test_parse_reads_past_iend():
    trailing = ChunkRecord.build(b'tEXt', b'after\x00end')
    data = build_png([ChunkRecord.build(b'IHDR', ihdr_payload(1, 1)), ChunkRecord.build(b'IEND', b''), trailing])
    assert parse(data).chunk_types() == ['IHDR', 'IEND', 'tEXt']


def test_parse_signature_only_is_empty_image():
    image = parse(PNG_SIGNATURE)
    assert len(image) == 0
    assert image.size is None


def test_parse_rejects_bad_signature():
    with pytest.raises(BadSignatureError):
        parse(b'GIF89a' + b'\x00' * 20)


def test_parse_rejects_declared_length_past_end(make_cgbi):
    data = make_cgbi(2, 2)
    with pytest.raises(TruncatedError) as excinfo:
        parse(data[:-3])
    assert excinfo.value.index == len(parse(data)) - 1


def test_parse_rejects_partial_header():
    data = build_png([ChunkRecord.build(b'IEND', b'')]) + b'\x00\x00\x00'
    with pytest.raises(TruncatedError) as excinfo:
        parse(data)
    assert excinfo.value.offset == len(PNG_SIGNATURE) + 12


def test_parse_rejects_huge_length():
    data = PNG_SIGNATURE + struct.pack('>I', 0xFFFFFFFF) + b'IDAT' + b'\x00' * 8
    with pytest.raises(TruncatedError):
        parse(data)


def test_crc_not_checked_by_default():
    bad = ChunkRecord(b'tEXt', b'a\x00b', 0x12345678)
    data = build_png([ChunkRecord.build(b'IHDR', ihdr_payload(1, 1)), bad])
    assert parse(data).find(b'tEXt').checksum == 0x12345678


def test_crc_checked_when_requested():
    bad = ChunkRecord(b'tEXt', b'a\x00b', 0x12345678)
    data = build_png([ChunkRecord.build(b'IHDR', ihdr_payload(1, 1)), bad])
    with pytest.raises(ChecksumError) as excinfo:
        parse(data, verify_crc=True)
    assert excinfo.value.index == 1
    assert excinfo.value.chunk_type == 'tEXt'


def test_serialize_round_trip(make_cgbi, text_chunk):
    data = make_cgbi(5, 3, idat_parts=4, ancillary=[text_chunk])
    assert serialize(parse(data)) == data


def test_serialize_writes_whatever_it_is_given():
    bogus = ChunkRecord(b'zzzz', b'payload', 0)
    assert serialize(PngImage([bogus])) == PNG_SIGNATURE + bogus.encode()


def test_image_header_decoding():
    header = ImageHeader.from_ihdr(ihdr_payload(57, 120))
    assert header.size == ImageSize(57, 120)
    assert header.is_supported
    assert not ImageHeader.from_ihdr(ihdr_payload(57, 120, color_type=2)).is_supported
    assert not ImageHeader.from_ihdr(ihdr_payload(57, 120, interlace=1)).is_supported
    assert not ImageHeader.from_ihdr(ihdr_payload(57, 120, bit_depth=16)).is_supported


def test_image_size_is_signed():
    assert ImageSize.from_ihdr(struct.pack('>II', 0xFFFFFFFF, 1)) == ImageSize(-1, 1)
    assert ImageSize(3, 2).raster_length == 2 * (1 + 3 * 4)


def test_short_ihdr_is_a_format_error():
    with pytest.raises(FormatError) as excinfo:
        parse(build_png([ChunkRecord.build(b'IHDR', b'\x00\x00')]))
    assert "IHDR chunk #0" in str(excinfo.value)


def test_is_cgbi(make_cgbi):
    data = make_cgbi()
    assert is_cgbi(data)
    standard = build_png([c for c in cgbi_chunks(1, 1) if c.type_tag != b'CgBI'])
    assert not is_cgbi(standard)
    assert not is_cgbi(b'not a png')
    assert not is_cgbi(PNG_SIGNATURE + b'\x00\x00')
