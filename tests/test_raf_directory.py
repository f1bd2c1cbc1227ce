# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

import struct

import pytest

from builders import build_face_rec, build_raf_directory, size_payload
from rafkit.context import DecodeContext
from rafkit.exceptions import FormatError, TruncatedError
from rafkit.raf_directory import RafDirectoryDecoder, decode_raf_data
from rafkit.raf_tags import RAF_CATALOG, RAF_TAGS


@pytest.fixture
def decoder():
    return RafDirectoryDecoder()


def _values(directory):
    return {entry.display_name: entry.value for entry in directory.entries}


def test_known_tags(decoder):
    data = build_raf_directory([
        (0x100, size_payload(2000, 3000)),
        (0x2ff0, struct.pack('>4H', 302, 512, 302, 700)),
    ])
    directory, _ = decoder.decode_bytes(data)

    assert _values(directory) == {
        'RawImageFullSize': [3000, 2000],
        'WB_GRGBLevels': [302, 512, 302, 700],
    }


def test_unknown_four_byte_payload_is_integer(decoder):
    data = build_raf_directory([(0x9999, struct.pack('>I', 7))])
    directory, _ = decoder.decode_bytes(data)

    entry = directory.entries[0]
    assert entry.value == 7
    assert entry.name is None
    assert entry.display_name == 'Tag0x9999'


def test_unknown_odd_payload_is_blob(decoder):
    data = build_raf_directory([(0x9999, b'\x01\x02\x03')])
    directory, _ = decoder.decode_bytes(data)
    assert directory.entries[0].value == b'\x01\x02\x03'


def test_entry_count_limit(decoder):
    with pytest.raises(FormatError):
        decoder.decode_bytes(build_raf_directory([], count=256))


def test_255_empty_entries_accepted(decoder):
    data = build_raf_directory([(0x9999, b'')] * 255)
    directory, _ = decoder.decode_bytes(data)

    assert len(directory.entries) == 255
    assert all(entry.value == b'' for entry in directory.entries)


def test_truncated_directory(decoder):
    data = build_raf_directory([(0x100, size_payload(1, 2))], count=2)
    with pytest.raises(TruncatedError):
        decoder.decode_bytes(data)


def test_truncated_payload(decoder):
    data = build_raf_directory([(0x100, size_payload(1, 2))])
    with pytest.raises(TruncatedError):
        decoder.decode_bytes(data[:-1])


def test_short_known_payload_is_skipped(decoder):
    data = build_raf_directory([(0x100, b'\x01'), (0x9999, struct.pack('>I', 5))])
    directory, _ = decoder.decode_bytes(data)
    assert [entry.tag_id for entry in directory.entries] == [0x9999]


def test_decode_at_offset(decoder):
    data = b'\xff' * 16 + build_raf_directory([(0x9999, struct.pack('>I', 1))])
    directory, _ = decoder.decode_bytes(data, 16, group='RAF2')

    assert directory.offset == 16
    assert directory.group == 'RAF2'
    assert directory.entries[0].position == 16 + 8


def test_layout_flag_swaps_raw_image_size(decoder):
    data = build_raf_directory([
        (0x130, b'\x80'),
        (0x121, size_payload(2000, 3000)),
    ])
    directory, context = decoder.decode_bytes(data)

    assert context.fuji_layout is True
    assert directory.find(0x121)[0].value == [1500, 4000]


def test_raw_image_size_without_layout(decoder):
    data = build_raf_directory([(0x130, b'\x00'), (0x121, size_payload(2000, 3000))])
    directory, context = decoder.decode_bytes(data)

    assert context.fuji_layout is False
    assert directory.find(0x121)[0].value == [3000, 2000]


def test_layout_flag_carries_across_directories(decoder):
    _, context = decoder.decode_bytes(build_raf_directory([(0x130, b'\x80')]))
    directory, _ = decoder.decode_bytes(build_raf_directory([(0x121, size_payload(2000, 3000))]),
                                        context=context)
    assert directory.entries[0].value == [1500, 4000]


def test_s2pro_raw_image_size(decoder):
    data = build_raf_directory([(0x121, size_payload(1440, 4320))])
    directory, _ = decoder.decode_bytes(data, context=DecodeContext(model='FinePixS2Pro'))
    assert directory.entries[0].value == [2880, 2160]


def test_catalog_prefers_model_variant():
    s2pro = RAF_CATALOG.lookup(0x121, DecodeContext(model='FinePixS2Pro'))
    generic = RAF_CATALOG.lookup(0x121, DecodeContext(model='X-T1'))

    assert s2pro is RAF_TAGS[0x121][0]
    assert generic is RAF_TAGS[0x121][1]
    assert RAF_CATALOG.lookup(0x9999) is None


def test_raf_data_plausible_first_width():
    entries, context = decode_raf_data(struct.pack('>III', 4000, 3000, 9999), DecodeContext())

    assert context.fuji_width == 4000
    assert [(e.name, e.value) for e in entries] == [('RawImageWidth', 4000), ('RawImageHeight', 3000)]


def test_raf_data_implausible_first_width():
    entries, context = decode_raf_data(struct.pack('>III', 12000, 5000, 4000), DecodeContext())

    assert context.fuji_width is None
    assert [(e.name, e.value) for e in entries] == [('RawImageWidth', 5000), ('RawImageHeight', 4000)]


def test_raf_data_with_layout():
    context = DecodeContext().with_layout(0x80)
    entries, _ = decode_raf_data(struct.pack('>III', 4000, 3000, 0), context)
    assert [(e.name, e.value) for e in entries] == [('RawImageWidth', 2000), ('RawImageHeight', 6000)]


def test_raf_data_subdirectory(decoder):
    data = build_raf_directory([(0xc000, struct.pack('>III', 4000, 3000, 0) + b'\x00' * 20)])
    directory, context = decoder.decode_bytes(data)

    entry = directory.entries[0]
    assert entry.name == 'RAFData'
    assert {sub.name: sub.value for sub in entry.sub_entries} == {
        'RawImageWidth': 4000,
        'RawImageHeight': 3000,
    }
    assert context.fuji_width == 4000


def test_face_rec_info_subdirectory(decoder):
    payload = build_face_rec([('Alice', '19800115', 0x04)])
    directory, _ = decoder.decode_bytes(build_raf_directory([(0x4282, payload)]))

    faces = directory.entries[0].faces
    assert [(f.name, f.birthday, f.category_names()) for f in faces] == [
        ('Alice', '1980:01:15', ['Family']),
    ]


def test_find_returns_duplicates_in_order(decoder):
    data = build_raf_directory([(0x9999, struct.pack('>I', 1)), (0x9999, struct.pack('>I', 2))])
    directory, _ = decoder.decode_bytes(data)
    assert [entry.value for entry in directory.find(0x9999)] == [1, 2]
