# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

import struct

from builders import build_face_rec
from rafkit.face_rec import FaceCategory, decode_face_records, format_birthday


def test_two_faces_then_terminator():
    payload = build_face_rec([
        ('Alice', '19800115', 0x02 | 0x08),
        ('Bob', '20011231', 0x00),
    ])
    faces = decode_face_records(payload)

    assert [face.index for face in faces] == [1, 2]
    assert faces[0].name == 'Alice'
    assert faces[0].birthday == '1980:01:15'
    assert faces[0].category == FaceCategory.PARTNER | FaceCategory.FRIEND
    assert faces[0].category_names() == ['Partner', 'Friend']
    assert faces[1].name == 'Bob'
    assert faces[1].birthday == '2001:12:31'
    assert faces[1].category_names() == []


def test_records_after_zero_length_are_ignored():
    # a plausible-looking record after the terminator must not be read
    trailing = struct.pack('>II', 16, 64)
    payload = build_face_rec([('Alice', '19800115', 0x04)], trailing=trailing)

    faces = decode_face_records(payload)
    assert [face.name for face in faces] == ['Alice']


def test_category_ignores_low_and_high_bits():
    payload = build_face_rec([('Alice', '19800115', 0xf1 | 0x04)])
    assert decode_face_records(payload)[0].category == FaceCategory.FAMILY


def test_little_endian_records():
    payload = build_face_rec([('Chloé', '19991010', 0x08)], endian='<')
    faces = decode_face_records(payload, endian='<')

    assert faces[0].name == 'Chloé'
    assert faces[0].category_names() == ['Friend']


def test_block_smaller_than_descriptor_stops_scan():
    payload = bytearray(build_face_rec([('Alice', '19800115', 0)]))
    struct.pack_into('>I', payload, 4, 40)
    assert decode_face_records(bytes(payload)) == []


def test_birthday_out_of_range_keeps_name():
    payload = bytearray(build_face_rec([('Alice', '19800115', 0x02)]))
    block = struct.unpack('>I', payload[0:4])[0]
    struct.pack_into('>I', payload, block + 58, len(payload))

    faces = decode_face_records(bytes(payload))
    assert [(face.name, face.birthday, face.category) for face in faces] == [('Alice', None, None)]


def test_payload_inside_larger_buffer():
    payload = build_face_rec([('Alice', '19800115', 0)])
    data = b'\xaa' * 10 + payload + b'\xbb' * 10

    faces = decode_face_records(data, start=10, length=len(payload))
    assert faces[0].name == 'Alice'


def test_empty_payload():
    assert decode_face_records(b'') == []


def test_format_birthday():
    assert format_birthday('20240229') == '2024:02:29'
    assert format_birthday('unknown') == 'unknown'
