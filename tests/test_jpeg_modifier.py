# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

import pytest

from builders import SCAN_DATA, build_exif_tiff, build_face_rec, build_jpeg, build_makernote, ascii_entry
from rafkit.exceptions import MetadataReadError
from rafkit.exif_reader import read_preview_exif
from rafkit.jpeg_modifier import JPEGModifier, JPEGRewriteStatus, rewrite_jpeg


def _markers(data):
    return [marker for marker, _, _ in JPEGModifier(data).segments]


def test_no_edits_returns_input():
    jpeg = build_jpeg(comment='hello')
    status, data = JPEGModifier(jpeg).rewrite({})
    assert status == JPEGRewriteStatus.SUCCESS
    assert data == jpeg


def test_add_comment():
    jpeg = build_jpeg()
    status, data = JPEGModifier(jpeg).rewrite({'Comment': 'Shot on a rainy day'})

    assert status == JPEGRewriteStatus.SUCCESS
    modifier = JPEGModifier(data)
    assert modifier.get_comment() == 'Shot on a rainy day'
    assert _markers(data) == [JPEGModifier.APP0, JPEGModifier.APP1, JPEGModifier.COM]
    assert data.endswith(SCAN_DATA + b'\xff\xd9')


def test_replace_and_remove_comment():
    jpeg = build_jpeg(comment='old')
    _, replaced = JPEGModifier(jpeg).rewrite({'Comment': 'new'})
    assert JPEGModifier(replaced).get_comment() == 'new'

    _, removed = JPEGModifier(jpeg).rewrite({'Comment': None})
    assert JPEGModifier(removed).get_comment() is None
    assert len(removed) == len(jpeg) - (4 + len('old'))


def test_xmp_goes_after_exif():
    jpeg = build_jpeg()
    _, data = JPEGModifier(jpeg).rewrite({'XMP': '<x:xmpmeta/>'})

    modifier = JPEGModifier(data)
    assert modifier.get_xmp() == b'<x:xmpmeta/>'
    assert _markers(data) == [JPEGModifier.APP0, JPEGModifier.APP1, JPEGModifier.APP1]
    assert modifier.get_exif_data() is not None


def test_replace_exif():
    jpeg = build_jpeg()
    new_tiff = build_exif_tiff(model='X-H2')
    _, data = JPEGModifier(jpeg).rewrite({'EXIF': new_tiff})

    tiff, _ = JPEGModifier(data).get_exif_data()
    assert tiff == new_tiff


def test_oversize_segment_is_fatal():
    status, data = JPEGModifier(build_jpeg()).rewrite({'Comment': 'x' * 70000})
    assert status == JPEGRewriteStatus.FATAL_FAIL
    assert data == b''


def test_bad_value_type_is_fatal():
    status, _ = JPEGModifier(build_jpeg()).rewrite({'XMP': 12})
    assert status == JPEGRewriteStatus.FATAL_FAIL


def test_unsupported_edit_is_ignored():
    jpeg = build_jpeg()
    status, data = JPEGModifier(jpeg).rewrite({'IPTC': b'abc'})
    assert status == JPEGRewriteStatus.SUCCESS
    assert data == jpeg


def test_invalid_jpeg():
    with pytest.raises(MetadataReadError):
        JPEGModifier(b'not a jpeg')
    assert rewrite_jpeg(b'not a jpeg', {'Comment': 'x'}) == (JPEGRewriteStatus.SOFT_FAIL, b'')


def test_truncated_segment_is_invalid():
    jpeg = build_jpeg()
    with pytest.raises(MetadataReadError):
        JPEGModifier(jpeg[:10])


def test_read_preview_exif_model_and_comment():
    preview = read_preview_exif(build_jpeg(exif=build_exif_tiff(model='X-Pro2'), comment='note'))

    assert preview.model == 'X-Pro2'
    assert preview.exif['Make'] == 'FUJIFILM'
    assert preview.comment == 'note'
    assert preview.warnings == []


def test_read_preview_makernotes_and_faces():
    faces = build_face_rec([('Alice', '19800115', 0x02)], endian='<')
    makernote = build_makernote([
        ascii_entry(0x1000, 'NORMAL'),
        (0x4282, 7, len(faces), faces),
    ])
    preview = read_preview_exif(build_jpeg(exif=build_exif_tiff(makernote=makernote)))

    assert preview.exif['ExposureTime'] == (1, 250)
    assert preview.makernotes == {'Quality': 'NORMAL'}
    assert [(f.name, f.birthday, f.category_names()) for f in preview.faces] == [
        ('Alice', '1980:01:15', ['Partner']),
    ]


def test_read_preview_without_exif():
    preview = read_preview_exif(build_jpeg(exif=None))
    assert preview.exif == {}
    assert preview.model is None


def test_read_preview_invalid_jpeg():
    preview = read_preview_exif(b'\x00\x01')
    assert preview.warnings and preview.warnings[0].startswith('Invalid preview image')


def test_exif_inserted_ahead_of_xmp():
    jpeg = build_jpeg(exif=None)
    _, data = JPEGModifier(jpeg).rewrite({'XMP': '<x:xmpmeta/>', 'EXIF': build_exif_tiff()})

    modifier = JPEGModifier(data)
    assert _markers(data) == [JPEGModifier.APP0, JPEGModifier.APP1, JPEGModifier.APP1]
    _, offset, _ = modifier.segments[1]
    assert data[offset + 4:offset + 10] == b'Exif\x00\x00'
    assert modifier.get_xmp() == b'<x:xmpmeta/>'
