# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Builders for synthetic RAF files used by the tests.

Copyright 2025 DNAi inc.
"""

import struct
from typing import List, Optional, Sequence, Tuple

# Stand-in for the raw sensor data that follows the metadata blocks
RAW_DATA = bytes(range(256)) * 3
SCAN_DATA = b'\x12\x34\x56\x78\x9a'

# TIFF types
ASCII = 2
SHORT = 3
LONG = 4
UNDEFINED = 7

IfdEntry = Tuple[int, int, int, bytes]


def segment(marker: int, payload: bytes) -> bytes:
    return struct.pack('>HH', marker, len(payload) + 2) + payload


def build_ifd(entries: Sequence[IfdEntry], offset: int, endian: str = '>', next_ifd: int = 0) -> bytes:
    """
    Build one IFD followed by its out-of-line values.

    Args:
        entries: (tag, type, count, raw value bytes)
        offset: Position of the IFD relative to the offset base
        endian: Byte order
        next_ifd: Offset of the next IFD
    """
    head_size = 2 + 12 * len(entries) + 4
    body = bytearray(struct.pack(f'{endian}H', len(entries)))
    data = bytearray()
    for tag, tag_type, count, raw in entries:
        if len(raw) <= 4:
            value_field = raw.ljust(4, b'\x00')
        else:
            value_field = struct.pack(f'{endian}I', offset + head_size + len(data))
            data.extend(raw)
            if len(data) % 2:
                data.append(0)
        body.extend(struct.pack(f'{endian}HHI', tag, tag_type, count) + value_field)
    body.extend(struct.pack(f'{endian}I', next_ifd))
    return bytes(body + data)


def ascii_entry(tag: int, text: str) -> IfdEntry:
    raw = text.encode('ascii') + b'\x00'
    return tag, ASCII, len(raw), raw


def short_entry(tag: int, value: int, endian: str = '>') -> IfdEntry:
    return tag, SHORT, 1, struct.pack(f'{endian}H', value)


def long_entry(tag: int, value: int, endian: str = '>') -> IfdEntry:
    return tag, LONG, 1, struct.pack(f'{endian}I', value)


def build_face_rec(faces: Sequence[Tuple[str, str, int]], endian: str = '>',
                   trailing: bytes = b'') -> bytes:
    """
    Build a FaceRecInfo payload.

    Args:
        faces: (name, birthday YYYYMMDD, category byte)
        endian: Byte order of the 32-bit fields
        trailing: Extra index records placed after the terminating record
    """
    block_size = 64
    table_size = 8 * (len(faces) + 1) + len(trailing)
    strings_start = table_size + block_size * len(faces)

    table = bytearray()
    blocks = bytearray()
    strings = bytearray()
    for i, (name, birthday, category) in enumerate(faces):
        block_pos = table_size + block_size * i
        table.extend(struct.pack(f'{endian}II', block_pos, block_size))

        name_raw = name.encode('utf-8') + b'\x00'
        name_pos = strings_start + len(strings)
        strings.extend(name_raw)
        birthday_raw = birthday.encode('ascii')
        birthday_pos = strings_start + len(strings)
        strings.extend(birthday_raw)

        block = bytearray(block_size)
        struct.pack_into(f'{endian}II', block, 30, len(name_raw), name_pos)
        block[46] = category
        struct.pack_into(f'{endian}II', block, 54, len(birthday_raw), birthday_pos)
        blocks.extend(block)

    table.extend(b'\x00' * 8)
    table.extend(trailing)
    return bytes(table + blocks + strings)


def build_makernote(entries: Sequence[IfdEntry]) -> bytes:
    """FujiFilm maker note: signature, little-endian IFD offset, IFD."""
    return b'FUJIFILM' + struct.pack('<I', 12) + build_ifd(entries, 12, '<')


def build_exif_tiff(model: str = 'X-T1', makernote: Optional[bytes] = None) -> bytes:
    """Big-endian TIFF block holding IFD0, and an EXIF IFD when a maker note is given."""
    ifd0_entries: List[IfdEntry] = [ascii_entry(0x010f, 'FUJIFILM'), ascii_entry(0x0110, model)]
    if makernote is None:
        return b'MM\x00\x2a' + struct.pack('>I', 8) + build_ifd(ifd0_entries, 8)

    placeholder = ifd0_entries + [long_entry(0x8769, 0)]
    exif_offset = 8 + len(build_ifd(placeholder, 8))
    ifd0 = build_ifd(ifd0_entries + [long_entry(0x8769, exif_offset)], 8)
    exif_ifd = build_ifd([
        (0x829a, 5, 1, struct.pack('>II', 1, 250)),
        (0x927c, UNDEFINED, len(makernote), makernote),
    ], exif_offset)
    return b'MM\x00\x2a' + struct.pack('>I', 8) + ifd0 + exif_ifd


def build_jpeg(exif: Optional[bytes] = b'', comment: Optional[str] = None,
               xmp: Optional[bytes] = None) -> bytes:
    """
    Minimal JPEG: SOI, JFIF, optional EXIF/XMP/COM, SOS, scan data, EOI.

    exif=b'' uses build_exif_tiff(); exif=None leaves the EXIF segment out.
    """
    out = bytearray(b'\xff\xd8')
    out.extend(segment(0xffe0, b'JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00'))
    if exif is not None:
        out.extend(segment(0xffe1, b'Exif\x00\x00' + (exif or build_exif_tiff())))
    if xmp is not None:
        out.extend(segment(0xffe1, b'http://ns.adobe.com/xap/1.0/\x00' + xmp))
    if comment is not None:
        out.extend(segment(0xfffe, comment.encode('utf-8')))
    out.extend(segment(0xffda, b'\x01\x01\x00\x00\x3f\x00'))
    out.extend(SCAN_DATA)
    out.extend(b'\xff\xd9')
    return bytes(out)


def build_raf_directory(entries: Sequence[Tuple[int, bytes]], count: Optional[int] = None) -> bytes:
    """RAF directory: big-endian count, then tag/length/payload records."""
    out = bytearray(struct.pack('>I', len(entries) if count is None else count))
    for tag_id, payload in entries:
        out.extend(struct.pack('>HH', tag_id, len(payload)))
        out.extend(payload)
    return bytes(out)


def build_fuji_ifd(entries: Sequence[IfdEntry], sub_entries: Optional[Sequence[IfdEntry]] = None) -> bytes:
    """Big-endian TIFF block with offsets relative to its own start."""
    entries = list(entries)
    if sub_entries is None:
        return b'MM\x00\x2a' + struct.pack('>I', 8) + build_ifd(entries, 8)
    sub_offset = 8 + len(build_ifd(entries + [long_entry(0xf000, 0)], 8))
    ifd = build_ifd(entries + [long_entry(0xf000, sub_offset)], 8)
    return b'MM\x00\x2a' + struct.pack('>I', 8) + ifd + build_ifd(sub_entries, sub_offset)


def size_payload(first: int, second: int) -> bytes:
    return struct.pack('>HH', first, second)


DEFAULT_DIRECTORY = build_raf_directory([(0x100, size_payload(2000, 3000))])


def build_raf(
    jpeg: Optional[bytes] = None,
    directories: Optional[Sequence[bytes]] = None,
    fuji_ifds: Sequence[bytes] = (),
    version: bytes = b'0100',
    camera_model: bytes = b'X-T1',
    jpeg_offset: int = 0x94,
    padding: Optional[bytes] = None,
    trailer: bytes = RAW_DATA,
) -> bytes:
    """
    Build a RAF file.

    Blocks follow the JPEG in the order first directory, first FujiIFD,
    second directory, second FujiIFD, then the trailer. The first
    directory is the block pointed to by 0x5c.
    """
    jpeg = build_jpeg() if jpeg is None else jpeg
    directories = [DEFAULT_DIRECTORY] if directories is None else list(directories)
    if padding is None:
        padding = b'\x00' * (4 - len(jpeg) % 4)

    header = bytearray(max(jpeg_offset, 0x94))
    header[0:16] = b'FUJIFILMCCD-RAW '
    header[0x10:0x14] = b'0201'
    header[0x14:0x1c] = b'FF129502'
    header[0x1c:0x1c + len(camera_model)] = camera_model
    header[0x3c:0x40] = version
    struct.pack_into('>II', header, 0x54, jpeg_offset, len(jpeg))

    blocks: List[Tuple[int, bytes]] = []
    for slot, group, index in ((0x5c, directories, 0), (0x64, fuji_ifds, 0),
                               (0x78, directories, 1), (0x80, fuji_ifds, 1)):
        if index < len(group):
            blocks.append((slot, group[index]))

    position = jpeg_offset + len(jpeg) + len(padding)
    body = bytearray()
    for slot, block in blocks:
        if slot + 4 <= jpeg_offset:
            struct.pack_into('>I', header, slot, position + len(body))
        if slot + 8 <= jpeg_offset:
            struct.pack_into('>I', header, slot + 4, len(block))
        body.extend(block)

    return bytes(header[:jpeg_offset]) + jpeg + padding + bytes(body) + trailer


def read_u32(data: bytes, offset: int) -> int:
    return struct.unpack('>I', data[offset:offset + 4])[0]
