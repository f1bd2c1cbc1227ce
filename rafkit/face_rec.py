# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
FujiFilm face recognition information decoder

The face recognition payload starts with a table of 8-byte index
records, each giving the offset and length of a face descriptor block.
Offsets are relative to the start of the payload. The table has no
count; it ends at the first record that does not describe a plausible
block.

Copyright 2025 DNAi inc.
"""

import re
import struct
from dataclasses import dataclass
from enum import IntFlag
from typing import List, Optional

# Smallest descriptor block holding every field read below
MIN_FACE_BLOCK = 62

NAME_LENGTH = 30
NAME_OFFSET = 34
CATEGORY_OFFSET = 46
BIRTHDAY_LENGTH = 54
BIRTHDAY_OFFSET = 58

_BIRTHDAY_RE = re.compile(r'^(\d{4})(\d{2})(\d{2})')


class FaceCategory(IntFlag):
    """Relationship categories of a registered face."""
    NONE = 0
    PARTNER = 0x02
    FAMILY = 0x04
    FRIEND = 0x08


@dataclass
class FaceRecord:
    """One registered face."""
    index: int
    name: str
    birthday: Optional[str] = None
    category: Optional[FaceCategory] = None

    def category_names(self) -> List[str]:
        if self.category is None:
            return []
        return [member.name.title() for member in (FaceCategory.PARTNER, FaceCategory.FAMILY,
                                                   FaceCategory.FRIEND) if self.category & member]


def format_birthday(value: str) -> str:
    """Reformat an 8-digit YYYYMMDD date as YYYY:MM:DD."""
    return _BIRTHDAY_RE.sub(r'\1:\2:\3', value, count=1)


def _decode_text(data: bytes) -> str:
    data = data.split(b'\x00', 1)[0]
    try:
        return data.decode('utf-8')
    except UnicodeDecodeError:
        return data.decode('latin-1')


def decode_face_records(data: bytes, start: int = 0, length: Optional[int] = None,
                        endian: str = '>') -> List[FaceRecord]:
    """
    Decode the face records of one FaceRecInfo payload.

    Malformed trailing records end the scan without raising, since that
    is how the list normally ends.

    Args:
        data: Buffer holding the payload
        start: Position of the payload in the buffer
        length: Payload length (defaults to the rest of the buffer)
        endian: Byte order of the enclosing directory

    Returns:
        Face records in index order, numbered from 1
    """
    end = len(data) if length is None else min(len(data), start + length)
    faces: List[FaceRecord] = []
    pos = start
    index = 1

    def u32(offset: int) -> int:
        return struct.unpack(f'{endian}I', data[offset:offset + 4])[0]

    while pos + 8 <= end:
        block = u32(pos) + start
        block_len = u32(pos + 4)
        if block_len == 0 or block > end or block + block_len > end or block_len < MIN_FACE_BLOCK:
            break

        size = u32(block + NAME_LENGTH)
        text_pos = u32(block + NAME_OFFSET) + start
        if text_pos < start or text_pos + size > end:
            break
        face = FaceRecord(index=index, name=_decode_text(data[text_pos:text_pos + size]))
        faces.append(face)

        size = u32(block + BIRTHDAY_LENGTH)
        text_pos = u32(block + BIRTHDAY_OFFSET) + start
        if text_pos < start or text_pos + size > end:
            break
        face.birthday = format_birthday(_decode_text(data[text_pos:text_pos + size]))
        face.category = FaceCategory(data[block + CATEGORY_OFFSET] & 0x0e)

        pos += 8
        index += 1

    return faces
