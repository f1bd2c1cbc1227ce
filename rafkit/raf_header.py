# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
RAF header parser

The RAF file starts with a fixed-layout header holding the signature,
version strings, the location of the embedded JPEG preview and absolute
pointers to the metadata blocks that follow it.

Copyright 2025 DNAi inc.
"""

import re
import struct
from dataclasses import dataclass, field
from typing import Dict, Iterator, Tuple

from rafkit.exceptions import FormatError, FormatMismatchError

RAF_SIGNATURE = b'FUJIFILM'

# Header sizes for the read and write paths
MIN_HEADER_SIZE = 0x5c
HEADER_SIZE = 0x94

VERSION_OFFSET = 0x3c
JPEG_OFFSET_FIELD = 0x54
JPEG_LENGTH_FIELD = 0x58

# Absolute pointers to RAF directories and FujiIFD blocks
POINTER_SLOTS = (0x5c, 0x64, 0x78, 0x80)
RAF_DIRECTORY_SLOTS = (0x5c, 0x78)
FUJI_IFD_SLOTS = (0x64, 0x80)
NEXT_BLOCK_SLOT = 0x5c

# Valid JPEG offsets for writing
MIN_JPEG_OFFSET = 0x68
MAX_JPEG_OFFSET = 0x94

_VERSION_RE = re.compile(rb'^\d{4}$')


def _text(data: bytes) -> str:
    return data.split(b'\x00', 1)[0].decode('ascii', errors='replace').strip()


@dataclass
class RafHeader:
    """
    Decoded RAF header.

    Attributes:
        format_version: Format version token at 0x10
        camera_id: Camera number id at 0x14
        camera_model: Camera model string at 0x1c
        version: RAF version token (4 ASCII digits) at 0x3c
        jpeg_offset: Absolute offset of the embedded JPEG
        jpeg_length: Length of the embedded JPEG
        pointers: Raw value of every pointer slot present in the header bytes
        raw: The header bytes this was decoded from
        magic: The signature bytes
    """
    format_version: str
    camera_id: str
    camera_model: str
    version: str
    jpeg_offset: int
    jpeg_length: int
    pointers: Dict[int, int] = field(default_factory=dict)
    raw: bytes = b''
    magic: bytes = RAF_SIGNATURE

    def pointer_slots(self) -> Iterator[Tuple[int, int]]:
        """
        Yield (header offset, pointer) for the slots of this header variant.

        Some models use a short header that ends where the JPEG begins,
        so a slot at or beyond the JPEG offset is not a pointer.
        """
        for slot in POINTER_SLOTS:
            if slot >= self.jpeg_offset or slot not in self.pointers:
                break
            yield slot, self.pointers[slot]

    def is_write_layout_valid(self) -> bool:
        """Check the JPEG offset against the bounds required for writing."""
        return (MIN_JPEG_OFFSET <= self.jpeg_offset <= MAX_JPEG_OFFSET
                and self.jpeg_offset & 0x03 == 0)

    @property
    def next_block_pointer(self) -> int:
        return self.pointers.get(NEXT_BLOCK_SLOT, 0)


def parse_header(data: bytes) -> RafHeader:
    """
    Decode a RAF header.

    Pointer bounds are not checked here; the read and write paths apply
    their own rules.

    Args:
        data: At least the first 0x5c bytes of the file (0x94 to get
              every pointer slot)

    Returns:
        Decoded RafHeader

    Raises:
        FormatMismatchError: If the data is too short or the signature
                             does not match
        FormatError: If the version token is not 4 ASCII digits
    """
    if len(data) < MIN_HEADER_SIZE or not data.startswith(RAF_SIGNATURE):
        raise FormatMismatchError("Not a FujiFilm RAF file")

    version = data[VERSION_OFFSET:VERSION_OFFSET + 4]
    if not _VERSION_RE.match(version):
        raise FormatError(f"Invalid RAF version token {version!r}")

    jpeg_offset, jpeg_length = struct.unpack('>II', data[JPEG_OFFSET_FIELD:JPEG_OFFSET_FIELD + 8])

    pointers = {}
    for slot in POINTER_SLOTS:
        if slot + 4 <= len(data):
            pointers[slot] = struct.unpack('>I', data[slot:slot + 4])[0]

    return RafHeader(
        format_version=_text(data[0x10:0x14]),
        camera_id=_text(data[0x14:0x1c]),
        camera_model=_text(data[0x1c:0x3c]),
        version=version.decode('ascii'),
        jpeg_offset=jpeg_offset,
        jpeg_length=jpeg_length,
        pointers=pointers,
        raw=bytes(data[:HEADER_SIZE]),
        magic=bytes(data[:len(RAF_SIGNATURE)]),
    )
