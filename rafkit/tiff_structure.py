# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
TIFF file structure utilities

This module provides the IFD engine used for the EXIF block of the
embedded JPEG preview, the FujiFilm maker notes and the FujiIFD blocks
of RAF files, plus the binary value reader shared with the RAF
directory decoder.

Copyright 2025 DNAi inc.
"""

import struct
from dataclasses import dataclass
from enum import IntEnum
from typing import Any, List, Optional, Tuple

from rafkit.exceptions import MetadataReadError


class ExifTagType(IntEnum):
    """TIFF/EXIF tag data types"""
    BYTE = 1
    ASCII = 2
    SHORT = 3
    LONG = 4
    RATIONAL = 5
    SBYTE = 6
    UNDEFINED = 7
    SSHORT = 8
    SLONG = 9
    SRATIONAL = 10
    FLOAT = 11
    DOUBLE = 12
    IFD = 13


# Named binary formats
TYPE_FORMATS = {
    ExifTagType.BYTE: 'int8u',
    ExifTagType.ASCII: 'string',
    ExifTagType.SHORT: 'int16u',
    ExifTagType.LONG: 'int32u',
    ExifTagType.RATIONAL: 'rational64u',
    ExifTagType.SBYTE: 'int8s',
    ExifTagType.UNDEFINED: 'undef',
    ExifTagType.SSHORT: 'int16s',
    ExifTagType.SLONG: 'int32s',
    ExifTagType.SRATIONAL: 'rational64s',
    ExifTagType.FLOAT: 'float',
    ExifTagType.DOUBLE: 'double',
    ExifTagType.IFD: 'int32u',
}

FORMAT_SIZES = {
    'int8u': 1,
    'int8s': 1,
    'int16u': 2,
    'int16s': 2,
    'int32u': 4,
    'int32s': 4,
    'rational64u': 8,
    'rational64s': 8,
    'float': 4,
    'double': 8,
    'string': 1,
    'undef': 1,
}

_STRUCT_CODES = {
    'int8u': 'B',
    'int8s': 'b',
    'int16u': 'H',
    'int16s': 'h',
    'int32u': 'I',
    'int32s': 'i',
    'float': 'f',
    'double': 'd',
}


def read_value(
    data: bytes,
    offset: int,
    fmt: str,
    count: Optional[int] = None,
    endian: str = '>'
) -> Any:
    """
    Read a value of a named binary format.

    Args:
        data: Buffer holding the value
        offset: Offset of the value in the buffer
        fmt: Format name ('int16u', 'rational64s', 'string', ...)
        count: Number of elements, or None for as many as fit
        endian: Byte order ('>' or '<')

    Returns:
        A scalar when count is 1, a list otherwise, a str for 'string'
        and bytes for 'undef'. None if the buffer is too short.
    """
    size = FORMAT_SIZES[fmt]
    available = len(data) - offset
    if offset < 0 or available <= 0:
        return None
    if count is None:
        count = available // size
    if count <= 0 or size * count > available:
        return None

    chunk = data[offset:offset + size * count]

    if fmt == 'string':
        null_pos = chunk.find(b'\x00')
        if null_pos >= 0:
            chunk = chunk[:null_pos]
        try:
            return chunk.decode('utf-8')
        except UnicodeDecodeError:
            return chunk.decode('latin-1')

    if fmt == 'undef':
        return bytes(chunk)

    if fmt in ('rational64u', 'rational64s'):
        code = 'I' if fmt == 'rational64u' else 'i'
        parts = struct.unpack(f'{endian}{count * 2}{code}', chunk)
        values = [(parts[i], parts[i + 1]) for i in range(0, len(parts), 2)]
    else:
        values = list(struct.unpack(f'{endian}{count}{_STRUCT_CODES[fmt]}', chunk))

    if count == 1:
        return values[0]
    return values


@dataclass
class IFDEntry:
    """One decoded IFD entry."""
    tag_id: int
    tag_type: int
    count: int
    value: Any
    offset: int


class TIFFStructure:
    """
    TIFF file structure parser.

    Decodes TIFF headers and IFD entries from an in-memory buffer. All
    offsets passed in are absolute positions in the buffer; offsets read
    from the data are relative to a caller-supplied base.
    """

    def __init__(self, file_data: bytes, endian: Optional[str] = None):
        """
        Initialize TIFF structure parser.

        Args:
            file_data: Buffer holding the TIFF data
            endian: Byte order to force ('>' or '<'), or None to take it
                    from the TIFF header
        """
        self.file_data = file_data
        self.endian = endian

    def parse_header(self, base_offset: int = 0) -> int:
        """
        Parse the TIFF header at base_offset.

        Args:
            base_offset: Position of the header in the buffer

        Returns:
            Absolute position of the first IFD

        Raises:
            MetadataReadError: If the header is missing or invalid
        """
        header = self.file_data[base_offset:base_offset + 8]
        if len(header) < 8:
            raise MetadataReadError("Invalid TIFF header: too short")

        if self.endian is None:
            if header[:2] == b'II':
                self.endian = '<'
            elif header[:2] == b'MM':
                self.endian = '>'
            else:
                raise MetadataReadError("Invalid TIFF header: bad byte order")

        magic, ifd_offset = struct.unpack(f'{self.endian}HI', header[2:8])
        if magic != 42:
            raise MetadataReadError("Invalid TIFF header: bad magic number")

        return base_offset + ifd_offset

    def decode_ifd(self, ifd_offset: int, base_offset: int = 0) -> Tuple[List[IFDEntry], int]:
        """
        Decode an IFD (Image File Directory).

        Entries whose type is unknown or whose value lies outside the
        buffer are skipped without aborting the directory.

        Args:
            ifd_offset: Absolute position of the IFD
            base_offset: Base for value offsets stored in the entries

        Returns:
            Tuple of (entries, absolute position of the next IFD or 0)

        Raises:
            MetadataReadError: If the entry count cannot be read
        """
        endian = self.endian or '>'
        if ifd_offset < 0 or ifd_offset + 2 > len(self.file_data):
            raise MetadataReadError(f"IFD offset 0x{ifd_offset:x} is outside the data")

        num_entries = struct.unpack(f'{endian}H', self.file_data[ifd_offset:ifd_offset + 2])[0]

        entries = []
        entry_offset = ifd_offset + 2
        for _ in range(num_entries):
            if entry_offset + 12 > len(self.file_data):
                break

            tag_id, tag_type, count = struct.unpack(
                f'{endian}HHI',
                self.file_data[entry_offset:entry_offset + 8]
            )
            value = self._read_entry_value(tag_type, count, entry_offset + 8, base_offset)
            if value is not None:
                entries.append(IFDEntry(tag_id, tag_type, count, value, entry_offset))
            entry_offset += 12

        next_ifd = 0
        if entry_offset + 4 <= len(self.file_data):
            next_ifd = struct.unpack(f'{endian}I', self.file_data[entry_offset:entry_offset + 4])[0]
            if next_ifd:
                next_ifd += base_offset

        return entries, next_ifd

    def _read_entry_value(self, tag_type: int, count: int, inline_offset: int, base_offset: int) -> Any:
        """
        Read the value of one entry, inline or at its offset.
        """
        try:
            fmt = TYPE_FORMATS[ExifTagType(tag_type)]
        except ValueError:
            return None

        total_size = FORMAT_SIZES[fmt] * count
        if count == 0:
            return None
        if total_size <= 4:
            data_offset = inline_offset
        else:
            value_offset = struct.unpack(
                f'{self.endian or ">"}I',
                self.file_data[inline_offset:inline_offset + 4]
            )[0]
            data_offset = base_offset + value_offset

        if data_offset + total_size > len(self.file_data):
            return None
        return read_value(self.file_data, data_offset, fmt, count, self.endian or '>')
