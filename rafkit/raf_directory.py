# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
RAF directory decoder

A RAF directory is a 32-bit big-endian entry count followed by that many
records of a 16-bit tag id, a 16-bit length and the payload bytes. All
integers are big-endian regardless of any other byte order in the file.

Copyright 2025 DNAi inc.
"""

import io
import logging
import struct
from dataclasses import dataclass, field
from typing import Any, BinaryIO, List, Optional, Tuple

from rafkit.context import DecodeContext
from rafkit.exceptions import FormatError, TruncatedError
from rafkit.face_rec import FaceRecord, decode_face_records
from rafkit.raf_tags import (
    FACE_REC_INFO,
    RAF_CATALOG,
    RAF_DATA,
    RAF_DATA_CATALOG,
    RAF_DATA_TAGS,
    TagFormat,
    TagFormatCatalog,
)
from rafkit.tiff_structure import FORMAT_SIZES, read_value

logger = logging.getLogger(__name__)


@dataclass
class DirectoryEntry:
    """
    One decoded directory record.

    Attributes:
        index: Position of the record in its directory
        tag_id: Tag id (byte offset for RAFData fields)
        length: Payload length in bytes
        raw: Payload bytes
        position: File position of the payload
        value: Decoded value (int for unknown 4-byte payloads, bytes
               for other unknown payloads)
        name: Tag name, or None for unknown tags
        tag_format: Catalog variant used to decode the payload
        faces: Face records, for the face recognition tag
        sub_entries: Decoded fields of the RAFData block
    """
    index: int
    tag_id: int
    length: int
    raw: bytes
    position: int
    value: Any
    name: Optional[str] = None
    tag_format: Optional[TagFormat] = None
    faces: Optional[List[FaceRecord]] = None
    sub_entries: Optional[List['DirectoryEntry']] = None

    @property
    def display_name(self) -> str:
        return self.name or f'Tag0x{self.tag_id:04x}'


@dataclass
class RafDirectory:
    """A decoded RAF directory, entries in file order."""
    offset: int
    group: str = 'RAF'
    entries: List[DirectoryEntry] = field(default_factory=list)

    def find(self, tag_id: int) -> List[DirectoryEntry]:
        """Return every entry with this tag id, in file order."""
        return [entry for entry in self.entries if entry.tag_id == tag_id]


def _apply_conversions(value: Any, tag_format: Optional[TagFormat],
                       context: DecodeContext) -> Tuple[Any, DecodeContext]:
    if tag_format is None:
        return value, context
    if tag_format.raw_conv is not None:
        value, context = tag_format.raw_conv(value, context)
        if value is None:
            return None, context
    if tag_format.value_conv is not None:
        value = tag_format.value_conv(value, context)
    return value, context


def decode_raf_data(payload: bytes, context: DecodeContext,
                    endian: str = '>') -> Tuple[List[DirectoryEntry], DecodeContext]:
    """
    Decode the RAFData dimension block.

    The first 32-bit value is taken as the width when it is plausible as
    one (< 10000); the alternate width field at offset 4 is then read as
    the height and offset 8 is ignored.

    Args:
        payload: RAFData payload bytes
        context: Current decode context
        endian: Byte order of the 32-bit fields

    Returns:
        Tuple of (decoded fields, updated context)
    """
    entries = []
    for index, offset in enumerate(sorted(RAF_DATA_TAGS)):
        tag_format = RAF_DATA_CATALOG.lookup(offset, context)
        if tag_format is None:
            continue
        value = read_value(payload, offset, tag_format.format, tag_format.count, endian)
        if value is None:
            continue
        value, context = _apply_conversions(value, tag_format, context)
        if value is None:
            continue
        size = FORMAT_SIZES[tag_format.format] * (tag_format.count or 1)
        entries.append(DirectoryEntry(
            index=index,
            tag_id=offset,
            length=size,
            raw=payload[offset:offset + size],
            position=offset,
            value=value,
            name=tag_format.name,
            tag_format=tag_format,
        ))
    return entries, context


class RafDirectoryDecoder:
    """
    Decoder for RAF tag/length/value directories.

    Example:
        >>> decoder = RafDirectoryDecoder()
        >>> with open('image.raf', 'rb') as f:
        ...     directory, context = decoder.decode(f, 0x100, DecodeContext())
    """

    # Entry counts at or above this mean the pointer was misaligned
    MAX_ENTRIES = 256

    def __init__(self, catalog: TagFormatCatalog = RAF_CATALOG):
        """
        Initialize the decoder.

        Args:
            catalog: Tag definitions used to decode known payloads
        """
        self.catalog = catalog

    def decode(
        self,
        source: BinaryIO,
        offset: int,
        context: Optional[DecodeContext] = None,
        group: str = 'RAF'
    ) -> Tuple[RafDirectory, DecodeContext]:
        """
        Decode the directory starting at offset.

        Args:
            source: Seekable binary stream
            offset: Absolute position of the directory
            context: Decode context from earlier directories
            group: Group name reported for this directory

        Returns:
            Tuple of (directory, updated context)

        Raises:
            FormatError: If the entry count is 256 or more
            TruncatedError: If the directory runs past the end of the data
        """
        context = context or DecodeContext()
        source.seek(offset)
        count = struct.unpack('>I', self._read(source, 4))[0]
        if count >= self.MAX_ENTRIES:
            raise FormatError(f"Bad RAF directory entry count {count} at 0x{offset:x}")

        logger.debug("RAF directory at 0x%x with %d entries", offset, count)
        directory = RafDirectory(offset=offset, group=group)
        pos = offset + 4
        for index in range(count):
            tag_id, length = struct.unpack('>HH', self._read(source, 4))
            pos += 4
            payload = self._read(source, length)
            entry, context = self._decode_entry(index, tag_id, payload, pos, context)
            if entry is not None:
                directory.entries.append(entry)
            pos += length

        return directory, context

    def decode_bytes(
        self,
        data: bytes,
        offset: int = 0,
        context: Optional[DecodeContext] = None,
        group: str = 'RAF'
    ) -> Tuple[RafDirectory, DecodeContext]:
        """Decode a directory held in memory."""
        return self.decode(io.BytesIO(data), offset, context, group)

    @staticmethod
    def _read(source: BinaryIO, size: int) -> bytes:
        data = source.read(size)
        if len(data) != size:
            raise TruncatedError(f"RAF directory truncated: wanted {size} bytes, got {len(data)}")
        return data

    def _decode_entry(
        self,
        index: int,
        tag_id: int,
        payload: bytes,
        position: int,
        context: DecodeContext
    ) -> Tuple[Optional[DirectoryEntry], DecodeContext]:
        """
        Decode one record. Returns a None entry when the record is skipped.
        """
        tag_format = self.catalog.lookup(tag_id, context)

        if tag_format is not None and tag_format.format:
            value = read_value(payload, 0, tag_format.format, tag_format.count, '>')
            if value is None:
                logger.debug("Skipping RAF tag 0x%04x: %d bytes too short for %s",
                             tag_id, len(payload), tag_format.format)
                return None, context
        elif len(payload) == 4:
            value = struct.unpack('>I', payload)[0]
        else:
            value = payload

        value, context = _apply_conversions(value, tag_format, context)
        if value is None:
            return None, context

        entry = DirectoryEntry(
            index=index,
            tag_id=tag_id,
            length=len(payload),
            raw=payload,
            position=position,
            value=value,
            name=tag_format.name if tag_format else None,
            tag_format=tag_format,
        )

        subdirectory = tag_format.subdirectory if tag_format else None
        if subdirectory == FACE_REC_INFO:
            entry.faces = decode_face_records(payload, endian='>')
        elif subdirectory == RAF_DATA:
            entry.sub_entries, context = decode_raf_data(payload, context)

        return entry, context
