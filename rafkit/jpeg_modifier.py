# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
JPEG file modifier

This module reads and rewrites the metadata segments of the JPEG preview
embedded in RAF files. Everything from the start-of-scan marker onwards
is copied unchanged.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from enum import IntEnum
from typing import Any, Dict, List, Optional, Tuple

from rafkit.exceptions import MetadataReadError

logger = logging.getLogger(__name__)

EXIF_HEADER = b'Exif\x00\x00'
XMP_HEADER = b'http://ns.adobe.com/xap/1.0/\x00'

# Edits understood by JPEGModifier.rewrite
SUPPORTED_EDITS = ('Comment', 'XMP', 'EXIF')

# Segments sharing an insert position keep this order
INSERT_ORDER = {'EXIF': 0, 'XMP': 1, 'Comment': 2}

# Largest payload a segment length field can describe
MAX_SEGMENT_PAYLOAD = 0xffff - 2


class JPEGRewriteStatus(IntEnum):
    """Outcome of a JPEG rewrite."""
    FATAL_FAIL = -1
    SOFT_FAIL = 0
    SUCCESS = 1


class JPEGModifier:
    """
    Modifies JPEG files to update metadata segments.

    This class handles:
    - Finding the EXIF, XMP and comment segments
    - Replacing, inserting or removing them
    - Preserving the compressed image data byte for byte
    """

    # JPEG markers
    SOI = 0xFFD8  # Start of Image
    EOI = 0xFFD9  # End of Image
    SOS = 0xFFDA  # Start of Scan
    APP0 = 0xFFE0  # APP0 (JFIF)
    APP1 = 0xFFE1  # APP1 (EXIF, XMP)
    APP15 = 0xFFEF
    COM = 0xFFFE  # Comment

    def __init__(self, file_data: bytes):
        """
        Initialize JPEG modifier.

        Args:
            file_data: Original JPEG file data

        Raises:
            MetadataReadError: If the data is not a parseable JPEG
        """
        self.file_data = file_data
        self.segments: List[Tuple[int, int, int]] = []  # (marker, offset, length)
        self.scan_offset = len(file_data)
        self._parse_segments()

    def _parse_segments(self) -> None:
        """
        Parse the header segments up to the start of scan.
        """
        if len(self.file_data) < 2 or struct.unpack('>H', self.file_data[0:2])[0] != self.SOI:
            raise MetadataReadError("Invalid JPEG file: missing SOI marker")

        i = 2
        while i < len(self.file_data) - 1:
            if self.file_data[i] != 0xFF:
                raise MetadataReadError(f"Invalid JPEG file: expected marker at offset {i}")

            # Skip fill bytes
            if self.file_data[i + 1] == 0xFF:
                i += 1
                continue

            marker = struct.unpack('>H', self.file_data[i:i + 2])[0]
            if marker == self.EOI:
                self.scan_offset = i
                break

            if i + 4 > len(self.file_data):
                raise MetadataReadError("Invalid JPEG file: truncated segment header")
            length = struct.unpack('>H', self.file_data[i + 2:i + 4])[0]
            if length < 2 or i + 2 + length > len(self.file_data):
                raise MetadataReadError(f"Invalid JPEG file: bad segment length at offset {i}")

            if marker == self.SOS:
                self.scan_offset = i
                break

            self.segments.append((marker, i, length))
            i += 2 + length

    def _payload(self, offset: int, length: int) -> bytes:
        return self.file_data[offset + 4:offset + 2 + length]

    def _find_app1(self, header: bytes) -> Optional[int]:
        for idx, (marker, offset, length) in enumerate(self.segments):
            if marker == self.APP1 and self._payload(offset, length).startswith(header):
                return idx
        return None

    def _find_marker(self, wanted: int) -> Optional[int]:
        for idx, (marker, _, _) in enumerate(self.segments):
            if marker == wanted:
                return idx
        return None

    def get_exif_data(self) -> Optional[Tuple[bytes, int]]:
        """
        Return the TIFF data of the EXIF segment and its offset in the file.
        """
        idx = self._find_app1(EXIF_HEADER)
        if idx is None:
            return None
        _, offset, length = self.segments[idx]
        start = offset + 4 + len(EXIF_HEADER)
        return self.file_data[start:offset + 2 + length], start

    def get_xmp(self) -> Optional[bytes]:
        idx = self._find_app1(XMP_HEADER)
        if idx is None:
            return None
        _, offset, length = self.segments[idx]
        return self._payload(offset, length)[len(XMP_HEADER):]

    def get_comment(self) -> Optional[str]:
        idx = self._find_marker(self.COM)
        if idx is None:
            return None
        _, offset, length = self.segments[idx]
        return self._payload(offset, length).rstrip(b'\x00').decode('utf-8', errors='replace')

    @staticmethod
    def _build_segment(marker: int, payload: bytes) -> bytes:
        if len(payload) > MAX_SEGMENT_PAYLOAD:
            raise ValueError(f"Segment payload of {len(payload)} bytes is too large")
        return struct.pack('>HH', marker, len(payload) + 2) + payload

    def _insert_position(self, kind: str) -> int:
        """
        Index in self.segments before which a new segment of kind goes.
        """
        if kind == 'EXIF':
            # after JFIF if present
            if self.segments and self.segments[0][0] == self.APP0:
                return 1
            return 0
        if kind == 'XMP':
            exif_idx = self._find_app1(EXIF_HEADER)
            if exif_idx is not None:
                return exif_idx + 1
            return self._insert_position('EXIF')
        # comments go after the APPn segments
        for idx, (marker, _, _) in enumerate(self.segments):
            if not self.APP0 <= marker <= self.APP15:
                return idx
        return len(self.segments)

    def _encode_edit(self, kind: str, value: Any) -> Tuple[int, bytes]:
        if isinstance(value, str):
            value = value.encode('utf-8')
        if kind == 'Comment':
            return self.COM, value
        if kind == 'XMP':
            return self.APP1, XMP_HEADER + value
        return self.APP1, EXIF_HEADER + value

    def _existing_index(self, kind: str) -> Optional[int]:
        if kind == 'Comment':
            return self._find_marker(self.COM)
        if kind == 'XMP':
            return self._find_app1(XMP_HEADER)
        return self._find_app1(EXIF_HEADER)

    def rewrite(self, edits: Dict[str, Any]) -> Tuple[JPEGRewriteStatus, bytes]:
        """
        Apply metadata edits and return the new JPEG data.

        A value of None removes the segment. With no edits the input is
        returned unchanged.

        Args:
            edits: Mapping of 'Comment', 'XMP' or 'EXIF' to new values

        Returns:
            Tuple of (status, new JPEG data); the data is empty unless the
            status is SUCCESS
        """
        if not edits:
            return JPEGRewriteStatus.SUCCESS, self.file_data

        # replaced[idx] is the new bytes for an existing segment, inserted
        # maps an index to segments placed before it
        replaced: Dict[int, bytes] = {}
        inserted: Dict[int, List[bytes]] = {}
        try:
            ordered = sorted(edits.items(), key=lambda item: INSERT_ORDER.get(item[0], len(INSERT_ORDER)))
            for kind, value in ordered:
                if kind not in SUPPORTED_EDITS:
                    logger.warning("Ignoring unsupported JPEG edit %s", kind)
                    continue
                segment = b''
                if value is not None:
                    segment = self._build_segment(*self._encode_edit(kind, value))
                idx = self._existing_index(kind)
                if idx is not None:
                    replaced[idx] = segment
                elif segment:
                    inserted.setdefault(self._insert_position(kind), []).append(segment)
        except (TypeError, ValueError) as e:
            logger.error("JPEG rewrite failed: %s", e)
            return JPEGRewriteStatus.FATAL_FAIL, b''

        new_data = bytearray(self.file_data[0:2])
        for idx, (marker, offset, length) in enumerate(self.segments):
            for segment in inserted.get(idx, []):
                new_data.extend(segment)
            if idx in replaced:
                new_data.extend(replaced[idx])
            else:
                new_data.extend(self.file_data[offset:offset + 2 + length])
        for segment in inserted.get(len(self.segments), []):
            new_data.extend(segment)
        new_data.extend(self.file_data[self.scan_offset:])

        return JPEGRewriteStatus.SUCCESS, bytes(new_data)


def rewrite_jpeg(jpeg_data: bytes, edits: Dict[str, Any]) -> Tuple[JPEGRewriteStatus, bytes]:
    """
    Rewrite the metadata segments of a JPEG.

    Returns SOFT_FAIL with empty data when the JPEG cannot be parsed.
    """
    try:
        modifier = JPEGModifier(jpeg_data)
    except MetadataReadError as e:
        logger.warning("Cannot rewrite embedded JPEG: %s", e.message)
        return JPEGRewriteStatus.SOFT_FAIL, b''
    return modifier.rewrite(edits)
