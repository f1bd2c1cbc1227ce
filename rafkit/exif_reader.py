# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
EXIF reader for the embedded JPEG preview

Reads IFD0, the EXIF sub-IFD and the FujiFilm maker notes from the
preview's APP1 segment.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rafkit.exceptions import MetadataReadError
from rafkit.face_rec import FaceRecord, decode_face_records
from rafkit.jpeg_modifier import JPEGModifier
from rafkit.raf_tags import (
    EXIF_IFD_POINTER,
    EXIF_TAG_NAMES,
    GPS_IFD_POINTER,
    MAKERNOTE_FACE_REC_INFO,
    MAKERNOTE_TAG,
    MAKERNOTE_TAGS,
)
from rafkit.tiff_structure import TIFFStructure

logger = logging.getLogger(__name__)

FUJI_MAKERNOTE_HEADER = b'FUJIFILM'


@dataclass
class PreviewExif:
    """Metadata read from the embedded JPEG."""
    exif: Dict[str, Any] = field(default_factory=dict)
    makernotes: Dict[str, Any] = field(default_factory=dict)
    faces: List[FaceRecord] = field(default_factory=list)
    comment: Optional[str] = None
    warnings: List[str] = field(default_factory=list)

    @property
    def model(self) -> Optional[str]:
        return self.exif.get('Model')


def _tag_name(names: Dict[int, str], tag_id: int) -> str:
    return names.get(tag_id, f'Tag0x{tag_id:04x}')


def _read_makernotes(data: bytes, result: PreviewExif) -> None:
    """
    Decode a FujiFilm maker note.

    The maker note starts with 'FUJIFILM' and a little-endian offset to
    its IFD; all offsets are relative to the start of the maker note.
    """
    if not data.startswith(FUJI_MAKERNOTE_HEADER) or len(data) < 12:
        result.warnings.append("Unrecognized MakerNotes")
        return
    ifd_offset = struct.unpack('<I', data[8:12])[0]
    tiff = TIFFStructure(data, endian='<')
    entries, _ = tiff.decode_ifd(ifd_offset, 0)
    for entry in entries:
        if entry.tag_id == MAKERNOTE_FACE_REC_INFO and isinstance(entry.value, bytes):
            result.faces = decode_face_records(entry.value, endian='<')
            continue
        result.makernotes.setdefault(_tag_name(MAKERNOTE_TAGS, entry.tag_id), entry.value)


def read_preview_exif(jpeg_data: bytes) -> PreviewExif:
    """
    Read the metadata of the embedded JPEG.

    Failures are recorded as warnings; whatever was decoded before the
    failure is kept.

    Args:
        jpeg_data: Embedded JPEG bytes

    Returns:
        PreviewExif with the decoded tags
    """
    result = PreviewExif()
    try:
        modifier = JPEGModifier(jpeg_data)
    except MetadataReadError as e:
        result.warnings.append(f"Invalid preview image: {e.message}")
        return result

    result.comment = modifier.get_comment()
    found = modifier.get_exif_data()
    if found is None:
        return result

    tiff_data, _ = found
    tiff = TIFFStructure(tiff_data)
    try:
        ifd0_offset = tiff.parse_header(0)
        ifd0, _ = tiff.decode_ifd(ifd0_offset, 0)
        sub_ifd = None
        for entry in ifd0:
            if entry.tag_id == EXIF_IFD_POINTER:
                sub_ifd = entry.value
            elif entry.tag_id == GPS_IFD_POINTER:
                result.exif['GPSInfo'] = True
            else:
                result.exif.setdefault(_tag_name(EXIF_TAG_NAMES, entry.tag_id), entry.value)

        if isinstance(sub_ifd, int):
            exif_ifd, _ = tiff.decode_ifd(sub_ifd, 0)
            for entry in exif_ifd:
                if entry.tag_id == MAKERNOTE_TAG and isinstance(entry.value, bytes):
                    _read_makernotes(entry.value, result)
                else:
                    result.exif.setdefault(_tag_name(EXIF_TAG_NAMES, entry.tag_id), entry.value)
    except (MetadataReadError, struct.error) as e:
        logger.debug("Preview EXIF: %s", e)
        result.warnings.append("Error reading preview EXIF")

    return result
