# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
rafkit - FujiFilm RAF metadata in pure Python

Reads the header, RAF directories, FujiIFD blocks and embedded JPEG
metadata of FujiFilm RAF files, and rewrites the embedded JPEG while
keeping every other byte of the file.

Copyright 2025 DNAi inc.
"""

__version__ = "0.1.0"
__author__ = "DNAi inc."

from rafkit.context import DecodeContext
from rafkit.core import RAFExif
from rafkit.exceptions import (
    CorruptError,
    CorruptFormatError,
    DataIntegrityWarning,
    FatalWriteError,
    FormatError,
    FormatMismatchError,
    InvalidTagError,
    MetadataReadError,
    MetadataWriteError,
    RAFError,
    TruncatedError,
)
from rafkit.face_rec import FaceCategory, FaceRecord, decode_face_records
from rafkit.fuji_ifd import FujiIfd, FujiIfdWalker
from rafkit.options import available_options
from rafkit.raf_directory import RafDirectory, RafDirectoryDecoder
from rafkit.raf_header import RafHeader, parse_header
from rafkit.raf_parser import RAFParser, RAFReadResult
from rafkit.raf_tags import RAF_CATALOG, TagFormat, TagFormatCatalog
from rafkit.raf_writer import RAFWriter, WriteResult, WriteStatus, write_raf

__all__ = [
    "RAFExif",
    "RAFParser",
    "RAFReadResult",
    "RAFWriter",
    "WriteResult",
    "WriteStatus",
    "write_raf",
    "RafHeader",
    "parse_header",
    "RafDirectory",
    "RafDirectoryDecoder",
    "FujiIfd",
    "FujiIfdWalker",
    "FaceCategory",
    "FaceRecord",
    "decode_face_records",
    "DecodeContext",
    "TagFormat",
    "TagFormatCatalog",
    "RAF_CATALOG",
    "available_options",
    "RAFError",
    "MetadataReadError",
    "MetadataWriteError",
    "FormatError",
    "FormatMismatchError",
    "TruncatedError",
    "CorruptFormatError",
    "CorruptError",
    "DataIntegrityWarning",
    "FatalWriteError",
    "InvalidTagError",
]
