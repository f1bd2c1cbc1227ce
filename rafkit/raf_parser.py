# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
RAF format parser

Reads the header, the metadata of the embedded JPEG preview, the RAF
directories and the FujiIFD blocks of a FujiFilm RAF file.

Copyright 2025 DNAi inc.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from rafkit.context import DecodeContext
from rafkit.exceptions import CorruptFormatError, FormatError, FormatMismatchError, TruncatedError
from rafkit.exif_reader import PreviewExif, read_preview_exif
from rafkit.face_rec import FaceRecord
from rafkit.fuji_ifd import FujiIfd, FujiIfdWalker
from rafkit.options import resolve_options
from rafkit.raf_directory import DirectoryEntry, RafDirectory, RafDirectoryDecoder
from rafkit.raf_header import FUJI_IFD_SLOTS, HEADER_SIZE, RAF_SIGNATURE, RafHeader, parse_header

logger = logging.getLogger(__name__)


def _numbered(prefix: str, number: int) -> str:
    return prefix if number == 1 else f'{prefix}{number}'


def _display(value: Any, print_conv=None) -> Any:
    if isinstance(value, bytes):
        return f"(Binary data {len(value)} bytes)"
    if print_conv is not None:
        return print_conv(value)
    if isinstance(value, list):
        return ' '.join(str(v) for v in value)
    return value


@dataclass
class RAFReadResult:
    """Everything decoded from one RAF file."""
    header: RafHeader
    preview: bytes
    preview_exif: PreviewExif
    directories: List[RafDirectory] = field(default_factory=list)
    fuji_ifds: List[FujiIfd] = field(default_factory=list)
    context: DecodeContext = field(default_factory=DecodeContext)
    warnings: List[str] = field(default_factory=list)


class RAFParser:
    """
    Parser for FujiFilm RAF files.

    Example:
        >>> parser = RAFParser(file_path='image.raf')
        >>> metadata = parser.parse()
        >>> metadata['RAF:RawImageFullSize']
        '4992x3296'
    """

    def __init__(
        self,
        file_path: Optional[str] = None,
        file_data: Optional[bytes] = None,
        options: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize RAF parser.

        Args:
            file_path: Path to RAF file
            file_data: Raw file data
            options: API options (see rafkit.options.available_options)
        """
        self.file_path = file_path
        self.file_data = file_data
        self.options = resolve_options(options)
        self.decoder = RafDirectoryDecoder()

    @staticmethod
    def is_raf(data: bytes) -> bool:
        """Check the RAF signature."""
        return data.startswith(RAF_SIGNATURE)

    def _load(self) -> bytes:
        if self.file_data is None:
            if not self.file_path:
                raise FormatMismatchError("No file path or file data provided")
            with open(self.file_path, 'rb') as f:
                self.file_data = f.read()
        return self.file_data

    def parse_structured(self) -> RAFReadResult:
        """
        Decode the file into a RAFReadResult.

        Returns:
            RAFReadResult

        Raises:
            FormatMismatchError: If this is not a RAF file
            FormatError: If the version token is invalid
            CorruptFormatError: If the embedded JPEG cannot be read
        """
        data = self._load()
        header = parse_header(data[:HEADER_SIZE])
        if header.jpeg_offset & 0x8000:
            raise FormatMismatchError("Not a FujiFilm RAF file")

        preview = data[header.jpeg_offset:header.jpeg_offset + header.jpeg_length]
        if len(preview) != header.jpeg_length:
            raise CorruptFormatError("Error reading RAF preview image")

        preview_exif = read_preview_exif(preview)
        context = DecodeContext(model=preview_exif.model or header.camera_model or None)
        result = RAFReadResult(header=header, preview=preview, preview_exif=preview_exif)
        result.warnings.extend(preview_exif.warnings)

        source = io.BytesIO(data)
        walker = FujiIfdWalker(data)
        raf_num = ifd_num = 0
        corrupt = False
        for slot, pointer in header.pointer_slots():
            if not pointer:
                continue
            if slot in FUJI_IFD_SLOTS:
                ifd_num += 1
                ifd = walker.walk(pointer, _numbered('FujiIFD', ifd_num))
                result.warnings.extend(ifd.warnings)
                result.fuji_ifds.append(ifd)
            else:
                raf_num += 1
                group = _numbered('RAF', raf_num)
                try:
                    directory, context = self.decoder.decode(source, pointer, context, group)
                except (FormatError, TruncatedError) as e:
                    logger.debug("%s directory at 0x%x: %s", group, pointer, e.message)
                    corrupt = True
                    continue
                result.directories.append(directory)

        if corrupt:
            result.warnings.append('Possibly corrupt RAF information')
        if self.options['NoWarning']:
            result.warnings = []
        for message in result.warnings:
            logger.warning(message)
        result.context = context
        return result

    def parse(self, result: Optional[RAFReadResult] = None) -> Dict[str, Any]:
        """
        Parse the RAF file into a flat metadata dictionary.

        Keys are 'Group:TagName'. When a tag appears more than once, the
        first occurrence is kept.

        Args:
            result: An already decoded RAFReadResult of this file

        Returns:
            Dictionary containing all extracted metadata
        """
        if result is None:
            result = self.parse_structured()
        header = result.header
        metadata: Dict[str, Any] = {
            'File:FileType': 'RAF',
            'File:MIMEType': 'image/x-fujifilm-raf',
            'RAF:RAFVersion': header.version,
            'RAF:CameraModel': header.camera_model,
            'RAF:JpgFromRawStart': header.jpeg_offset,
            'RAF:JpgFromRawLength': header.jpeg_length,
        }
        if header.format_version:
            metadata['RAF:FormatVersion'] = header.format_version
        if self.options['ExtractPreview']:
            metadata['RAF:PreviewImage'] = result.preview
        else:
            metadata['RAF:PreviewImage'] = _display(result.preview)

        for name, value in result.preview_exif.exif.items():
            metadata.setdefault(f'EXIF:{name}', _display(value))
        for name, value in result.preview_exif.makernotes.items():
            metadata.setdefault(f'MakerNotes:{name}', _display(value))
        if result.preview_exif.comment is not None:
            metadata['File:Comment'] = result.preview_exif.comment
        self._add_faces(metadata, 'MakerNotes', result.preview_exif.faces)

        for directory in result.directories:
            for entry in directory.entries:
                self._add_entry(metadata, directory.group, entry)

        for ifd in result.fuji_ifds:
            for entry in ifd.iter_entries():
                metadata.setdefault(f'{ifd.group}:{entry.display_name}', _display(entry.value))

        if result.warnings:
            metadata['RAF:Warning'] = result.warnings[0]
        return metadata

    def _add_entry(self, metadata: Dict[str, Any], group: str, entry: DirectoryEntry) -> None:
        print_conv = entry.tag_format.print_conv if entry.tag_format else None
        metadata.setdefault(f'{group}:{entry.display_name}', _display(entry.value, print_conv))
        if entry.faces:
            self._add_faces(metadata, group, entry.faces)
        if entry.sub_entries:
            sub_group = 'RAFData' + group[len('RAF'):]
            for sub_entry in entry.sub_entries:
                metadata.setdefault(f'{sub_group}:{sub_entry.display_name}', sub_entry.value)

    @staticmethod
    def _add_faces(metadata: Dict[str, Any], group: str, faces: List[FaceRecord]) -> None:
        for face in faces:
            metadata.setdefault(f'{group}:Face{face.index}Name', face.name)
            if face.birthday is not None:
                metadata.setdefault(f'{group}:Face{face.index}Birthday', face.birthday)
            if face.category is not None:
                names = face.category_names()
                metadata.setdefault(f'{group}:Face{face.index}Category',
                                    ', '.join(names) if names else '(none)')
