# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Core rafkit class

Provides the file-level API for reading RAF metadata and rewriting the
metadata of the embedded JPEG preview.

Copyright 2025 DNAi inc.
"""

import os
import tempfile
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from rafkit.exceptions import InvalidTagError, MetadataWriteError
from rafkit.options import available_options, resolve_options, validate_option
from rafkit.raf_parser import RAFParser, RAFReadResult
from rafkit.raf_writer import RAFWriter, WriteResult

# Writable tags and the JPEG edit each one maps to
WRITABLE_TAGS = {
    'Comment': 'Comment',
    'File:Comment': 'Comment',
    'XMP': 'XMP',
    'XMP:XMP': 'XMP',
    'EXIF': 'EXIF',
    'EXIF:EXIF': 'EXIF',
}


class RAFExif:
    """
    Main class for reading and writing metadata of RAF files.

    Example:
        >>> with RAFExif('image.raf') as raf:
        ...     model = raf.get_tag('EXIF:Model')
        ...     raf.set_tag('Comment', 'Shot on a rainy day')
        ...     raf.save('edited.raf')
    """

    def __init__(
        self,
        file_path: Union[str, Path],
        read_only: bool = False,
        options: Optional[Dict[str, Any]] = None
    ):
        """
        Initialize RAFExif with a RAF file.

        Args:
            file_path: Path to the RAF file
            read_only: If True, save() is refused
            options: API options (see available_options())

        Raises:
            FileNotFoundError: If the file does not exist
            FormatMismatchError: If the file is not a RAF file
        """
        self.file_path = Path(file_path)
        if not self.file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        self.read_only = read_only
        self.options: Dict[str, Any] = resolve_options(options)
        self.modified_tags: Dict[str, Any] = {}
        self.last_result: Optional[WriteResult] = None
        self.metadata: Dict[str, Any] = {}
        self._result: Optional[RAFReadResult] = None
        self._load_metadata()

    @staticmethod
    def available_options() -> Dict[str, Dict[str, Any]]:
        return available_options()

    def set_option(self, option_name: str, value: Any) -> None:
        """
        Set an API option value.

        Raises:
            ValueError: If option name is not recognized
        """
        self.options[option_name] = validate_option(option_name, value)

    def get_option(self, option_name: str, default: Any = None) -> Any:
        return self.options.get(option_name, default)

    def _load_metadata(self) -> None:
        parser = RAFParser(file_path=str(self.file_path), options=self.options)
        self._result = parser.parse_structured()
        self.metadata = parser.parse(self._result)

    @property
    def structure(self) -> RAFReadResult:
        """The decoded header, directories and FujiIFD blocks."""
        return self._result

    @property
    def warnings(self) -> List[str]:
        return list(self._result.warnings)

    def get_all_metadata(self) -> Dict[str, Any]:
        metadata = self.metadata.copy()
        for tag_name, value in self.modified_tags.items():
            metadata[f'File:{tag_name}' if tag_name == 'Comment' else tag_name] = value
        return metadata

    def get_tag(self, tag_name: str, default: Any = None) -> Any:
        """
        Get a tag value by 'Group:TagName' or by bare tag name.
        """
        if tag_name in self.metadata:
            return self.metadata[tag_name]
        for key, value in self.metadata.items():
            if key.split(':', 1)[-1] == tag_name:
                return value
        return default

    def set_tag(self, tag_name: str, value: Any) -> None:
        """
        Queue an edit of the embedded JPEG.

        Args:
            tag_name: 'Comment', 'XMP' or 'EXIF' (optionally group-prefixed)
            value: New value, or None to delete

        Raises:
            InvalidTagError: If the tag is not writable or the value has
                             the wrong type
        """
        edit = WRITABLE_TAGS.get(tag_name)
        if edit is None:
            raise InvalidTagError(
                f"Tag '{tag_name}' is not writable. Writable tags: {', '.join(sorted(WRITABLE_TAGS))}"
            )
        if value is not None and not isinstance(value, (str, bytes)):
            raise InvalidTagError(f"Tag '{tag_name}' requires str or bytes, got {type(value).__name__}")
        if edit == 'EXIF' and isinstance(value, str):
            raise InvalidTagError("EXIF requires raw TIFF bytes")
        self.modified_tags[edit] = value

    def delete_tag(self, tag_name: str) -> None:
        self.set_tag(tag_name, None)

    def get_modified_tags(self) -> Dict[str, Any]:
        return self.modified_tags.copy()

    def save(self, output_path: Optional[Union[str, Path]] = None) -> WriteResult:
        """
        Save metadata changes.

        Without output_path the original file is replaced once the new
        file has been written completely.

        Args:
            output_path: Optional output path

        Returns:
            WriteResult of the successful write

        Raises:
            MetadataWriteError: If the file is read-only
            FormatMismatchError: If the file is not a RAF file
            CorruptFormatError: If the file failed a sanity check
            FatalWriteError: If the output could not be written
        """
        if self.read_only:
            raise MetadataWriteError(
                f"Cannot save changes: File '{self.file_path}' is opened in read-only mode. "
                "Open the file without read_only=True to enable writing."
            )

        writer = RAFWriter(self.options)
        if output_path is not None:
            result = writer.write(self.file_path, Path(output_path), self.modified_tags)
            self._check(result)
        else:
            fd, tmp_path = tempfile.mkstemp(suffix='.raf', dir=str(self.file_path.parent))
            os.close(fd)
            try:
                result = writer.write(self.file_path, Path(tmp_path), self.modified_tags)
                self._check(result)
                os.replace(tmp_path, self.file_path)
            finally:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)

        self.modified_tags = {}
        if output_path is None:
            self._load_metadata()
        return result

    def _check(self, result: WriteResult) -> None:
        self.last_result = result
        result.raise_for_status()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        # changes are only written by an explicit save()
        pass
