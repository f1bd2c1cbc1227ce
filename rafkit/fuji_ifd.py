# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
FujiIFD walker

Some RAF files carry TIFF-format directories at the blocks pointed to by
header slots 0x64 and 0x80. Their byte order is always big-endian and
offsets are relative to the start of the block. Other models store
non-TIFF data at the same place, so failures here are only warnings.

Copyright 2025 DNAi inc.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Iterator, List, Optional, Set

from rafkit.exceptions import MetadataReadError
from rafkit.raf_tags import FUJI_IFD_SUBIFD, FUJI_IFD_TAGS
from rafkit.tiff_structure import IFDEntry, TIFFStructure

logger = logging.getLogger(__name__)


@dataclass
class FujiIfdEntry:
    """One FujiIFD entry; sub_ifd is set for the nested FujiSubIFD pointer."""
    tag_id: int
    name: Optional[str]
    tag_type: int
    count: int
    value: Any
    directory: str = 'FujiIFD'
    sub_ifd: Optional[List['FujiIfdEntry']] = None

    @property
    def display_name(self) -> str:
        return self.name or f'Tag0x{self.tag_id:04x}'


@dataclass
class FujiIfd:
    """Result of walking one FujiIFD block."""
    base: int
    group: str = 'FujiIFD'
    entries: List[FujiIfdEntry] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def iter_entries(self):
        """Yield every entry, descending into sub-IFDs in place."""
        return _iter_nested(self.entries)


def _iter_nested(entries: List[FujiIfdEntry]) -> Iterator[FujiIfdEntry]:
    for entry in entries:
        yield entry
        if entry.sub_ifd:
            yield from _iter_nested(entry.sub_ifd)


class FujiIfdWalker:
    """
    Walks FujiIFD blocks held in an in-memory buffer.

    Example:
        >>> walker = FujiIfdWalker(file_data)
        >>> ifd = walker.walk(0x1000)
    """

    # Bounds on chain length and sub-IFD nesting
    MAX_IFDS = 32
    MAX_DEPTH = 4

    def __init__(self, file_data: bytes):
        """
        Initialize the walker.

        Args:
            file_data: Complete file data
        """
        self.file_data = file_data

    def walk(self, base: int, group: str = 'FujiIFD') -> FujiIfd:
        """
        Decode the FujiIFD block at base.

        Never raises for bad data; a block that is not TIFF-format yields
        no entries and one warning.

        Args:
            base: Absolute position of the block (its TIFF header)
            group: Group name reported for this block

        Returns:
            FujiIfd with the decoded entries
        """
        result = FujiIfd(base=base, group=group)
        tiff = TIFFStructure(self.file_data, endian='>')
        visited: Set[int] = set()
        try:
            ifd_offset = tiff.parse_header(base)
            while ifd_offset and ifd_offset not in visited and len(visited) < self.MAX_IFDS:
                visited.add(ifd_offset)
                decoded, ifd_offset = tiff.decode_ifd(ifd_offset, base)
                result.entries.extend(self._convert(tiff, decoded, base, 'FujiIFD', visited, 0, result))
        except MetadataReadError as e:
            logger.debug("FujiIFD at 0x%x: %s", base, e.message)
            result.warnings.append(f"{group} is not TIFF format")
        return result

    def _convert(
        self,
        tiff: TIFFStructure,
        decoded: List[IFDEntry],
        base: int,
        directory: str,
        visited: Set[int],
        depth: int,
        result: FujiIfd
    ) -> List[FujiIfdEntry]:
        entries = []
        for raw in decoded:
            entry = FujiIfdEntry(
                tag_id=raw.tag_id,
                name=FUJI_IFD_TAGS.get(raw.tag_id),
                tag_type=raw.tag_type,
                count=raw.count,
                value=raw.value,
                directory=directory,
            )
            if raw.tag_id == FUJI_IFD_SUBIFD and isinstance(raw.value, int):
                entry.sub_ifd = self._walk_sub_ifd(tiff, base + raw.value, base, visited, depth + 1, result)
            entries.append(entry)
        return entries

    def _walk_sub_ifd(
        self,
        tiff: TIFFStructure,
        ifd_offset: int,
        base: int,
        visited: Set[int],
        depth: int,
        result: FujiIfd
    ) -> List[FujiIfdEntry]:
        if depth > self.MAX_DEPTH or ifd_offset in visited:
            return []
        visited.add(ifd_offset)
        logger.debug("FujiSubIFD at 0x%x", ifd_offset)
        try:
            decoded, _ = tiff.decode_ifd(ifd_offset, base)
        except MetadataReadError as e:
            # the parent directory keeps its entries
            logger.debug("FujiSubIFD at 0x%x: %s", ifd_offset, e.message)
            result.warnings.append(f"Bad FujiSubIFD offset in {result.group}")
            return []
        return self._convert(tiff, decoded, base, 'FujiSubIFD', visited, depth, result)
