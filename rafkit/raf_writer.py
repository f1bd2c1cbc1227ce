# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
RAF format writer

Rewrites the JPEG preview embedded in a FujiFilm RAF file. Only the JPEG
region and the header pointers that follow from its new size change;
every other byte is copied from the original file.

Copyright 2025 DNAi inc.
"""

import logging
import struct
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, BinaryIO, Callable, Dict, List, Optional, Tuple, Union

from rafkit.exceptions import (
    CorruptFormatError,
    DataIntegrityWarning,
    FatalWriteError,
    FormatError,
    FormatMismatchError,
)
from rafkit.jpeg_modifier import JPEGRewriteStatus, rewrite_jpeg
from rafkit.options import resolve_options
from rafkit.raf_header import (
    HEADER_SIZE,
    JPEG_LENGTH_FIELD,
    POINTER_SLOTS,
    RafHeader,
    parse_header,
)
from rafkit.raf_tags import TESTED_RAF_VERSIONS

logger = logging.getLogger(__name__)

# Largest believable gap between the JPEG and the next block
MAX_PADDING = 1000000

PathOrStream = Union[str, Path, BinaryIO]
JPEGRewriter = Callable[[bytes, Dict[str, Any]], Tuple[JPEGRewriteStatus, bytes]]


class WriteStatus(Enum):
    """Outcome of one write attempt."""
    SUCCESS = "success"
    NOT_THIS_FORMAT = "not_this_format"  # try another format handler
    ERROR = "error"  # nothing written, no changes possible
    WRITE_ERROR = "write_error"  # output must be treated as invalid


@dataclass
class RewritePlan:
    """Offsets and sizes of one rewrite, computed before any output is written."""
    jpeg_offset: int
    old_jpeg_length: int
    old_pad_length: int
    next_block_pointer: int
    new_jpeg: bytes
    new_padding: bytes
    delta: int
    adjustments: List[Tuple[int, int, int]] = field(default_factory=list)


@dataclass
class WriteResult:
    """Result of RAFWriter.write."""
    status: WriteStatus
    message: str = ""
    warnings: List[DataIntegrityWarning] = field(default_factory=list)
    plan: Optional[RewritePlan] = None

    @property
    def ok(self) -> bool:
        return self.status == WriteStatus.SUCCESS

    def raise_for_status(self) -> None:
        """
        Raise the exception matching a failed status.

        Raises:
            FormatMismatchError: NOT_THIS_FORMAT
            CorruptFormatError: ERROR
            FatalWriteError: WRITE_ERROR
        """
        if self.status == WriteStatus.NOT_THIS_FORMAT:
            raise FormatMismatchError(self.message)
        if self.status == WriteStatus.ERROR:
            raise CorruptFormatError(self.message)
        if self.status == WriteStatus.WRITE_ERROR:
            raise FatalWriteError(self.message)


class ErrorAccumulator:
    """
    Collects write errors while the output keeps streaming.
    """

    def __init__(self):
        self.errors: List[str] = []

    def record(self, message: str) -> None:
        logger.error(message)
        self.errors.append(message)

    def __bool__(self) -> bool:
        return bool(self.errors)

    @property
    def message(self) -> str:
        return '; '.join(self.errors)


def compute_padding(jpeg_length: int) -> bytes:
    """
    Zero padding to append after a JPEG of this length.

    Always 1 to 4 bytes: a length that is already a multiple of 4 still
    gets 4 bytes of padding.
    """
    return b'\x00' * (4 - (jpeg_length % 4))


def check_padding(padding: bytes, strict: bool = False) -> Optional[DataIntegrityWarning]:
    """
    Check that the original padding holds only zero bytes.

    Args:
        padding: Bytes between the end of the JPEG and the next block
        strict: Raise instead of returning the warning

    Returns:
        DataIntegrityWarning if non-zero bytes were found, otherwise None

    Raises:
        DataIntegrityWarning: If strict and non-zero bytes were found
    """
    if not padding.strip(b'\x00'):
        return None
    warning = DataIntegrityWarning('Non-null bytes found in padding')
    if strict:
        raise warning
    return warning


def patch_pointers(header: bytearray, jpeg_offset: int, delta: int) -> List[Tuple[int, int, int]]:
    """
    Shift the nonzero header pointers by delta, in place.

    Slots at or beyond the JPEG offset belong to the JPEG in short
    headers and are left alone, as are zero slots.

    Returns:
        List of (header offset, old pointer, new pointer)
    """
    adjustments = []
    for slot in POINTER_SLOTS:
        if slot >= jpeg_offset:
            break
        old_ptr = struct.unpack('>I', header[slot:slot + 4])[0]
        if not old_ptr:
            continue
        new_ptr = old_ptr + delta
        struct.pack_into('>I', header, slot, new_ptr)
        adjustments.append((slot, old_ptr, new_ptr))
    return adjustments


def _read_exact(source: BinaryIO, offset: int, size: int) -> Optional[bytes]:
    source.seek(offset)
    data = source.read(size)
    if len(data) != size:
        return None
    return data


class RAFWriter:
    """
    Writes FujiFilm RAF files with a rewritten embedded JPEG.

    Example:
        >>> writer = RAFWriter()
        >>> result = writer.write('in.raf', 'out.raf', {'Comment': 'hello'})
        >>> result.status
        <WriteStatus.SUCCESS: 'success'>
    """

    def __init__(self, options: Optional[Dict[str, Any]] = None,
                 jpeg_rewriter: JPEGRewriter = rewrite_jpeg):
        """
        Initialize RAF writer.

        Args:
            options: API options (see rafkit.options.available_options)
            jpeg_rewriter: Function rewriting the embedded JPEG
        """
        self.options = resolve_options(options)
        self.jpeg_rewriter = jpeg_rewriter

    def write(self, source: PathOrStream, output: PathOrStream,
              edits: Optional[Dict[str, Any]] = None) -> WriteResult:
        """
        Write a copy of source with the embedded JPEG rewritten.

        Nothing is written to output unless every check passes.

        Args:
            source: Original RAF file path or seekable binary stream
            output: Output file path or writable binary stream
            edits: Metadata edits for the embedded JPEG

        Returns:
            WriteResult
        """
        if isinstance(source, (str, Path)):
            with open(source, 'rb') as f:
                return self._write_stream(f, output, edits or {})
        return self._write_stream(source, output, edits or {})

    def _write_stream(self, source: BinaryIO, output: PathOrStream, edits: Dict[str, Any]) -> WriteResult:
        warnings: List[DataIntegrityWarning] = []
        try:
            header = self._read_header(source, warnings)
            jpeg = self._locate_jpeg(source, header)
            new_jpeg = self._rewrite_jpeg(jpeg, edits)
            old_pad_length = self._validate_padding(source, header, warnings)
        except FormatError as e:
            return WriteResult(WriteStatus.NOT_THIS_FORMAT, e.message)
        except (CorruptFormatError, DataIntegrityWarning) as e:
            return WriteResult(WriteStatus.ERROR, e.message, warnings)
        except FatalWriteError as e:
            return WriteResult(WriteStatus.WRITE_ERROR, e.message, warnings)

        header_bytes = bytearray(header.raw)
        plan = self.plan_rewrite(header, header_bytes, new_jpeg, old_pad_length)
        if self.options['NoWarning']:
            warnings = []

        errors = ErrorAccumulator()
        if isinstance(output, (str, Path)):
            try:
                with open(output, 'wb') as out:
                    self._emit(source, out, header_bytes, plan, errors)
            except OSError as e:
                errors.record(f"Error writing {output}: {e}")
        else:
            self._emit(source, output, header_bytes, plan, errors)

        if errors:
            return WriteResult(WriteStatus.WRITE_ERROR, errors.message, warnings, plan)
        return WriteResult(WriteStatus.SUCCESS, "", warnings, plan)

    def _read_header(self, source: BinaryIO, warnings: List[DataIntegrityWarning]) -> RafHeader:
        source.seek(0)
        data = source.read(HEADER_SIZE)
        if len(data) != HEADER_SIZE:
            raise FormatMismatchError("Not a FujiFilm RAF file")
        header = parse_header(data)

        if not header.is_write_layout_valid():
            raise CorruptFormatError(f"Unsupported or corrupted RAF image (version {header.version})")

        if header.version not in TESTED_RAF_VERSIONS and not self.options['IgnoreMinorErrors']:
            warning = DataIntegrityWarning(f"RAF version {header.version} not yet tested")
            logger.warning(warning.message)
            warnings.append(warning)
        return header

    def _locate_jpeg(self, source: BinaryIO, header: RafHeader) -> bytes:
        jpeg = _read_exact(source, header.jpeg_offset, header.jpeg_length)
        if jpeg is None:
            raise FatalWriteError('Error reading RAF meta information')
        return jpeg

    def _rewrite_jpeg(self, jpeg: bytes, edits: Dict[str, Any]) -> bytes:
        status, new_jpeg = self.jpeg_rewriter(jpeg, edits)
        if status == JPEGRewriteStatus.FATAL_FAIL:
            raise FatalWriteError('Error rewriting embedded JPEG')
        if status != JPEGRewriteStatus.SUCCESS or not new_jpeg:
            raise CorruptFormatError('Invalid RAF format')
        return new_jpeg

    def _validate_padding(self, source: BinaryIO, header: RafHeader,
                          warnings: List[DataIntegrityWarning]) -> int:
        old_pad_length = header.next_block_pointer - (header.jpeg_offset + header.jpeg_length)
        if not old_pad_length:
            return 0
        if old_pad_length < 0 or old_pad_length > MAX_PADDING:
            raise CorruptFormatError('Bad RAF pointer at 0x5c')
        padding = _read_exact(source, header.jpeg_offset + header.jpeg_length, old_pad_length)
        if padding is None:
            raise CorruptFormatError('Bad RAF pointer at 0x5c')

        warning = check_padding(padding, strict=self.options['StrictPadding'])
        if warning is not None:
            logger.warning(warning.message)
            warnings.append(warning)
        return old_pad_length

    def plan_rewrite(self, header: RafHeader, header_bytes: bytearray,
                     new_jpeg: bytes, old_pad_length: int) -> RewritePlan:
        """
        Compute the rewrite and patch header_bytes in place.

        Args:
            header: Parsed original header
            header_bytes: Copy of the header bytes to patch
            new_jpeg: Rewritten JPEG
            old_pad_length: Padding after the original JPEG

        Returns:
            RewritePlan
        """
        padding = compute_padding(len(new_jpeg))
        delta = len(new_jpeg) + len(padding) - (header.jpeg_length + old_pad_length)
        # JPEG length is stored without padding
        struct.pack_into('>I', header_bytes, JPEG_LENGTH_FIELD, len(new_jpeg))
        adjustments = patch_pointers(header_bytes, header.jpeg_offset, delta)
        logger.debug("RAF rewrite: JPEG %d -> %d bytes, pointer delta %+d",
                     header.jpeg_length, len(new_jpeg), delta)
        return RewritePlan(
            jpeg_offset=header.jpeg_offset,
            old_jpeg_length=header.jpeg_length,
            old_pad_length=old_pad_length,
            next_block_pointer=header.next_block_pointer,
            new_jpeg=new_jpeg,
            new_padding=padding,
            delta=delta,
            adjustments=adjustments,
        )

    def _emit(self, source: BinaryIO, out: BinaryIO, header_bytes: bytes,
              plan: RewritePlan, errors: ErrorAccumulator) -> None:
        """
        Write header, JPEG and padding, then copy the rest of the file.

        A failed write is recorded and the remaining blocks are still
        written.
        """
        for label, chunk in (('header', header_bytes[:plan.jpeg_offset]),
                             ('JPEG', plan.new_jpeg + plan.new_padding)):
            try:
                out.write(chunk)
            except OSError as e:
                errors.record(f"Error writing RAF {label}: {e}")

        try:
            source.seek(plan.next_block_pointer)
        except OSError as e:
            errors.record(f"Error reading RAF image: {e}")
            return

        block_size = self.options['BlockSize']
        while True:
            try:
                block = source.read(block_size)
            except OSError as e:
                errors.record(f"Error reading RAF image: {e}")
                return
            if not block:
                break
            try:
                out.write(block)
            except OSError as e:
                errors.record(f"Error writing RAF image data: {e}")


def write_raf(file_path: PathOrStream, output_path: PathOrStream,
              edits: Optional[Dict[str, Any]] = None,
              options: Optional[Dict[str, Any]] = None) -> WriteResult:
    """
    Write a RAF file, raising instead of returning a failure status.

    Raises:
        FormatMismatchError: If the input is not a RAF file
        CorruptFormatError: If the input failed a sanity check
        FatalWriteError: If the output could not be written
    """
    result = RAFWriter(options).write(file_path, output_path, edits)
    result.raise_for_status()
    return result
