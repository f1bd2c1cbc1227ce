# Copyright 2025 DNAi inc.

# Dual-licensed under the DNAi Free License v1.1 and the
# DNAi Commercial License v1.1.
# See the LICENSE files in the project root for details.

"""
Exception classes for rafkit

This module defines the error taxonomy shared by the RAF read and
write paths.

Copyright 2025 DNAi inc.
"""


class RAFError(Exception):
    """
    Base exception for all rafkit errors.

    All rafkit exceptions inherit from this class, allowing
    catch-all error handling for any RAF-related errors.
    """
    def __init__(self, message: str = ""):
        """
        Initialize the exception with an optional error message.

        Args:
            message: Descriptive error message explaining what went wrong
        """
        self.message = message
        super().__init__(message)


class MetadataReadError(RAFError):
    """
    Raised when metadata cannot be read from a file.
    """
    pass


class MetadataWriteError(RAFError):
    """
    Raised when metadata cannot be written to a file.
    """
    pass


class FormatError(MetadataReadError):
    """
    Raised when a header or directory is structurally invalid.

    This exception is raised when:
    - The version token is not 4 ASCII digits
    - A RAF directory declares 256 or more entries
    """
    pass


class FormatMismatchError(FormatError):
    """
    Raised when the data is not a RAF container at all.

    Callers treat this as recoverable and may try another format handler.
    """
    pass


class TruncatedError(MetadataReadError):
    """
    Raised when fewer bytes are available than a directory requires.

    Aborts the directory being decoded, never the whole file.
    """
    pass


class CorruptFormatError(RAFError):
    """
    Raised when a header pointer or length fails a sanity check.

    This exception is raised when:
    - The JPEG offset is outside 0x68-0x94 or not 4-byte aligned (write path)
    - The pointer at 0x5c gives a negative or implausibly large padding
    - The embedded JPEG cannot be read or rewritten
    """
    pass


CorruptError = CorruptFormatError


class DataIntegrityWarning(RAFError, UserWarning):
    """
    Advisory about data that may be lost or was never tested.

    Collected in write results rather than raised, except when the
    StrictPadding option escalates non-zero padding to a fatal error.
    """
    pass


class FatalWriteError(MetadataWriteError):
    """
    Raised when the output cannot be written.

    Any partial output must be treated as invalid.
    """
    pass


class InvalidTagError(RAFError):
    """
    Raised when a tag cannot be written.

    This exception is raised when:
    - Tag name is not one of the writable embedded-JPEG tags
    - Tag value type is incompatible with the tag
    """
    pass
