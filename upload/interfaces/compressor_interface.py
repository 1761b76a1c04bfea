"""
Compressor Interface

Abstract interface for the optional pre-upload compression step.
Compression is opaque: it either produces a new file or fails, and a
failure never stops the upload.
"""

import logging
import os
from abc import ABC, abstractmethod

from upload.constants import ErrorKind
from upload.interfaces.errors import UploadError


class CompressionError(UploadError):
    """Compression failed; caller falls back to the original file"""

    def __init__(self, message: str):
        super().__init__(message, kind=ErrorKind.TRANSFER_FAILED)


class CompressorInterface(ABC):
    """
    Abstract base class for video compressors.
    """

    @abstractmethod
    def compress(self, path: str) -> str:
        """
        Produce a file to upload in place of path.

        Args:
            path: Source video

        Returns:
            Path of the compressed copy (may equal path)

        Raises:
            CompressionError: If compression failed
        """

    def release(self, path: str) -> None:
        """
        Delete an artifact previously returned by compress().

        Missing files are ignored; other OS errors propagate.
        """
        try:
            os.remove(path)
            logging.getLogger(__name__).debug(f"Removed temp file: {path}")
        except FileNotFoundError:
            pass
