"""
Mock Compressor Implementation

Copies the source to a temp directory instead of re-encoding, so tests
get a real temporary file whose cleanup can be checked.
"""

import logging
import shutil
import tempfile
import threading
import uuid
from pathlib import Path
from typing import List, Optional, Union

from upload.interfaces.compressor_interface import CompressionError, CompressorInterface


class MockCompressor(CompressorInterface):
    """
    Simulated compressor.

    Args:
        fail: If True, compress() raises CompressionError
        temp_dir: Where copies go (a fresh temp dir by default)
    """

    def __init__(self, fail: bool = False, temp_dir: Optional[Union[str, Path]] = None):
        self.logger = logging.getLogger(__name__)
        self.fail = fail
        self.temp_dir = Path(temp_dir or tempfile.mkdtemp(prefix="mock_compress_"))
        self.compressed: List[str] = []
        self.released: List[str] = []
        self._lock = threading.Lock()

    def compress(self, path: str) -> str:
        if self.fail:
            raise CompressionError("Simulated compression failure")

        source = Path(path)
        output = self.temp_dir / f"upload_{source.stem}_{uuid.uuid4().hex[:8]}.mp4"
        self.temp_dir.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, output)

        with self._lock:
            self.compressed.append(str(output))

        self.logger.info(f"[MOCK] Compressed {source.name} -> {output.name}")
        return str(output)

    def release(self, path: str) -> None:
        with self._lock:
            self.released.append(path)
        super().release(path)

    def release_count(self, path: str) -> int:
        with self._lock:
            return self.released.count(path)
