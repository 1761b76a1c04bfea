"""
FFmpeg Compressor Implementation

Re-encodes a recording with x264 into a temporary file before upload.
Wraps the ffmpeg binary via subprocess.
"""

import logging
import shutil
import subprocess
import time
import uuid
from pathlib import Path
from typing import Union

from config.settings import (
    COMPRESSION_CRF,
    COMPRESSION_PRESET,
    COMPRESSION_TEMP_DIR,
    COMPRESSION_TIMEOUT,
    FFMPEG_BINARY,
)
from upload.constants import (
    COMPRESSED_FILENAME_EXTENSION,
    COMPRESSED_FILENAME_PREFIX,
    get_compression_command,
)
from upload.interfaces.compressor_interface import CompressionError, CompressorInterface


class FFmpegCompressor(CompressorInterface):
    """
    Video compressor using FFmpeg.

    Output goes to temp_dir as upload_<stem>_<random>.mp4 and is deleted
    by release() once the pipeline is done with it.

    Usage:
        compressor = FFmpegCompressor()
        path = compressor.compress("/videos/game.mp4")
        ...
        compressor.release(path)
    """

    def __init__(
        self,
        temp_dir: Union[str, Path] = COMPRESSION_TEMP_DIR,
        ffmpeg_binary: str = FFMPEG_BINARY,
        crf: int = COMPRESSION_CRF,
        preset: str = COMPRESSION_PRESET,
        timeout: float = COMPRESSION_TIMEOUT,
    ):
        """
        Initialize FFmpeg compressor.

        Args:
            temp_dir: Directory for compressed copies
            ffmpeg_binary: ffmpeg executable name or path
            crf: x264 constant rate factor
            preset: x264 speed preset
            timeout: Maximum seconds for one encode
        """
        self.logger = logging.getLogger(__name__)
        self.temp_dir = Path(temp_dir)
        self.ffmpeg_binary = ffmpeg_binary
        self.crf = crf
        self.preset = preset
        self.timeout = timeout

        self.logger.info(
            f"FFmpeg Compressor initialized (crf: {crf}, preset: {preset}, "
            f"temp: {self.temp_dir})",
        )

    def is_available(self) -> bool:
        """True if the ffmpeg binary can be found"""
        return shutil.which(self.ffmpeg_binary) is not None

    def _output_path(self, source: Path) -> Path:
        name = (
            f"{COMPRESSED_FILENAME_PREFIX}_{source.stem}_{uuid.uuid4().hex[:8]}"
            f"{COMPRESSED_FILENAME_EXTENSION}"
        )
        return self.temp_dir / name

    def compress(self, path: str) -> str:
        if not self.is_available():
            raise CompressionError(f"ffmpeg not found: {self.ffmpeg_binary}")

        source = Path(path)
        if not source.is_file():
            raise CompressionError(f"Source video not found: {path}")

        self.temp_dir.mkdir(parents=True, exist_ok=True)
        output = self._output_path(source)
        command = get_compression_command(
            self.ffmpeg_binary,
            str(source),
            str(output),
            crf=self.crf,
            preset=self.preset,
        )

        self.logger.info(f"Compressing {source.name} for upload")
        self.logger.debug(f"FFmpeg command: {' '.join(command)}")
        start_time = time.time()

        try:
            result = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as e:
            self._discard(output)
            raise CompressionError(
                f"Compression timed out after {self.timeout:.0f}s",
            ) from e
        except OSError as e:
            self._discard(output)
            raise CompressionError(f"Failed to run ffmpeg: {e}") from e

        if result.returncode != 0:
            self._discard(output)
            stderr = (result.stderr or "").strip().splitlines()
            detail = stderr[-1] if stderr else f"exit code {result.returncode}"
            raise CompressionError(f"ffmpeg failed: {detail}")

        if not output.exists() or output.stat().st_size == 0:
            self._discard(output)
            raise CompressionError("ffmpeg produced no output")

        original_size = source.stat().st_size
        compressed_size = output.stat().st_size
        self.logger.info(
            f"Compressed {source.name}: "
            f"{original_size / (1024 * 1024):.1f} MB -> "
            f"{compressed_size / (1024 * 1024):.1f} MB "
            f"in {time.time() - start_time:.1f}s",
        )

        return str(output)

    def _discard(self, output: Path) -> None:
        try:
            output.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove partial output {output}: {e}")

    def get_temp_files(self) -> list:
        """Compressed files currently in temp_dir (diagnostics)"""
        if not self.temp_dir.exists():
            return []
        pattern = f"{COMPRESSED_FILENAME_PREFIX}_*{COMPRESSED_FILENAME_EXTENSION}"
        return sorted(str(p) for p in self.temp_dir.glob(pattern))
