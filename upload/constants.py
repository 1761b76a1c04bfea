"""
Upload Constants

Centralized configuration for the upload queue and transfer pipeline.
Tunables come from config.settings; everything here is protocol-level.
"""

from enum import Enum

from config.settings import (
    COMPRESSION_AUDIO_BITRATE,
    COMPRESSION_AUDIO_CODEC,
    COMPRESSION_CRF,
    COMPRESSION_PRESET,
    COMPRESSION_VIDEO_CODEC,
    HTTP_TIMEOUT,
    MAX_CONCURRENT_UPLOADS,
    UPLOAD_CHUNK_SIZE,
    UPLOAD_CONTENT_TYPE,
    UPLOAD_TIMEOUT,
)

# =============================================================================
# TRANSFER STATUS
# =============================================================================


class TransferStatus(Enum):
    """Lifecycle state of a TransferItem"""

    PENDING = "pending"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset(
    {TransferStatus.COMPLETED, TransferStatus.ERROR, TransferStatus.CANCELLED},
)
ACTIVE_STATUSES = frozenset({TransferStatus.PENDING, TransferStatus.UPLOADING})


# =============================================================================
# ERROR TAXONOMY
# =============================================================================


class ErrorKind(Enum):
    """Classification attached to failed or cancelled items"""

    AUTH_REQUIRED = "auth_required"
    QUOTA_EXCEEDED = "quota_exceeded"
    NEGOTIATION_FAILED = "negotiation_failed"
    TRANSFER_FAILED = "transfer_failed"
    CANCELLED = "cancelled"
    FINALIZE_WARNING = "finalize_warning"
    INVALID_FILE = "invalid_file"
    UNKNOWN = "unknown"


class RejectReason(Enum):
    """Reasons the signed-URL broker can refuse a negotiation"""

    QUOTA_EXCEEDED = "quota_exceeded"
    UNAUTHENTICATED = "unauthenticated"
    SERVER_ERROR = "server_error"


class TransportFailureKind(Enum):
    """Ways a PUT to a signed URL can fail"""

    NETWORK = "network"
    TIMEOUT = "timeout"
    SERVER_STATUS = "server_status"
    ABORTED = "aborted"


class FinalizeOutcome(Enum):
    """Terminal status reported back to the broker"""

    UPLOADED = "UPLOADED"
    FAILED = "FAILED"


CANCELLED_MESSAGE = "cancelled by user"

# =============================================================================
# PROGRESS WEIGHTS
# =============================================================================
# Compression 0-30, negotiation 30-40, transfer 40-95, finalization 95-100.
# Transfer dominates so the bar moves linearly during the long wait.

PROGRESS_COMPRESS_STARTED = 2
PROGRESS_COMPRESS_DONE = 30
PROGRESS_NEGOTIATE_DONE = 40
PROGRESS_TRANSFER_SPAN = 55
PROGRESS_TRANSFER_DONE = PROGRESS_NEGOTIATE_DONE + PROGRESS_TRANSFER_SPAN  # 95
PROGRESS_FINALIZE_STARTED = 97
PROGRESS_COMPLETE = 100

# =============================================================================
# TRANSFER CONFIGURATION
# =============================================================================

DEFAULT_UPLOAD_TIMEOUT = UPLOAD_TIMEOUT
DEFAULT_HTTP_TIMEOUT = HTTP_TIMEOUT
DEFAULT_CHUNK_SIZE = UPLOAD_CHUNK_SIZE
DEFAULT_MAX_CONCURRENT_UPLOADS = MAX_CONCURRENT_UPLOADS
DEFAULT_CONTENT_TYPE = UPLOAD_CONTENT_TYPE

# Connect timeout for the PUT; the overall deadline is DEFAULT_UPLOAD_TIMEOUT
TRANSPORT_CONNECT_TIMEOUT = 15

# =============================================================================
# BROKER API
# =============================================================================

NEGOTIATE_ENDPOINT = "/functions/v1/generate-upload-url"
FINALIZE_ENDPOINT = "/functions/v1/complete-upload"
PROFILE_ENDPOINT = "/rest/v1/profiles"
UPLOADS_ENDPOINT = "/rest/v1/uploads"
DOWNLOAD_ENDPOINT = "/functions/v1/generate-download-url"

# Partial downloads are written beside the destination, then renamed
DOWNLOAD_PART_SUFFIX = ".part"
DOWNLOAD_CHUNK_SIZE = 1024 * 1024

# HTTP status codes the broker uses for rejections
HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_PAYLOAD_TOO_LARGE = 413
HTTP_STATUS_NOT_FOUND = 404

# =============================================================================
# QUEUE EVENTS
# =============================================================================

EVENT_ITEM_ADDED = "item_added"
EVENT_ITEM_UPDATED = "item_updated"
EVENT_ITEM_REMOVED = "item_removed"

# =============================================================================
# COMPRESSION
# =============================================================================

COMPRESSED_FILENAME_PREFIX = "upload"
COMPRESSED_FILENAME_EXTENSION = ".mp4"


def get_compression_command(
    ffmpeg_binary: str,
    input_file: str,
    output_file: str,
    crf: int = COMPRESSION_CRF,
    preset: str = COMPRESSION_PRESET,
) -> list:
    """
    Build the FFmpeg command line used to shrink a recording before upload.

    Args:
        ffmpeg_binary: Path or name of the ffmpeg executable
        input_file: Source video
        output_file: Destination for the compressed copy
        crf: x264 constant rate factor
        preset: x264 speed preset

    Returns:
        Argument list for subprocess
    """
    return [
        ffmpeg_binary,
        "-y",
        "-hide_banner",
        "-loglevel",
        "error",
        "-i",
        input_file,
        "-c:v",
        COMPRESSION_VIDEO_CODEC,
        "-preset",
        preset,
        "-crf",
        str(crf),
        "-c:a",
        COMPRESSION_AUDIO_CODEC,
        "-b:a",
        COMPRESSION_AUDIO_BITRATE,
        "-movflags",
        "+faststart",
        output_file,
    ]
