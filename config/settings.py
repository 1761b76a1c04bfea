"""
Central Configuration File

ALL configuration values live here. This is the single source of truth.

Guidelines:
- Secrets (API keys, session tokens) should be in .env, NOT here
- Import these settings in modules: from config.settings import UPLOAD_TIMEOUT
- Per-install overrides of upload tuning go in config/upload.yaml
"""

import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


# =============================================================================
# UPLOAD CONFIGURATION
# =============================================================================

# Whole-transfer timeout for the PUT to the signed URL (seconds)
# 20 minutes covers multi-hundred-MB recordings on consumer uplinks
UPLOAD_TIMEOUT = int(os.getenv("UPLOAD_TIMEOUT", "1200"))

# Timeout for broker API calls (negotiate, finalize, quota)
HTTP_TIMEOUT = int(os.getenv("UPLOAD_HTTP_TIMEOUT", "30"))

# Body chunk size for streamed PUTs (bytes)
UPLOAD_CHUNK_SIZE = 1 * 1024 * 1024  # 1 MB

# Concurrent transfers (worker pool size)
MAX_CONCURRENT_UPLOADS = int(os.getenv("MAX_CONCURRENT_UPLOADS", "2"))

# Content type sent with every PUT
UPLOAD_CONTENT_TYPE = "video/mp4"

# =============================================================================
# COMPRESSION CONFIGURATION
# =============================================================================

COMPRESSION_ENABLED = _env_bool("UPLOAD_COMPRESSION_ENABLED", True)
COMPRESSION_TEMP_DIR = Path(
    os.getenv("UPLOAD_TEMP_DIR", "./temp_uploads"),
)
FFMPEG_BINARY = os.getenv("FFMPEG_BINARY", "ffmpeg")
COMPRESSION_VIDEO_CODEC = "libx264"
COMPRESSION_PRESET = "veryfast"
COMPRESSION_CRF = 28  # Higher = smaller file, lower quality
COMPRESSION_AUDIO_CODEC = "aac"
COMPRESSION_AUDIO_BITRATE = "128k"
COMPRESSION_TIMEOUT = 900  # 15 minutes

# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

LOG_DIR = os.getenv("UPLOAD_LOG_DIR", "/var/log/uploader")
LOG_FILE = "uploader.log"
LOG_FALLBACK_DIR = Path("logs")

# =============================================================================
# SECRETS (loaded from .env)
# =============================================================================
# IMPORTANT: These should NEVER be committed to version control!
# Create a .env file in the project root with these values

# Broker (signed-URL service) base URL, e.g. https://xyz.supabase.co
UPLOAD_BROKER_URL = os.getenv("UPLOAD_BROKER_URL", "")

# Public API key sent alongside the bearer token
UPLOAD_BROKER_API_KEY = os.getenv("UPLOAD_BROKER_API_KEY", "")

# Session token file (written by the desktop client after sign-in)
UPLOAD_SESSION_TOKEN_PATH = os.getenv(
    "UPLOAD_SESSION_TOKEN_PATH",
    "credentials/session.json",
)
