"""
Upload Configuration Handler

Optional YAML overrides for upload tuning (config/upload.yaml).
Defaults come from config.settings; secrets stay in .env.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from config.settings import (
    COMPRESSION_CRF,
    COMPRESSION_ENABLED,
    COMPRESSION_PRESET,
    COMPRESSION_TEMP_DIR,
    COMPRESSION_TIMEOUT,
    FFMPEG_BINARY,
    HTTP_TIMEOUT,
    MAX_CONCURRENT_UPLOADS,
    UPLOAD_CHUNK_SIZE,
    UPLOAD_TIMEOUT,
)

VALID_PRESETS = (
    "ultrafast",
    "superfast",
    "veryfast",
    "faster",
    "fast",
    "medium",
    "slow",
    "slower",
    "veryslow",
)


class UploadConfig:
    """
    Upload configuration with YAML file support.

    Reads from config/upload.yaml if it exists, otherwise uses the
    defaults from config.settings. A missing file is not created.

    Usage:
        config = UploadConfig()
        workers = config.max_concurrent_uploads
        timeout = config.upload_timeout
    """

    DEFAULT_CONFIG_PATH = Path("config/upload.yaml")

    def __init__(self, config_path: Optional[Path] = None):
        """
        Initialize configuration.

        Args:
            config_path: Path to YAML config file (None = use default)
        """
        self.logger = logging.getLogger(__name__)
        self.config_path = Path(config_path) if config_path else self.DEFAULT_CONFIG_PATH

        self._config = self._load_config()

    def _get_defaults(self) -> Dict[str, Any]:
        return {
            # Queue
            "max_concurrent_uploads": MAX_CONCURRENT_UPLOADS,

            # Transfer
            "upload_timeout": UPLOAD_TIMEOUT,
            "http_timeout": HTTP_TIMEOUT,
            "chunk_size": UPLOAD_CHUNK_SIZE,

            # Compression
            "compression_enabled": COMPRESSION_ENABLED,
            "compression_temp_dir": str(COMPRESSION_TEMP_DIR),
            "ffmpeg_binary": FFMPEG_BINARY,
            "compression_crf": COMPRESSION_CRF,
            "compression_preset": COMPRESSION_PRESET,
            "compression_timeout": COMPRESSION_TIMEOUT,
        }

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file or use defaults"""
        config = self._get_defaults()

        if self.config_path.exists():
            try:
                with open(self.config_path, "r") as f:
                    file_config = yaml.safe_load(f) or {}

                if not isinstance(file_config, dict):
                    raise ValueError("top level must be a mapping")

                unknown = set(file_config) - set(config)
                if unknown:
                    self.logger.warning(
                        f"Ignoring unknown upload config keys: {sorted(unknown)}",
                    )
                config.update({k: v for k, v in file_config.items() if k in config})

                self.logger.info(f"Loaded upload config from {self.config_path}")

            except (OSError, ValueError, yaml.YAMLError) as e:
                self.logger.warning(
                    f"Failed to load config from {self.config_path}: {e}. "
                    f"Using defaults.",
                )
        else:
            self.logger.debug(
                f"No upload config at {self.config_path}, using defaults",
            )

        self._validate_config(config)
        return config

    def _validate_config(self, config: Dict[str, Any]) -> None:
        """Validate configuration values"""
        if config["max_concurrent_uploads"] < 1:
            raise ValueError("max_concurrent_uploads must be at least 1")

        if config["upload_timeout"] <= 0:
            raise ValueError("upload_timeout must be positive")

        if config["http_timeout"] <= 0:
            raise ValueError("http_timeout must be positive")

        if config["chunk_size"] < 1024:
            raise ValueError("chunk_size must be at least 1024 bytes")

        if not 0 <= config["compression_crf"] <= 51:
            raise ValueError("compression_crf must be between 0 and 51")

        if config["compression_preset"] not in VALID_PRESETS:
            raise ValueError(
                f"compression_preset must be one of {', '.join(VALID_PRESETS)}",
            )

        if config["max_concurrent_uploads"] > 8:
            self.logger.warning(
                "max_concurrent_uploads above 8 may saturate the uplink",
            )

    def _save_config(self) -> None:
        """Save configuration to YAML file"""
        try:
            self.config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.config_path, "w") as f:
                yaml.dump(
                    self._config,
                    f,
                    default_flow_style=False,
                    sort_keys=False,
                    indent=2,
                )
            self.logger.info(f"Config saved to {self.config_path}")
        except OSError as e:
            self.logger.error(f"Failed to save config: {e}")

    # =========================================================================
    # PROPERTY ACCESSORS
    # =========================================================================

    @property
    def max_concurrent_uploads(self) -> int:
        return self._config["max_concurrent_uploads"]

    @property
    def upload_timeout(self) -> float:
        """Deadline for one PUT (seconds)"""
        return self._config["upload_timeout"]

    @property
    def http_timeout(self) -> float:
        """Timeout for broker API calls (seconds)"""
        return self._config["http_timeout"]

    @property
    def chunk_size(self) -> int:
        return self._config["chunk_size"]

    @property
    def compression_enabled(self) -> bool:
        return self._config["compression_enabled"]

    @property
    def compression_temp_dir(self) -> Path:
        return Path(self._config["compression_temp_dir"])

    @property
    def ffmpeg_binary(self) -> str:
        return self._config["ffmpeg_binary"]

    @property
    def compression_crf(self) -> int:
        return self._config["compression_crf"]

    @property
    def compression_preset(self) -> str:
        return self._config["compression_preset"]

    @property
    def compression_timeout(self) -> float:
        return self._config["compression_timeout"]

    # =========================================================================
    # UTILITY METHODS
    # =========================================================================

    def get(self, key: str, default: Any = None) -> Any:
        return self._config.get(key, default)

    def set(self, key: str, value: Any, save: bool = True) -> None:
        """
        Set configuration value.

        Args:
            key: Configuration key
            value: New value
            save: If True, save to file immediately

        Raises:
            ValueError: The new value fails validation
        """
        updated = {**self._config, key: value}
        self._validate_config(updated)
        self._config = updated

        if save:
            self._save_config()

    def reload(self) -> None:
        """Reload configuration from file"""
        self._config = self._load_config()
        self.logger.info("Upload configuration reloaded")

    def to_dict(self) -> Dict[str, Any]:
        return self._config.copy()

    def __repr__(self) -> str:
        return f"UploadConfig(path={self.config_path})"
