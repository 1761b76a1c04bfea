"""
Upload Factory

Builds the upload collaborators (session, broker, transport, finalizer,
quota oracle, compressor) and wires them into a pipeline and queue.

Automatically configures from environment variables and
config/upload.yaml.
"""

import logging
from dataclasses import dataclass
from typing import Literal, Optional

from config.settings import (
    UPLOAD_BROKER_API_KEY,
    UPLOAD_BROKER_URL,
    UPLOAD_SESSION_TOKEN_PATH,
)
from core.event_bus import EventBus
from upload.auth.session_manager import SessionManager
from upload.config import UploadConfig
from upload.controllers.transfer_pipeline import TransferPipeline
from upload.controllers.upload_queue import UploadQueue
from upload.implementations.ffmpeg_compressor import FFmpegCompressor
from upload.implementations.http_backend import (
    BrokerApiClient,
    HttpBroker,
    HttpFinalizer,
    HttpQuotaOracle,
)
from upload.implementations.http_transport import HttpTransport
from upload.implementations.mock_backend import (
    MockBroker,
    MockFinalizer,
    MockQuotaOracle,
    MockSession,
)
from upload.implementations.mock_compressor import MockCompressor
from upload.implementations.mock_transport import MockTransport
from upload.interfaces.broker_interface import SignedUrlBrokerInterface
from upload.interfaces.compressor_interface import CompressorInterface
from upload.interfaces.finalizer_interface import FinalizerInterface
from upload.interfaces.quota_interface import QuotaOracleInterface
from upload.interfaces.session_interface import SessionInterface
from upload.interfaces.transport_interface import TransportInterface

# Type alias
UploadMode = Literal["auto", "http", "mock"]


@dataclass
class UploadComponents:
    """Everything a TransferPipeline and UploadQueue need"""

    mode: str
    session: SessionInterface
    broker: SignedUrlBrokerInterface
    transport: TransportInterface
    finalizer: FinalizerInterface
    quota: QuotaOracleInterface
    compressor: Optional[CompressorInterface] = None
    api_client: Optional[BrokerApiClient] = None

    def close(self) -> None:
        if self.api_client is not None:
            self.api_client.close()


class UploadFactory:
    """
    Factory for upload components.

    Reads configuration from environment variables:
    - UPLOAD_BROKER_URL: Backend root URL
    - UPLOAD_BROKER_API_KEY: Public API key
    - UPLOAD_SESSION_TOKEN_PATH: Session JSON written at sign-in

    Usage:
        # Auto-detect from environment
        components = UploadFactory.create_components()

        # Force mock for testing
        components = UploadFactory.create_components(mode="mock")
    """

    _logger = logging.getLogger(__name__)

    @classmethod
    def create_components(
        cls,
        mode: UploadMode = "auto",
        config: Optional[UploadConfig] = None,
        compress: Optional[bool] = None,
    ) -> UploadComponents:
        """
        Create the upload collaborators.

        Args:
            mode: "auto" (from env), "http" (force real), "mock" (force sim)
            config: Upload tuning (None = load config/upload.yaml)
            compress: Override config.compression_enabled

        Returns:
            UploadComponents

        Raises:
            RuntimeError: If mode="http" but broker URL or session missing
        """
        config = config or UploadConfig()
        compress = config.compression_enabled if compress is None else compress

        if mode == "mock":
            cls._logger.info("Creating mock upload components (forced)")
            return cls._create_mock_components(compress)

        if mode == "http":
            try:
                components = cls._create_http_components(config, compress)
                cls._logger.info("Creating HTTP upload components (forced)")
                return components
            except Exception as e:
                raise RuntimeError(
                    f"HTTP upload backend requested but not available: {e}",
                ) from e

        # mode == "auto" - try HTTP first, fall back to mock
        try:
            components = cls._create_http_components(config, compress)
            cls._logger.info("Creating HTTP upload components (auto-detected)")
            return components
        except Exception as e:
            cls._logger.warning(
                f"HTTP upload backend not available ({e}), using mock components",
            )
            return cls._create_mock_components(compress)

    @classmethod
    def _create_http_components(
        cls,
        config: UploadConfig,
        compress: bool,
    ) -> UploadComponents:
        """
        Raises:
            ValueError: UPLOAD_BROKER_URL not set
            RuntimeError: No signed-in session on disk
        """
        if not UPLOAD_BROKER_URL:
            raise ValueError(
                "UPLOAD_BROKER_URL not set in environment. "
                "Add to .env file: UPLOAD_BROKER_URL=https://your-project.supabase.co",
            )

        session = SessionManager(UPLOAD_SESSION_TOKEN_PATH)
        if not session.is_authenticated():
            raise RuntimeError(
                f"No valid session in {UPLOAD_SESSION_TOKEN_PATH}. "
                f"Sign in with the desktop client first",
            )

        client = BrokerApiClient(
            base_url=UPLOAD_BROKER_URL,
            session=session,
            api_key=UPLOAD_BROKER_API_KEY,
            http_timeout=config.http_timeout,
        )

        return UploadComponents(
            mode="http",
            session=session,
            broker=HttpBroker(client),
            transport=HttpTransport(chunk_size=config.chunk_size),
            finalizer=HttpFinalizer(client),
            quota=HttpQuotaOracle(client),
            compressor=cls._create_ffmpeg_compressor(config) if compress else None,
            api_client=client,
        )

    @classmethod
    def _create_ffmpeg_compressor(
        cls,
        config: UploadConfig,
    ) -> Optional[FFmpegCompressor]:
        compressor = FFmpegCompressor(
            temp_dir=config.compression_temp_dir,
            ffmpeg_binary=config.ffmpeg_binary,
            crf=config.compression_crf,
            preset=config.compression_preset,
            timeout=config.compression_timeout,
        )
        if not compressor.is_available():
            cls._logger.warning(
                f"{config.ffmpeg_binary} not found, uploads will not be compressed",
            )
            return None
        return compressor

    @classmethod
    def _create_mock_components(cls, compress: bool) -> UploadComponents:
        broker = MockBroker()
        return UploadComponents(
            mode="mock",
            session=MockSession(),
            broker=broker,
            transport=MockTransport(),
            finalizer=MockFinalizer(broker=broker),
            quota=MockQuotaOracle(),
            compressor=MockCompressor() if compress else None,
        )

    @classmethod
    def create_pipeline(
        cls,
        components: UploadComponents,
        config: Optional[UploadConfig] = None,
    ) -> TransferPipeline:
        config = config or UploadConfig()
        return TransferPipeline(
            broker=components.broker,
            transport=components.transport,
            finalizer=components.finalizer,
            quota=components.quota,
            compressor=components.compressor,
            upload_timeout=config.upload_timeout,
        )

    @classmethod
    def create_queue(
        cls,
        components: UploadComponents,
        config: Optional[UploadConfig] = None,
        max_concurrent_uploads: Optional[int] = None,
        event_bus: Optional[EventBus] = None,
    ) -> UploadQueue:
        """
        Wire components into a ready-to-use queue.

        Args:
            components: From create_components()
            config: Upload tuning (None = load config/upload.yaml)
            max_concurrent_uploads: Override config value
            event_bus: Shared bus for queue events
        """
        config = config or UploadConfig()
        return UploadQueue(
            session=components.session,
            pipeline=cls.create_pipeline(components, config),
            max_concurrent_uploads=max_concurrent_uploads
            or config.max_concurrent_uploads,
            event_bus=event_bus,
        )

    @classmethod
    def is_http_available(cls) -> bool:
        """True if the HTTP backend can be configured from the environment"""
        if not UPLOAD_BROKER_URL:
            return False
        return SessionManager(UPLOAD_SESSION_TOKEN_PATH).is_authenticated()


# Convenience function for quick creation
def create_upload_queue(
    force_mock: bool = False,
    max_concurrent_uploads: Optional[int] = None,
) -> UploadQueue:
    """
    Quick queue creation with simple mock override.

    Args:
        force_mock: If True, always use mock components
        max_concurrent_uploads: Override configured pool size

    Example:
        queue = create_upload_queue(force_mock=True)
        item_id = queue.enqueue("/videos/game.mp4")
    """
    mode = "mock" if force_mock else "auto"
    config = UploadConfig()
    components = UploadFactory.create_components(mode=mode, config=config)
    return UploadFactory.create_queue(
        components,
        config=config,
        max_concurrent_uploads=max_concurrent_uploads,
    )
