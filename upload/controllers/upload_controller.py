"""
Upload Controller

High-level coordinator for video uploads.
Simplifies upload operations for the desktop client and the CLI.

- Clean, simple API over the queue and its collaborators
- Handles component creation internally
- Proper error handling and logging
"""

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from upload.config import UploadConfig
from upload.controllers.upload_queue import QueueEvent, UploadQueue
from upload.factory import UploadComponents, UploadFactory, UploadMode
from upload.interfaces.errors import AuthRequiredError, UploadError
from upload.interfaces.quota_interface import QuotaUsage
from upload.models.remote_upload import RemoteUpload
from upload.models.transfer_item import TransferSnapshot


class UploadController:
    """
    High-level video upload controller.

    This class:
    - Queues videos and exposes their progress
    - Owns the queue's lifetime (shutdown on cleanup)
    - Reports and adjusts storage quota
    - Lists, downloads and deletes finished uploads

    Usage:
        controller = UploadController()

        item_id = controller.upload_video(
            "/recordings/2025-10-12_18-30-45.mp4",
            metadata={"stage": "battlefield"},
        )
        snapshot = controller.wait_for(item_id)

        if snapshot.status == TransferStatus.COMPLETED:
            print(f"Uploaded: {snapshot.remote_id}")
    """

    def __init__(
        self,
        components: Optional[UploadComponents] = None,
        config: Optional[UploadConfig] = None,
        mode: UploadMode = "auto",
        max_concurrent_uploads: Optional[int] = None,
    ):
        """
        Initialize upload controller.

        Args:
            components: Pre-built collaborators, or None to auto-create
            config: Upload tuning (None = load config/upload.yaml)
            mode: Factory mode used when components is None
            max_concurrent_uploads: Override configured pool size

        Example:
            # Normal usage - auto-creates from .env
            controller = UploadController()

            # Mock backend (testing)
            controller = UploadController(mode="mock")
        """
        self.logger = logging.getLogger(__name__)

        self.config = config or UploadConfig()
        self.components = components or UploadFactory.create_components(
            mode=mode,
            config=self.config,
        )
        self.queue: UploadQueue = UploadFactory.create_queue(
            self.components,
            config=self.config,
            max_concurrent_uploads=max_concurrent_uploads,
        )

        if not self.is_ready():
            self.logger.warning(
                "Upload Controller initialized but not signed in. "
                "Uploads will be refused until a session is available.",
            )

        self.logger.info(
            f"Upload Controller initialized ({self.components.mode} backend)",
        )

    # =========================================================================
    # QUEUE OPERATIONS
    # =========================================================================

    def upload_video(
        self,
        video_path: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Queue a video for upload.

        Args:
            video_path: Path to video file
            metadata: Game metadata forwarded to the backend

        Returns:
            Queue item id

        Raises:
            AuthRequiredError: Not signed in
        """
        item_id = self.queue.enqueue(video_path, metadata)
        self.logger.info(f"Video queued for upload: {video_path} ({item_id})")
        return item_id

    def cancel(self, item_id: str) -> bool:
        return self.queue.cancel(item_id)

    def remove(self, item_id: str) -> bool:
        return self.queue.remove(item_id)

    def clear_completed(self) -> int:
        return self.queue.clear_completed()

    def clear_errors(self) -> int:
        return self.queue.clear_errors()

    def clear_finished(self) -> int:
        return self.queue.clear_finished()

    def wait_for(
        self,
        item_id: str,
        timeout: Optional[float] = None,
    ) -> Optional[TransferSnapshot]:
        """
        Block until an item finishes.

        Returns:
            Final snapshot, or None if the item was removed
        """
        return self.queue.wait(item_id, timeout=timeout)

    def subscribe(self, callback: Callable[[QueueEvent], None]) -> Callable[[], None]:
        return self.queue.subscribe(callback)

    # =========================================================================
    # STORAGE
    # =========================================================================

    def get_quota(self) -> Optional[QuotaUsage]:
        """
        Current storage usage, or None if it cannot be fetched.

        Example:
            usage = controller.get_quota()
            if usage:
                print(f"{usage.percent_used:.0f}% of storage used")
        """
        try:
            return self.components.quota.get_usage()
        except Exception as e:
            self.logger.warning(f"Storage quota unavailable: {e}")
            return None

    def delete_upload(self, remote_id: str, file_size: int) -> bool:
        """
        Delete an uploaded video and give its bytes back to the quota.

        Args:
            remote_id: Upload record id (TransferSnapshot.remote_id)
            file_size: Size that was uploaded

        Returns:
            True if the backend deleted the record
        """
        try:
            self.components.broker.delete_upload(remote_id)
        except (UploadError, NotImplementedError) as e:
            self.logger.error(f"❌ Delete failed: {e}")
            return False

        quota = self.components.quota
        quota.record_delta(-file_size)
        try:
            quota.refresh()
        except Exception as e:
            self.logger.warning(f"Quota refresh failed after delete: {e}")

        self.logger.info(f"✅ Upload deleted: {remote_id}")
        return True

    def list_uploads(self) -> List[RemoteUpload]:
        """
        Finished uploads of the signed-in user, newest first.

        Returns an empty list when signed out or when the backend cannot
        be reached.
        """
        if not self.is_ready():
            return []

        try:
            uploads = self.components.broker.list_uploads()
        except (UploadError, NotImplementedError) as e:
            self.logger.error(f"❌ Failed to fetch uploads: {e}")
            return []

        self.logger.debug(f"{len(uploads)} upload(s) in cloud storage")
        return uploads

    def download_upload(self, remote_id: str, dest_path: str) -> str:
        """
        Download an uploaded video to a local file.

        Args:
            remote_id: Upload record id
            dest_path: Local file to write

        Returns:
            Path of the downloaded file

        Raises:
            AuthRequiredError: Not signed in
            UploadError: Unknown record or download failed
        """
        if not self.components.session.is_authenticated():
            raise AuthRequiredError("Must be authenticated to download")
        if not self.components.session.get_token():
            raise AuthRequiredError("No auth token available")

        try:
            path = self.components.broker.download_upload(remote_id, dest_path)
        except NotImplementedError as e:
            raise UploadError(str(e)) from e

        self.logger.info(f"✅ Upload downloaded: {remote_id} -> {path}")
        return path

    # =========================================================================
    # STATUS
    # =========================================================================

    def is_ready(self) -> bool:
        """True if signed in and uploads will be accepted"""
        session = self.components.session
        return session.is_authenticated() and bool(session.get_token())

    def get_status(self) -> Dict[str, Any]:
        """
        Get current controller status.

        Example:
            status = controller.get_status()
            print(f"Ready: {status['ready']}")
            print(f"Progress: {status['queue']['overall_progress']}%")
        """
        usage = self.get_quota()
        return {
            "ready": self.is_ready(),
            "backend": self.components.mode,
            "compression": self.components.compressor is not None,
            "queue": self.queue.get_queue_status(),
            "quota": (
                {"used": usage.used, "limit": usage.limit}
                if usage is not None
                else None
            ),
        }

    def cleanup(self, cancel_active: bool = True) -> None:
        """
        Shut the queue down and release HTTP connections.

        Args:
            cancel_active: Cancel unfinished uploads instead of waiting
        """
        self.logger.info("Upload Controller cleanup")
        self.queue.shutdown(wait=True, cancel_active=cancel_active)
        self.components.close()
