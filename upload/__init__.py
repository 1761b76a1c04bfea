"""
Upload Module

Concurrent video upload queue for signed-URL object storage.

Public API:
    - UploadController: High-level upload coordinator
    - UploadQueue: Concurrent queue with progress events
    - TransferSnapshot: Read-only view of a queued item
    - RemoteUpload: Server-side record of a finished upload
    - TransferStatus / ErrorKind: Status codes
    - create_upload_queue: Factory function

Usage:
    from upload import UploadController

    controller = UploadController()
    item_id = controller.upload_video("/path/to/video.mp4")
    snapshot = controller.wait_for(item_id)
"""

from upload.constants import ErrorKind, TransferStatus
from upload.controllers.upload_controller import UploadController
from upload.controllers.upload_queue import QueueEvent, UploadQueue
from upload.factory import create_upload_queue
from upload.interfaces.errors import AuthRequiredError, UploadError
from upload.models.remote_upload import RemoteUpload
from upload.models.transfer_item import TransferSnapshot

# Public API
__all__ = [
    "AuthRequiredError",
    "ErrorKind",
    "QueueEvent",
    "RemoteUpload",
    "TransferSnapshot",
    "TransferStatus",
    "UploadController",
    "UploadError",
    "UploadQueue",
    "create_upload_queue",
]
