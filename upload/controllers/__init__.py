"""
Controllers Package

Queue, pipeline and high-level upload coordinator.
"""

from upload.controllers.item_handle import ItemHandle
from upload.controllers.transfer_pipeline import TransferPipeline
from upload.controllers.upload_controller import UploadController
from upload.controllers.upload_queue import QueueEvent, UploadQueue

__all__ = [
    "ItemHandle",
    "QueueEvent",
    "TransferPipeline",
    "UploadController",
    "UploadQueue",
]
