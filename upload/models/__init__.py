"""
Models Package

Data structures for queued transfers and server-side upload records.
"""

from upload.models.remote_upload import RemoteUpload
from upload.models.transfer_item import (
    InvalidTransitionError,
    TransferItem,
    TransferSnapshot,
)

__all__ = [
    "InvalidTransitionError",
    "RemoteUpload",
    "TransferItem",
    "TransferSnapshot",
]
