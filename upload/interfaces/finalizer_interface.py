"""
Finalizer Interface

Reports a transfer's real outcome to the backend so its bookkeeping
(upload record status, storage usage) matches what happened.
"""

from abc import ABC, abstractmethod

from upload.constants import ErrorKind, FinalizeOutcome
from upload.interfaces.errors import UploadError


class FinalizeError(UploadError):
    """Backend bookkeeping update failed (non-fatal)"""

    def __init__(self, message: str):
        super().__init__(message, kind=ErrorKind.FINALIZE_WARNING)


class FinalizerInterface(ABC):
    """
    Abstract base class for finalizers.
    """

    @abstractmethod
    def mark_terminal(self, remote_id: str, outcome: FinalizeOutcome) -> None:
        """
        Record the terminal outcome of an upload.

        Args:
            remote_id: Record id returned by the broker
            outcome: UPLOADED or FAILED

        Raises:
            FinalizeError: If the backend could not be updated
        """
