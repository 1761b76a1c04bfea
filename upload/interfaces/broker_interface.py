"""
Signed-URL Broker Interface

Abstract interface for the service that hands out time-limited upload URLs
and keeps the per-user record of finished uploads.
The broker is the authority on quota: it may reject a negotiation even when
the local quota mirror says the file fits.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from upload.constants import ErrorKind, RejectReason
from upload.interfaces.errors import UploadError
from upload.models.remote_upload import RemoteUpload


@dataclass(frozen=True)
class SignedUpload:
    """
    Result of a successful negotiation.

    Attributes:
        upload_url: Pre-authorized URL accepting a single PUT
        remote_id: Server-side record identifier for finalization
        object_key: Storage key the URL writes to (if the broker reports it)
    """

    upload_url: str
    remote_id: str
    object_key: Optional[str] = None


class BrokerRejectedError(UploadError):
    """
    Negotiation refused by the broker.

    Attributes:
        reason: quota_exceeded, unauthenticated or server_error
    """

    _KIND_BY_REASON = {
        RejectReason.QUOTA_EXCEEDED: ErrorKind.QUOTA_EXCEEDED,
        RejectReason.UNAUTHENTICATED: ErrorKind.AUTH_REQUIRED,
        RejectReason.SERVER_ERROR: ErrorKind.NEGOTIATION_FAILED,
    }

    def __init__(self, message: str, reason: RejectReason = RejectReason.SERVER_ERROR):
        super().__init__(message, kind=self._KIND_BY_REASON[reason])
        self.reason = reason


class SignedUrlBrokerInterface(ABC):
    """
    Abstract base class for signed-URL brokers.
    """

    @abstractmethod
    def negotiate_upload(
        self,
        file_name: str,
        file_size: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SignedUpload:
        """
        Ask the broker for an upload URL.

        Args:
            file_name: Proposed object name (basename of the source file)
            file_size: Size in bytes of the file that will be PUT
            metadata: Caller metadata stored with the server record

        Returns:
            SignedUpload with URL and record id

        Raises:
            BrokerRejectedError: Quota exceeded, auth rejected, server error
        """

    def delete_upload(self, remote_id: str) -> None:
        """
        Delete a server-side upload record.

        Optional; brokers that cannot delete raise NotImplementedError.
        """
        raise NotImplementedError(f"{type(self).__name__} cannot delete uploads")

    def list_uploads(self) -> List[RemoteUpload]:
        """
        Finished uploads of the signed-in user, newest first.

        Optional; brokers without a record store raise NotImplementedError.

        Raises:
            UploadError: Backend refused or was unreachable
        """
        raise NotImplementedError(f"{type(self).__name__} cannot list uploads")

    def download_upload(self, remote_id: str, dest_path: str) -> str:
        """
        Fetch an uploaded video to a local file.

        Optional; brokers that cannot issue download URLs raise
        NotImplementedError.

        Args:
            remote_id: Upload record id
            dest_path: Local file to write (replaced if it exists)

        Returns:
            dest_path

        Raises:
            UploadError: Unknown record, auth rejected or transfer failed
        """
        raise NotImplementedError(f"{type(self).__name__} cannot download uploads")
