"""
Transfer Pipeline

Drives one queued item through the upload stages:

    validate -> compress (0-30%) -> negotiate (30-40%)
             -> transfer (40-95%) -> finalize (95-100%) -> cleanup

Stage failures become item state through the ItemHandle; nothing raised by
a collaborator escapes run(). Compression and finalization failures are
recovered locally, everything else ends the item in error or cancelled.
"""

import logging
import os
from typing import Any, Mapping, Optional

from upload.constants import (
    CANCELLED_MESSAGE,
    DEFAULT_UPLOAD_TIMEOUT,
    PROGRESS_COMPRESS_DONE,
    PROGRESS_COMPRESS_STARTED,
    PROGRESS_FINALIZE_STARTED,
    PROGRESS_NEGOTIATE_DONE,
    PROGRESS_TRANSFER_DONE,
    PROGRESS_TRANSFER_SPAN,
    ErrorKind,
    FinalizeOutcome,
    RejectReason,
)
from upload.controllers.item_handle import ItemHandle
from upload.interfaces.broker_interface import (
    BrokerRejectedError,
    SignedUpload,
    SignedUrlBrokerInterface,
)
from upload.interfaces.compressor_interface import CompressorInterface
from upload.interfaces.errors import InvalidFileError, UploadError
from upload.interfaces.finalizer_interface import FinalizerInterface
from upload.interfaces.quota_interface import QuotaOracleInterface
from upload.interfaces.transport_interface import TransportInterface

_REJECTION_PREFIX = {
    RejectReason.QUOTA_EXCEEDED: "Storage quota exceeded",
    RejectReason.UNAUTHENTICATED: "Authentication rejected",
    RejectReason.SERVER_ERROR: "Failed to get upload URL",
}


class TransferPipeline:
    """
    Stage sequencer for a single transfer.

    One pipeline instance is shared by all queue workers; per-item state
    lives on the item (through its handle) and in run()'s locals.
    """

    def __init__(
        self,
        broker: SignedUrlBrokerInterface,
        transport: TransportInterface,
        finalizer: FinalizerInterface,
        quota: Optional[QuotaOracleInterface] = None,
        compressor: Optional[CompressorInterface] = None,
        upload_timeout: float = DEFAULT_UPLOAD_TIMEOUT,
    ):
        """
        Initialize pipeline.

        Args:
            broker: Issues signed upload URLs
            transport: Performs the PUT
            finalizer: Reports terminal outcome to the backend
            quota: Local quota mirror (None = no pre-check, no refresh)
            compressor: Optional pre-upload compressor
            upload_timeout: Deadline in seconds for the transfer stage
        """
        self.logger = logging.getLogger(__name__)
        self.broker = broker
        self.transport = transport
        self.finalizer = finalizer
        self.quota = quota
        self.compressor = compressor
        self.upload_timeout = upload_timeout

    def run(self, handle: ItemHandle) -> None:
        """
        Execute every stage for the item behind handle.

        Returns when the item is terminal (or was removed) and any
        temporary file has been released.
        """
        snapshot = handle.snapshot()
        if snapshot is None or not handle.begin():
            self.logger.info(
                f"Item {handle.item_id} removed or cancelled before start",
            )
            return

        source_path = snapshot.source_path
        working_path = source_path
        remote_id: Optional[str] = None

        try:
            self._validate_source(source_path)

            working_path = self._compress(handle, source_path)
            file_size = os.path.getsize(working_path)
            handle.set_working_path(working_path, file_size)
            handle.advance(PROGRESS_COMPRESS_DONE)
            self._check_cancelled(handle)

            signed = self._negotiate(source_path, file_size, snapshot.metadata)
            remote_id = signed.remote_id
            handle.set_remote_id(remote_id)
            handle.advance(PROGRESS_NEGOTIATE_DONE)
            self._check_cancelled(handle)

            self._transfer(handle, signed, working_path)

            # A cancel that lands after the PUT was acknowledged still wins
            if not handle.commit():
                raise UploadError(CANCELLED_MESSAGE, kind=ErrorKind.CANCELLED)

            handle.advance(PROGRESS_TRANSFER_DONE)
            handle.advance(PROGRESS_FINALIZE_STARTED)
            self._finalize(remote_id, FinalizeOutcome.UPLOADED)
            self._record_upload(file_size)
            handle.complete()

            self.logger.info(
                f"✅ Upload complete: {os.path.basename(source_path)} "
                f"({file_size / (1024 * 1024):.1f} MB, id: {remote_id})",
            )

        except UploadError as e:
            self._handle_failure(handle, e, remote_id)

        except Exception as e:
            self.logger.error(f"Unexpected upload error: {e}", exc_info=True)
            self._handle_failure(
                handle,
                UploadError(f"Unexpected upload error: {e}", kind=ErrorKind.UNKNOWN),
                remote_id,
            )

        finally:
            if working_path != source_path:
                self._cleanup(working_path)

    # =========================================================================
    # STAGES
    # =========================================================================

    def _validate_source(self, source_path: str) -> None:
        if not os.path.isfile(source_path):
            raise InvalidFileError(f"Video file not found: {source_path}")
        if os.path.getsize(source_path) == 0:
            raise InvalidFileError(f"Video file is empty: {source_path}")

    def _compress(self, handle: ItemHandle, source_path: str) -> str:
        """
        Run the compressor, falling back to the original on any failure.

        Returns:
            Path to upload
        """
        if self.compressor is None:
            return source_path

        handle.advance(PROGRESS_COMPRESS_STARTED)

        try:
            compressed_path = self.compressor.compress(source_path)
        except Exception as e:
            self.logger.warning(
                f"Video compression failed, uploading original: {e}",
            )
            return source_path

        if not compressed_path or not os.path.isfile(compressed_path):
            self.logger.warning(
                f"Compressor returned no file ({compressed_path}), "
                f"uploading original",
            )
            return source_path

        return compressed_path

    def _negotiate(
        self,
        source_path: str,
        file_size: int,
        metadata: Mapping[str, Any],
    ) -> SignedUpload:
        """
        Check the local quota mirror, then ask the broker for a URL.

        Raises:
            UploadError: Quota pre-check failed
            BrokerRejectedError: Broker refused
        """
        self._check_quota(file_size)

        file_name = os.path.basename(source_path)
        self.logger.debug(f"Negotiating upload URL: {file_name} ({file_size} bytes)")

        signed = self.broker.negotiate_upload(file_name, file_size, dict(metadata))

        self.logger.info(f"Upload URL issued for {file_name} (id: {signed.remote_id})")
        return signed

    def _check_quota(self, file_size: int) -> None:
        if self.quota is None:
            return

        try:
            fits = self.quota.would_fit(file_size)
            usage = self.quota.get_usage()
        except Exception as e:
            # Mirror unavailable; the broker still enforces the quota
            self.logger.warning(f"Quota check skipped: {e}")
            return

        if not fits:
            raise UploadError(
                f"Storage quota exceeded: {file_size} bytes needed, "
                f"{usage.remaining} bytes available",
                kind=ErrorKind.QUOTA_EXCEEDED,
            )

    def _transfer(
        self,
        handle: ItemHandle,
        signed: SignedUpload,
        working_path: str,
    ) -> None:
        """
        PUT the working file, mapping transport progress onto 40-95%.

        Raises:
            TransportError: network, timeout, non-2xx or aborted
        """

        def on_progress(fraction: float) -> None:
            fraction = min(max(fraction, 0.0), 1.0)
            handle.advance(
                PROGRESS_NEGOTIATE_DONE + int(PROGRESS_TRANSFER_SPAN * fraction),
            )

        with handle.cancel_scope() as cancel_token:
            ack = self.transport.put(
                signed.upload_url,
                working_path,
                on_progress,
                cancel_token,
                self.upload_timeout,
            )

        self.logger.debug(
            f"Transfer acknowledged: HTTP {ack.status_code}, {ack.bytes_sent} bytes",
        )

    def _finalize(self, remote_id: str, outcome: FinalizeOutcome) -> None:
        """Report outcome; failures only leave backend bookkeeping stale"""
        try:
            self.finalizer.mark_terminal(remote_id, outcome)
            self.logger.debug(f"Finalized {remote_id} as {outcome.value}")
        except Exception as e:
            self.logger.warning(
                f"Failed to mark upload {remote_id} as {outcome.value}: {e}",
            )

    def _record_upload(self, file_size: int) -> None:
        if self.quota is None:
            return
        try:
            self.quota.record_delta(file_size)
            self.quota.refresh()
        except Exception as e:
            self.logger.warning(f"Quota refresh failed: {e}")

    def _cleanup(self, working_path: str) -> None:
        """Release the compressor's temp file (runs once per item)"""
        try:
            self.compressor.release(working_path)
        except OSError as e:
            self.logger.warning(f"Failed to delete temp compressed file: {e}")

    # =========================================================================
    # FAILURE HANDLING
    # =========================================================================

    def _check_cancelled(self, handle: ItemHandle) -> None:
        if handle.cancel_requested:
            raise UploadError(CANCELLED_MESSAGE, kind=ErrorKind.CANCELLED)

    def _handle_failure(
        self,
        handle: ItemHandle,
        error: UploadError,
        remote_id: Optional[str],
    ) -> None:
        """
        Settle the item on cancelled or error and tell the backend.

        The explicit cancel flag decides cancelled vs error: an aborted
        transport looks the same whichever side closed the connection.
        """
        if handle.cancel_requested:
            handle.finish_cancelled()
            self.logger.info(f"Upload cancelled: {handle.item_id}")
        else:
            # Aborted with no cancel request: the connection was dropped
            kind = error.kind
            if kind == ErrorKind.CANCELLED:
                kind = ErrorKind.TRANSFER_FAILED
            message = self._describe(error)
            handle.fail(kind, message)
            self.logger.error(
                f"❌ Upload failed: {message} (kind: {kind.value})",
            )

        if remote_id is not None:
            self._finalize(remote_id, FinalizeOutcome.FAILED)

    def _describe(self, error: UploadError) -> str:
        """Human-readable message for the item's error_message"""
        if isinstance(error, BrokerRejectedError):
            return f"{_REJECTION_PREFIX[error.reason]}: {error}"
        return str(error)
