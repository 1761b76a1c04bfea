"""
Transport Interface

Abstract interface for the byte transfer to a signed URL, plus the
CancelToken used to abort it from another thread.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, List, Optional

from upload.constants import ErrorKind, TransportFailureKind
from upload.interfaces.errors import UploadError

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class TransportAck:
    """
    Successful PUT acknowledgement.

    Attributes:
        status_code: HTTP status returned by object storage
        bytes_sent: Body bytes handed to the connection
        etag: ETag header, if the store returned one
    """

    status_code: int
    bytes_sent: int
    etag: Optional[str] = None


class TransportError(UploadError):
    """
    PUT failed.

    Attributes:
        failure_kind: network, timeout, server_status or aborted
        status_code: HTTP status for server_status failures
    """

    def __init__(
        self,
        message: str,
        failure_kind: TransportFailureKind = TransportFailureKind.NETWORK,
        status_code: Optional[int] = None,
    ):
        kind = (
            ErrorKind.CANCELLED
            if failure_kind == TransportFailureKind.ABORTED
            else ErrorKind.TRANSFER_FAILED
        )
        super().__init__(message, kind=kind)
        self.failure_kind = failure_kind
        self.status_code = status_code


class CancelToken:
    """
    Cancellation handle for one in-flight transfer.

    Transports poll is_cancelled between chunks and may register abort
    callbacks (e.g. closing the HTTP session) that run when cancel() fires.
    Callbacks registered after cancellation run immediately.
    """

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._callbacks: List[Callable[[], None]] = []

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        """Signal cancellation and run abort callbacks once"""
        with self._lock:
            if self._event.is_set():
                return
            self._event.set()
            callbacks, self._callbacks = self._callbacks, []

        for callback in callbacks:
            self._run_callback(callback)

    def add_abort_callback(self, callback: Callable[[], None]) -> None:
        with self._lock:
            if not self._event.is_set():
                self._callbacks.append(callback)
                return
        self._run_callback(callback)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; returns True if cancelled"""
        return self._event.wait(timeout)

    def release(self) -> None:
        """Drop abort callbacks (transfer stage ended)"""
        with self._lock:
            self._callbacks.clear()

    def _run_callback(self, callback: Callable[[], None]) -> None:
        try:
            callback()
        except Exception as e:
            self.logger.warning(f"Abort callback failed: {e}")


class TransportInterface(ABC):
    """
    Abstract base class for signed-URL transports.
    """

    @abstractmethod
    def put(
        self,
        url: str,
        file_path: str,
        on_progress: ProgressCallback,
        cancel_token: CancelToken,
        timeout: float,
    ) -> TransportAck:
        """
        PUT a file's bytes to a signed URL.

        Args:
            url: Signed upload URL
            file_path: File whose bytes are streamed as the body
            on_progress: Called with fraction done in [0, 1]
            cancel_token: Aborts the transfer when cancelled
            timeout: Deadline in seconds for the whole transfer

        Returns:
            TransportAck on a 2xx response

        Raises:
            TransportError: network, timeout, non-2xx, or aborted
        """
