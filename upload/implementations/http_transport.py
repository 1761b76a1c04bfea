"""
HTTP Transport Implementation

Streams a file to a signed URL with a single PUT using requests.
The body is read in chunks so progress can be reported and the cancel
token and overall deadline can be honoured between chunks.
"""

import logging
import os
import time
from typing import BinaryIO, Iterator

import requests

from upload.constants import (
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONTENT_TYPE,
    TRANSPORT_CONNECT_TIMEOUT,
    TransportFailureKind,
)
from upload.interfaces.transport_interface import (
    CancelToken,
    ProgressCallback,
    TransportAck,
    TransportError,
    TransportInterface,
)


class _TransferAborted(Exception):
    pass


class _DeadlineExceeded(Exception):
    pass


class _ProgressReader:
    """
    Iterable request body yielding chunk_size blocks.

    Exposes __len__ so requests sends a Content-Length header instead of
    chunked encoding (signed PUT URLs require the length up front). No
    read() method, so the HTTP adapter iterates the body rather than
    reading it in its own fixed block size.
    """

    def __init__(
        self,
        file_obj: BinaryIO,
        total_size: int,
        on_progress: ProgressCallback,
        cancel_token: CancelToken,
        deadline: float,
        chunk_size: int,
    ):
        self._file = file_obj
        self.total_size = total_size
        self.on_progress = on_progress
        self.cancel_token = cancel_token
        self.deadline = deadline
        self.chunk_size = chunk_size
        self.bytes_read = 0

    def __len__(self) -> int:
        return self.total_size

    def __iter__(self) -> Iterator[bytes]:
        while True:
            if self.cancel_token.is_cancelled:
                raise _TransferAborted()
            if time.monotonic() > self.deadline:
                raise _DeadlineExceeded()

            data = self._file.read(self.chunk_size)
            if not data:
                return

            self.bytes_read += len(data)
            self.on_progress(self.bytes_read / self.total_size if self.total_size else 1.0)
            yield data


class HttpTransport(TransportInterface):
    """
    PUT transport for pre-signed object storage URLs.

    Each put() opens its own requests session, so concurrent transfers do
    not share connections and cancelling one only closes its own socket.
    """

    def __init__(
        self,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        content_type: str = DEFAULT_CONTENT_TYPE,
        connect_timeout: float = TRANSPORT_CONNECT_TIMEOUT,
    ):
        self.logger = logging.getLogger(__name__)
        self.chunk_size = chunk_size
        self.content_type = content_type
        self.connect_timeout = connect_timeout

    def _create_session(self) -> requests.Session:
        return requests.Session()

    def put(
        self,
        url: str,
        file_path: str,
        on_progress: ProgressCallback,
        cancel_token: CancelToken,
        timeout: float,
    ) -> TransportAck:
        try:
            total_size = os.path.getsize(file_path)
        except OSError as e:
            raise TransportError(
                f"Cannot read upload file: {e}",
                failure_kind=TransportFailureKind.NETWORK,
            ) from e

        timeout_minutes = timeout / 60
        deadline = time.monotonic() + timeout
        http = self._create_session()
        cancel_token.add_abort_callback(http.close)
        start_time = time.time()

        self.logger.info(f"Starting PUT: {file_path} ({total_size} bytes)")

        try:
            with open(file_path, "rb") as f:
                body = _ProgressReader(
                    f,
                    total_size,
                    on_progress,
                    cancel_token,
                    deadline,
                    self.chunk_size,
                )
                response = http.put(
                    url,
                    data=body,
                    headers={"Content-Type": self.content_type},
                    timeout=(self.connect_timeout, timeout),
                )

        except _TransferAborted as e:
            raise TransportError(
                "Upload cancelled by user",
                failure_kind=TransportFailureKind.ABORTED,
            ) from e

        except (_DeadlineExceeded, requests.Timeout) as e:
            raise TransportError(
                f"Upload timed out after {timeout_minutes:g} minutes",
                failure_kind=TransportFailureKind.TIMEOUT,
            ) from e

        except requests.RequestException as e:
            if cancel_token.is_cancelled:
                raise TransportError(
                    "Upload cancelled by user",
                    failure_kind=TransportFailureKind.ABORTED,
                ) from e
            raise TransportError(
                f"Network error during upload: {e}",
                failure_kind=TransportFailureKind.NETWORK,
            ) from e

        except OSError as e:
            # Socket closed under us by cancel(), or the file vanished
            kind = (
                TransportFailureKind.ABORTED
                if cancel_token.is_cancelled
                else TransportFailureKind.NETWORK
            )
            raise TransportError(f"Upload interrupted: {e}", failure_kind=kind) from e

        finally:
            http.close()

        if not 200 <= response.status_code < 300:
            raise TransportError(
                f"Upload failed: {response.status_code} {response.reason}",
                failure_kind=TransportFailureKind.SERVER_STATUS,
                status_code=response.status_code,
            )

        on_progress(1.0)
        duration = time.time() - start_time
        self.logger.info(
            f"PUT complete: HTTP {response.status_code} "
            f"({total_size} bytes in {duration:.1f}s)",
        )

        return TransportAck(
            status_code=response.status_code,
            bytes_sent=body.bytes_read,
            etag=response.headers.get("ETag"),
        )
