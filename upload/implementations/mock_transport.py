"""
Mock Transport Implementation

Simulates a chunked PUT without network access. Can fail with any
transport failure kind, or pause mid-transfer so tests can cancel at a
known point.
"""

import logging
import os
import threading
import time
from typing import Any, Dict, List, Optional

from upload.constants import TransportFailureKind
from upload.interfaces.transport_interface import (
    CancelToken,
    ProgressCallback,
    TransportAck,
    TransportError,
    TransportInterface,
)


class MockTransport(TransportInterface):
    """
    Simulated transport.

    Args:
        steps: Number of progress callbacks per transfer
        step_delay: Seconds to sleep per step (0 = instant)
        fail_with: Failure kind raised once fail_at is reached
        fail_at: Fraction of the transfer at which to fail
        status_code: HTTP status used for SERVER_STATUS failures
        pause_at: Fraction at which to block until resumed or cancelled

    Usage:
        transport = MockTransport(pause_at=0.6)
        ... enqueue ...
        transport.paused.wait(5)   # transfer is now at 60%
        queue.cancel(item_id)
    """

    def __init__(
        self,
        steps: int = 10,
        step_delay: float = 0.0,
        fail_with: Optional[TransportFailureKind] = None,
        fail_at: float = 0.5,
        status_code: int = 403,
        pause_at: Optional[float] = None,
    ):
        self.logger = logging.getLogger(__name__)
        self.steps = max(1, steps)
        self.step_delay = step_delay
        self.fail_with = fail_with
        self.fail_at = fail_at
        self.status_code = status_code
        self.pause_at = pause_at

        self.paused = threading.Event()
        self.resumed = threading.Event()
        self.calls: List[Dict[str, Any]] = []
        self._lock = threading.Lock()

    @property
    def put_count(self) -> int:
        with self._lock:
            return len(self.calls)

    def resume(self) -> None:
        self.resumed.set()

    def put(
        self,
        url: str,
        file_path: str,
        on_progress: ProgressCallback,
        cancel_token: CancelToken,
        timeout: float,
    ) -> TransportAck:
        file_size = os.path.getsize(file_path)
        with self._lock:
            self.calls.append(
                {"url": url, "file_path": file_path, "file_size": file_size},
            )

        self.logger.info(f"[MOCK] PUT {file_path} ({file_size} bytes)")

        for step in range(1, self.steps + 1):
            if cancel_token.is_cancelled:
                raise TransportError(
                    "Upload cancelled by user",
                    failure_kind=TransportFailureKind.ABORTED,
                )

            fraction = step / self.steps

            if self.fail_with is not None and fraction >= self.fail_at:
                raise self._failure(timeout)

            on_progress(fraction)

            if self.pause_at is not None and fraction >= self.pause_at:
                self._pause(cancel_token)

            if self.step_delay:
                time.sleep(self.step_delay)

        return TransportAck(status_code=200, bytes_sent=file_size, etag='"mock-etag"')

    def _pause(self, cancel_token: CancelToken) -> None:
        if self.paused.is_set():
            return
        self.paused.set()
        while not self.resumed.is_set():
            if cancel_token.wait(0.01):
                return

    def _failure(self, timeout: float) -> TransportError:
        if self.fail_with == TransportFailureKind.TIMEOUT:
            return TransportError(
                f"Upload timed out after {timeout / 60:g} minutes",
                failure_kind=TransportFailureKind.TIMEOUT,
            )
        if self.fail_with == TransportFailureKind.SERVER_STATUS:
            return TransportError(
                f"Upload failed: {self.status_code}",
                failure_kind=TransportFailureKind.SERVER_STATUS,
                status_code=self.status_code,
            )
        if self.fail_with == TransportFailureKind.ABORTED:
            return TransportError(
                "Upload aborted",
                failure_kind=TransportFailureKind.ABORTED,
            )
        return TransportError(
            "Network error during upload",
            failure_kind=TransportFailureKind.NETWORK,
        )
