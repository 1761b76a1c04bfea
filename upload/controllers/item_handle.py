"""
Item Handle

The pipeline's only way to change a TransferItem. Every call is routed
through the owning queue's lock, so observers see consistent snapshots and
a removed item silently stops accepting updates.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from upload.constants import CANCELLED_MESSAGE, ErrorKind, TransferStatus
from upload.interfaces.transport_interface import CancelToken
from upload.models.transfer_item import TransferItem, TransferSnapshot


class ItemHandle:
    """
    Write access to one queued item, bound by id.

    The handle never holds the item itself; the queue can drop the item at
    any time and later calls become no-ops.
    """

    def __init__(self, queue, item_id: str):
        """
        Args:
            queue: Owning UploadQueue (provides _apply/_locked under its lock)
            item_id: Id of the item this handle drives
        """
        self.logger = logging.getLogger(__name__)
        self._queue = queue
        self.item_id = item_id

    # =========================================================================
    # READS
    # =========================================================================

    def snapshot(self) -> Optional[TransferSnapshot]:
        """Current snapshot, or None if the item was removed"""
        return self._queue._locked(self.item_id, lambda item: item.snapshot())

    @property
    def cancel_requested(self) -> bool:
        """True if cancel() was called or the item is gone"""
        return self._queue._locked(
            self.item_id,
            lambda item: item.cancel_requested,
            default=True,
        )

    # =========================================================================
    # TRANSITIONS
    # =========================================================================

    def begin(self) -> bool:
        """
        Move pending -> uploading.

        Returns:
            False if the item was removed or cancelled before it started
        """

        def start(item: TransferItem) -> bool:
            if item.status != TransferStatus.PENDING or item.cancel_requested:
                return False
            item.mark_uploading()
            return True

        started = bool(self._queue._apply(self.item_id, start))
        if started:
            self.logger.info(f"Item {self.item_id}: pending -> uploading")
        return started

    def commit(self) -> bool:
        """
        Decide the successful outcome after the transfer stage.

        Returns:
            False if a cancel request arrived first; after True, cancel()
            can no longer affect the item
        """

        def try_commit(item: TransferItem) -> bool:
            if item.cancel_requested or not item.is_uploading:
                return False
            item.committed = True
            return True

        return self._queue._locked(self.item_id, try_commit, default=False)

    def complete(self) -> None:
        def finish(item: TransferItem) -> bool:
            if not item.is_uploading:
                return False
            item.mark_completed()
            return True

        if self._queue._apply(self.item_id, finish):
            self.logger.info(f"Item {self.item_id}: uploading -> completed")

    def fail(self, kind: ErrorKind, message: str) -> None:
        def set_error(item: TransferItem) -> bool:
            if not item.is_uploading:
                return False
            item.mark_error(kind, message)
            return True

        if self._queue._apply(self.item_id, set_error):
            self.logger.info(
                f"Item {self.item_id}: uploading -> error ({kind.value})",
            )

    def finish_cancelled(self) -> None:
        """Settle on cancelled; no-op if cancel() already transitioned"""

        def set_cancelled(item: TransferItem) -> bool:
            if item.is_terminal:
                return False
            item.cancel_requested = True
            item.mark_cancelled(CANCELLED_MESSAGE)
            return True

        if self._queue._apply(self.item_id, set_cancelled):
            self.logger.info(f"Item {self.item_id}: uploading -> cancelled")

    # =========================================================================
    # FIELD UPDATES
    # =========================================================================

    def advance(self, progress: int) -> None:
        self._queue._apply(self.item_id, lambda item: item.advance_progress(progress))

    def set_working_path(self, path: str, file_size: int) -> None:
        def update(item: TransferItem) -> bool:
            item.set_working_path(path)
            item.file_size = file_size
            return True

        self._queue._apply(self.item_id, update)

    def set_remote_id(self, remote_id: str) -> None:
        def update(item: TransferItem) -> bool:
            item.set_remote_id(remote_id)
            return True

        self._queue._apply(self.item_id, update)

    @contextmanager
    def cancel_scope(self) -> Iterator[CancelToken]:
        """
        Own a CancelToken for the duration of the transfer stage.

        The token is attached to the item on entry (so cancel() can reach
        it) and detached on every exit path. If cancellation was already
        requested the token is cancelled before the transport sees it.
        """
        token = CancelToken()

        def attach(item: TransferItem) -> bool:
            if item.cancel_requested or not item.is_uploading:
                return False
            item.cancel_handle = token
            return True

        def detach(item: TransferItem) -> None:
            if item.cancel_handle is token:
                item.cancel_handle = None

        if not self._queue._locked(self.item_id, attach, default=False):
            token.cancel()

        try:
            yield token
        finally:
            self._queue._locked(self.item_id, detach)
            token.release()
