"""
Upload Queue

Owns every TransferItem, runs each one through the TransferPipeline on a
bounded worker pool, and publishes a snapshot to observers on every change.

All item mutation happens under one re-entrant lock, and observers are
notified while it is held, so each item's progress reaches subscribers in
non-decreasing order. Cross-item ordering is unspecified.
"""

import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from core.event_bus import ALL_EVENTS, EventBus
from upload.constants import (
    ACTIVE_STATUSES,
    CANCELLED_MESSAGE,
    DEFAULT_MAX_CONCURRENT_UPLOADS,
    EVENT_ITEM_ADDED,
    EVENT_ITEM_REMOVED,
    EVENT_ITEM_UPDATED,
    TERMINAL_STATUSES,
    TransferStatus,
)
from upload.controllers.item_handle import ItemHandle
from upload.controllers.transfer_pipeline import TransferPipeline
from upload.interfaces.errors import AuthRequiredError
from upload.interfaces.session_interface import SessionInterface
from upload.models.transfer_item import TransferItem, TransferSnapshot


@dataclass(frozen=True)
class QueueEvent:
    """
    Change notification.

    Attributes:
        event_type: item_added, item_updated or item_removed
        item: Snapshot of the item that changed
        items: Snapshot of the whole queue after the change
    """

    event_type: str
    item: TransferSnapshot
    items: Tuple[TransferSnapshot, ...]


class UploadQueue:
    """
    Concurrent upload queue.

    Usage:
        queue = UploadQueue(session=session, pipeline=pipeline)
        item_id = queue.enqueue("/videos/game.mp4", {"stage": "battlefield"})
        queue.subscribe(lambda event: print(event.item.progress))
        snapshot = queue.wait(item_id)
    """

    def __init__(
        self,
        session: SessionInterface,
        pipeline: TransferPipeline,
        max_concurrent_uploads: int = DEFAULT_MAX_CONCURRENT_UPLOADS,
        event_bus: Optional[EventBus] = None,
    ):
        """
        Initialize upload queue.

        Args:
            session: Checked on every enqueue
            pipeline: Stage sequencer shared by all workers
            max_concurrent_uploads: Worker pool size
            event_bus: Bus for QueueEvents (a private one by default)
        """
        if max_concurrent_uploads < 1:
            raise ValueError("max_concurrent_uploads must be at least 1")

        self.logger = logging.getLogger(__name__)
        self.session = session
        self.pipeline = pipeline
        self.max_concurrent_uploads = max_concurrent_uploads
        self.event_bus = event_bus or EventBus()

        self._lock = threading.RLock()
        self._items: Dict[str, TransferItem] = {}
        self._futures: Dict[str, Future] = {}
        self._executor = ThreadPoolExecutor(
            max_workers=max_concurrent_uploads,
            thread_name_prefix="upload-worker",
        )
        self._shutdown = False

        self.logger.info(
            f"Upload Queue initialized (max concurrent: {max_concurrent_uploads})",
        )

    # =========================================================================
    # PUBLIC API
    # =========================================================================

    def enqueue(
        self,
        source_path: str,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> str:
        """
        Queue a file for upload and return immediately.

        Args:
            source_path: Video file to upload
            metadata: Forwarded to the broker with the negotiation

        Returns:
            Id of the new pending item

        Raises:
            AuthRequiredError: No signed-in session or no token
            RuntimeError: Queue has been shut down
        """
        if not self.session.is_authenticated():
            raise AuthRequiredError("Must be authenticated to upload")
        if not self.session.get_token():
            raise AuthRequiredError("No auth token available")

        item = TransferItem(
            id=uuid.uuid4().hex,
            source_path=str(source_path),
            metadata=metadata or {},
        )

        with self._lock:
            if self._shutdown:
                raise RuntimeError("Upload queue is shut down")
            self._items[item.id] = item
            self._publish(EVENT_ITEM_ADDED, item)
            self._futures[item.id] = self._executor.submit(self._run, item.id)

        self.logger.info(f"Queued upload {item.id}: {source_path}")
        return item.id

    def cancel(self, item_id: str) -> bool:
        """
        Cancel an item that has not finished.

        Aborts the in-flight transfer if there is one. Unknown, terminal
        and already-committed items are left alone.

        Returns:
            True if the item moved to cancelled
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None or item.is_terminal:
                return False
            if item.committed:
                self.logger.info(
                    f"Cancel ignored for {item_id}: upload already succeeded",
                )
                return False

            token = item.cancel_handle
            item.cancel_requested = True
            item.mark_cancelled(CANCELLED_MESSAGE)
            self._publish(EVENT_ITEM_UPDATED, item)

        if token is not None:
            token.cancel()

        self.logger.info(f"Upload cancelled by user: {item_id}")
        return True

    def remove(self, item_id: str) -> bool:
        """
        Cancel (if still running) and forget an item.

        Returns:
            True if the item was in the queue
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return False
            if not item.is_terminal:
                self.cancel(item_id)
            del self._items[item_id]
            self._futures.pop(item_id, None)
            self._publish(EVENT_ITEM_REMOVED, item)

        self.logger.debug(f"Removed upload {item_id} from queue")
        return True

    def clear_completed(self) -> int:
        """Remove completed items; returns how many were removed"""
        return self._remove_where(lambda item: item.status == TransferStatus.COMPLETED)

    def clear_errors(self) -> int:
        """Remove failed items; returns how many were removed"""
        return self._remove_where(lambda item: item.status == TransferStatus.ERROR)

    def clear_finished(self) -> int:
        """Remove every terminal item (completed, error, cancelled)"""
        return self._remove_where(lambda item: item.status in TERMINAL_STATUSES)

    def get(self, item_id: str) -> Optional[TransferSnapshot]:
        with self._lock:
            item = self._items.get(item_id)
            return item.snapshot() if item else None

    def list_items(self) -> List[TransferSnapshot]:
        """Snapshots in enqueue order"""
        with self._lock:
            return [item.snapshot() for item in self._items.values()]

    def result_future(self, item_id: str) -> Future:
        """
        Future resolving to the item's final snapshot.

        Resolves to None if the item was removed before it finished.

        Raises:
            KeyError: Unknown item id
        """
        with self._lock:
            return self._futures[item_id]

    def wait(
        self,
        item_id: str,
        timeout: Optional[float] = None,
    ) -> Optional[TransferSnapshot]:
        """Block until the item's pipeline has finished"""
        return self.result_future(item_id).result(timeout=timeout)

    def overall_progress(self) -> int:
        """
        Single percentage for the whole queue.

        Mean progress of pending, uploading and completed items; failed
        and cancelled items do not count. 0 for an empty queue.
        """
        with self._lock:
            counted = [
                item.progress
                for item in self._items.values()
                if item.status in ACTIVE_STATUSES
                or item.status == TransferStatus.COMPLETED
            ]
        if not counted:
            return 0
        return int(sum(counted) / len(counted))

    def get_queue_status(self) -> Dict[str, Any]:
        """
        Counts per status plus aggregate progress.

        Example:
            status = queue.get_queue_status()
            print(f"{status['uploading']} uploading, {status['pending']} waiting")
        """
        with self._lock:
            counts = {status.value: 0 for status in TransferStatus}
            for item in self._items.values():
                counts[item.status.value] += 1
            total = len(self._items)

        return {
            **counts,
            "total": total,
            "overall_progress": self.overall_progress(),
            "max_concurrent_uploads": self.max_concurrent_uploads,
        }

    def has_active_uploads(self) -> bool:
        with self._lock:
            return any(item.status in ACTIVE_STATUSES for item in self._items.values())

    def subscribe(self, callback: Callable[[QueueEvent], None]) -> Callable[[], None]:
        """
        Receive a QueueEvent for every change.

        Returns:
            Function that cancels the subscription
        """
        return self.event_bus.subscribe(
            ALL_EVENTS,
            lambda event_type, event: callback(event),
        )

    def shutdown(self, wait: bool = True, cancel_active: bool = True) -> None:
        """
        Stop accepting work.

        Args:
            wait: Block until running pipelines have finished
            cancel_active: Cancel pending and uploading items first
        """
        with self._lock:
            self._shutdown = True
            active_ids = [
                item.id for item in self._items.values() if not item.is_terminal
            ]

        if cancel_active:
            for item_id in active_ids:
                self.cancel(item_id)

        self._executor.shutdown(wait=wait)
        self.logger.info("Upload Queue shut down")

    # =========================================================================
    # INTERNALS (used by ItemHandle)
    # =========================================================================

    def _run(self, item_id: str) -> Optional[TransferSnapshot]:
        """Worker entry point"""
        handle = ItemHandle(self, item_id)
        self.pipeline.run(handle)
        return handle.snapshot()

    def _apply(self, item_id: str, mutate: Callable[[TransferItem], bool]) -> Optional[bool]:
        """
        Mutate an item under the lock and publish if it changed.

        Returns:
            mutate's result, or None if the item no longer exists
        """
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return None
            changed = mutate(item)
            if changed:
                self._publish(EVENT_ITEM_UPDATED, item)
            return changed

    def _locked(
        self,
        item_id: str,
        fn: Callable[[TransferItem], Any],
        default: Any = None,
    ) -> Any:
        """Run fn against an item under the lock without publishing"""
        with self._lock:
            item = self._items.get(item_id)
            if item is None:
                return default
            return fn(item)

    def _remove_where(self, predicate: Callable[[TransferItem], bool]) -> int:
        with self._lock:
            doomed = [
                item
                for item in self._items.values()
                if item.is_terminal and predicate(item)
            ]
            for item in doomed:
                del self._items[item.id]
                self._futures.pop(item.id, None)
                self._publish(EVENT_ITEM_REMOVED, item)

        if doomed:
            self.logger.debug(f"Cleared {len(doomed)} item(s) from queue")
        return len(doomed)

    def _publish(self, event_type: str, item: TransferItem) -> None:
        # Caller holds self._lock
        event = QueueEvent(
            event_type=event_type,
            item=item.snapshot(),
            items=tuple(i.snapshot() for i in self._items.values()),
        )
        self.event_bus.publish(event_type, event)
