"""
Upload Queue Tests

Tests for queue bookkeeping showing:
- Enqueue returns immediately with a pending item
- Worker pool bound on concurrent transfers
- Remove and bulk clear semantics
- Aggregate progress and status counts
- Observer notification and shutdown

To run these tests:
    pytest tests/upload/test_upload_queue.py -v
"""

import os
import threading
import time

import pytest

from upload.constants import EVENT_ITEM_ADDED, EVENT_ITEM_REMOVED, TransferStatus
from upload.implementations.mock_transport import MockTransport
from upload.interfaces.transport_interface import TransportAck, TransportInterface

WAIT_TIMEOUT = 5.0


class CountingTransport(TransportInterface):
    """Transport that records how many PUTs overlap"""

    def __init__(self, duration: float = 0.05):
        self.duration = duration
        self.active = 0
        self.max_active = 0
        self._lock = threading.Lock()

    def put(self, url, file_path, on_progress, cancel_token, timeout):
        with self._lock:
            self.active += 1
            self.max_active = max(self.max_active, self.active)
        try:
            time.sleep(self.duration)
            on_progress(1.0)
        finally:
            with self._lock:
                self.active -= 1
        return TransportAck(status_code=200, bytes_sent=os.path.getsize(file_path))


# =============================================================================
# ENQUEUE TESTS
# =============================================================================


@pytest.mark.unit
class TestEnqueue:
    def test_enqueue_returns_pending_item(self, make_queue, video_file):
        transport = MockTransport(pause_at=0.1)
        queue = make_queue(transport=transport)

        item_id = queue.enqueue(str(video_file), {"stage": "dreamland"})

        snapshot = queue.get(item_id)
        assert snapshot is not None
        assert snapshot.id == item_id
        assert snapshot.source_path == str(video_file)
        assert snapshot.metadata["stage"] == "dreamland"
        assert snapshot.status in (TransferStatus.PENDING, TransferStatus.UPLOADING)

        transport.resume()
        queue.wait(item_id, timeout=WAIT_TIMEOUT)

    def test_ids_are_unique(self, upload_queue, video_file):
        ids = {upload_queue.enqueue(str(video_file)) for _ in range(5)}

        assert len(ids) == 5
        for item_id in ids:
            upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

    def test_list_items_in_enqueue_order(self, upload_queue, make_video):
        paths = [str(make_video(f"game{i}.mp4")) for i in range(3)]
        ids = [upload_queue.enqueue(path) for path in paths]

        assert [s.id for s in upload_queue.list_items()] == ids

        for item_id in ids:
            upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

    def test_added_event_comes_first(self, upload_queue, video_file, event_tracker):
        upload_queue.subscribe(event_tracker.track)

        item_id = upload_queue.enqueue(str(video_file))
        upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

        event_types = event_tracker.event_types_for(item_id)
        assert event_types[0] == EVENT_ITEM_ADDED
        assert event_types.count(EVENT_ITEM_ADDED) == 1

    def test_enqueue_after_shutdown_raises(self, make_queue, video_file):
        queue = make_queue()
        queue.shutdown()

        with pytest.raises(RuntimeError):
            queue.enqueue(str(video_file))

    def test_invalid_pool_size(self, make_queue):
        with pytest.raises(ValueError):
            make_queue(max_concurrent_uploads=0)

    def test_unknown_item(self, upload_queue):
        assert upload_queue.get("nope") is None
        assert upload_queue.cancel("nope") is False
        assert upload_queue.remove("nope") is False
        with pytest.raises(KeyError):
            upload_queue.result_future("nope")


# =============================================================================
# CONCURRENCY TESTS
# =============================================================================


@pytest.mark.integration
class TestConcurrency:
    def test_pool_bounds_concurrent_transfers(self, make_queue, make_video):
        transport = CountingTransport()
        queue = make_queue(transport=transport, compressor=None, max_concurrent_uploads=2)

        ids = [queue.enqueue(str(make_video(f"game{i}.mp4"))) for i in range(5)]
        results = [queue.wait(item_id, timeout=WAIT_TIMEOUT) for item_id in ids]

        assert all(r.status == TransferStatus.COMPLETED for r in results)
        assert transport.max_active <= 2

    def test_each_item_progress_is_monotonic(
        self,
        upload_queue,
        make_video,
        event_tracker,
    ):
        upload_queue.subscribe(event_tracker.track)

        ids = [upload_queue.enqueue(str(make_video(f"game{i}.mp4"))) for i in range(4)]
        for item_id in ids:
            upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

        for item_id in ids:
            progress = event_tracker.progress_for(item_id)
            assert progress == sorted(progress)
            assert progress[-1] == 100


# =============================================================================
# REMOVE / CLEAR TESTS
# =============================================================================


@pytest.mark.unit
class TestRemoveAndClear:
    def test_remove_active_item(
        self,
        make_queue,
        video_file,
        mock_finalizer,
        mock_compressor,
        event_tracker,
    ):
        transport = MockTransport(pause_at=0.5)
        queue = make_queue(transport=transport)
        queue.subscribe(event_tracker.track)

        item_id = queue.enqueue(str(video_file))
        future = queue.result_future(item_id)
        assert transport.paused.wait(WAIT_TIMEOUT)

        assert queue.remove(item_id) is True

        assert queue.get(item_id) is None
        assert queue.list_items() == []
        assert event_tracker.event_types_for(item_id)[-1] == EVENT_ITEM_REMOVED

        # Worker still finishes its teardown
        assert future.result(timeout=WAIT_TIMEOUT) is None
        compressed_path = mock_compressor.compressed[0]
        assert mock_compressor.release_count(compressed_path) == 1

    def test_remove_finished_item(self, upload_queue, video_file):
        item_id = upload_queue.enqueue(str(video_file))
        upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

        assert upload_queue.remove(item_id) is True
        assert upload_queue.list_items() == []
        assert upload_queue.remove(item_id) is False

    def test_cancel_terminal_item_is_noop(self, upload_queue, video_file):
        item_id = upload_queue.enqueue(str(video_file))
        upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

        assert upload_queue.cancel(item_id) is False
        assert upload_queue.get(item_id).status == TransferStatus.COMPLETED

    def test_clear_never_touches_active_items(self, make_queue, make_video):
        transport = MockTransport(pause_at=0.5)
        queue = make_queue(transport=transport, max_concurrent_uploads=1)

        active = queue.enqueue(str(make_video("active.mp4")))
        assert transport.paused.wait(WAIT_TIMEOUT)
        pending = queue.enqueue(str(make_video("pending.mp4")))

        assert queue.clear_completed() == 0
        assert queue.clear_errors() == 0
        assert queue.clear_finished() == 0
        assert {s.id for s in queue.list_items()} == {active, pending}

        transport.resume()
        queue.wait(active, timeout=WAIT_TIMEOUT)
        queue.wait(pending, timeout=WAIT_TIMEOUT)

    def test_clear_by_status(self, upload_queue, video_file, temp_dir):
        done = upload_queue.enqueue(str(video_file))
        failed = upload_queue.enqueue(str(temp_dir / "missing.mp4"))
        upload_queue.wait(done, timeout=WAIT_TIMEOUT)
        upload_queue.wait(failed, timeout=WAIT_TIMEOUT)

        assert upload_queue.clear_errors() == 1
        assert [s.id for s in upload_queue.list_items()] == [done]

        assert upload_queue.clear_completed() == 1
        assert upload_queue.list_items() == []

    def test_clear_finished_includes_cancelled(self, make_queue, video_file, make_video):
        transport = MockTransport(pause_at=0.5)
        queue = make_queue(transport=transport, max_concurrent_uploads=1)

        first = queue.enqueue(str(video_file))
        assert transport.paused.wait(WAIT_TIMEOUT)
        second = queue.enqueue(str(make_video("second.mp4")))
        queue.cancel(second)

        transport.resume()
        queue.wait(first, timeout=WAIT_TIMEOUT)
        queue.wait(second, timeout=WAIT_TIMEOUT)

        assert queue.clear_finished() == 2
        assert queue.list_items() == []


# =============================================================================
# STATUS TESTS
# =============================================================================


@pytest.mark.unit
class TestStatus:
    def test_empty_queue(self, upload_queue):
        assert upload_queue.overall_progress() == 0
        assert upload_queue.has_active_uploads() is False

        status = upload_queue.get_queue_status()
        assert status["total"] == 0
        assert status["pending"] == 0
        assert status["max_concurrent_uploads"] == 2

    def test_all_completed(self, upload_queue, make_video):
        ids = [upload_queue.enqueue(str(make_video(f"game{i}.mp4"))) for i in range(2)]
        for item_id in ids:
            upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

        assert upload_queue.overall_progress() == 100
        status = upload_queue.get_queue_status()
        assert status["completed"] == 2
        assert status["total"] == 2

    def test_failed_items_do_not_count(self, upload_queue, video_file, temp_dir):
        done = upload_queue.enqueue(str(video_file))
        failed = upload_queue.enqueue(str(temp_dir / "missing.mp4"))
        upload_queue.wait(done, timeout=WAIT_TIMEOUT)
        upload_queue.wait(failed, timeout=WAIT_TIMEOUT)

        assert upload_queue.overall_progress() == 100
        assert upload_queue.get_queue_status()["error"] == 1

    def test_has_active_uploads_while_running(self, make_queue, video_file):
        transport = MockTransport(pause_at=0.5)
        queue = make_queue(transport=transport)

        item_id = queue.enqueue(str(video_file))
        assert transport.paused.wait(WAIT_TIMEOUT)

        assert queue.has_active_uploads() is True
        assert 0 < queue.overall_progress() < 100

        transport.resume()
        queue.wait(item_id, timeout=WAIT_TIMEOUT)
        assert queue.has_active_uploads() is False


# =============================================================================
# OBSERVER TESTS
# =============================================================================


@pytest.mark.unit
class TestObservers:
    def test_unsubscribe_stops_events(self, upload_queue, video_file, event_tracker):
        unsubscribe = upload_queue.subscribe(event_tracker.track)
        unsubscribe()

        item_id = upload_queue.enqueue(str(video_file))
        upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

        assert event_tracker.events == []

    def test_failing_subscriber_does_not_break_upload(self, upload_queue, video_file):
        def broken(event):
            raise RuntimeError("observer bug")

        upload_queue.subscribe(broken)

        item_id = upload_queue.enqueue(str(video_file))
        result = upload_queue.wait(item_id, timeout=WAIT_TIMEOUT)

        assert result.status == TransferStatus.COMPLETED

    def test_event_carries_whole_queue(self, upload_queue, make_video, event_tracker):
        upload_queue.subscribe(event_tracker.track)

        first = upload_queue.enqueue(str(make_video("a.mp4")))
        second = upload_queue.enqueue(str(make_video("b.mp4")))
        upload_queue.wait(first, timeout=WAIT_TIMEOUT)
        upload_queue.wait(second, timeout=WAIT_TIMEOUT)

        last = event_tracker.events[-1]
        assert {s.id for s in last.items} == {first, second}

    def test_shutdown_cancels_active(self, make_queue, video_file):
        transport = MockTransport(pause_at=0.5)
        queue = make_queue(transport=transport)

        item_id = queue.enqueue(str(video_file))
        assert transport.paused.wait(WAIT_TIMEOUT)

        queue.shutdown(wait=True, cancel_active=True)

        assert queue.get(item_id).status == TransferStatus.CANCELLED
