"""
Upload Test Configuration and Fixtures

This file contains pytest fixtures shared across upload tests.

To use pytest:
    pip install -e .[test]
    pytest tests/upload/
"""

import tempfile
import threading
from pathlib import Path

import pytest

from upload.constants import TransferStatus
from upload.controllers.transfer_pipeline import TransferPipeline
from upload.controllers.upload_queue import UploadQueue
from upload.implementations.mock_backend import (
    MockBroker,
    MockFinalizer,
    MockQuotaOracle,
    MockSession,
)
from upload.implementations.mock_compressor import MockCompressor
from upload.implementations.mock_transport import MockTransport



# =============================================================================
# FILE FIXTURES
# =============================================================================

@pytest.fixture
def temp_dir():
    """
    Provide a temporary directory, cleaned up after the test.
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def video_file(temp_dir):
    """
    Create a small fake video file.

    Usage:
        def test_upload(video_file):
            queue.enqueue(str(video_file))
    """
    path = temp_dir / "game_2025-10-12_18-30-45.mp4"
    path.write_bytes(b"\x00\x00\x00\x18ftypmp42" + b"0" * (256 * 1024))
    return path


@pytest.fixture
def make_video(temp_dir):
    """
    Factory for extra fake videos.

    Usage:
        def test_many(make_video):
            paths = [make_video(f"game{i}.mp4") for i in range(3)]
    """
    def _make(name: str, size: int = 64 * 1024) -> Path:
        path = temp_dir / name
        path.write_bytes(b"0" * size)
        return path

    return _make


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================

@pytest.fixture
def mock_session():
    return MockSession()


@pytest.fixture
def mock_broker():
    return MockBroker()


@pytest.fixture
def mock_transport():
    return MockTransport()


@pytest.fixture
def mock_finalizer(mock_broker):
    return MockFinalizer(broker=mock_broker)


@pytest.fixture
def mock_quota():
    return MockQuotaOracle()


@pytest.fixture
def mock_compressor(temp_dir):
    return MockCompressor(temp_dir=temp_dir / "compressed")


# =============================================================================
# QUEUE FIXTURES
# =============================================================================

@pytest.fixture
def make_queue(
    mock_session,
    mock_broker,
    mock_transport,
    mock_finalizer,
    mock_quota,
    mock_compressor,
):
    """
    Factory building an UploadQueue from mock collaborators.

    Any collaborator can be overridden by keyword; pass compressor=None to
    disable compression. Every queue is shut down after the test.

    Usage:
        def test_timeout(make_queue):
            queue = make_queue(transport=MockTransport(fail_with=...))
    """
    queues = []
    unset = object()

    def _make(
        session=None,
        broker=None,
        transport=None,
        finalizer=None,
        quota=unset,
        compressor=unset,
        max_concurrent_uploads=2,
    ) -> UploadQueue:
        pipeline = TransferPipeline(
            broker=broker or mock_broker,
            transport=transport or mock_transport,
            finalizer=finalizer or mock_finalizer,
            quota=mock_quota if quota is unset else quota,
            compressor=mock_compressor if compressor is unset else compressor,
            upload_timeout=60,
        )
        queue = UploadQueue(
            session=session or mock_session,
            pipeline=pipeline,
            max_concurrent_uploads=max_concurrent_uploads,
        )
        queues.append(queue)
        return queue

    yield _make

    for queue in queues:
        queue.shutdown(wait=True, cancel_active=True)


@pytest.fixture
def upload_queue(make_queue):
    """Queue with default mock collaborators and compression enabled"""
    return make_queue()


# =============================================================================
# HELPER FIXTURES
# =============================================================================

@pytest.fixture
def event_tracker():
    """
    Provide a thread-safe recorder for QueueEvents.

    Usage:
        def test_events(upload_queue, event_tracker):
            upload_queue.subscribe(event_tracker.track)
            # ... enqueue and wait ...
            assert event_tracker.progress_for(item_id) == sorted(...)
    """
    class EventTracker:
        def __init__(self):
            self.events = []
            self._lock = threading.Lock()

        def track(self, event):
            """Record a queue event"""
            with self._lock:
                self.events.append(event)

        def for_item(self, item_id):
            with self._lock:
                return [e for e in self.events if e.item.id == item_id]

        def progress_for(self, item_id):
            """Progress values published for one item, in order"""
            return [e.item.progress for e in self.for_item(item_id)]

        def statuses_for(self, item_id):
            """Distinct statuses published for one item, in order"""
            statuses = []
            for event in self.for_item(item_id):
                if not statuses or statuses[-1] != event.item.status:
                    statuses.append(event.item.status)
            return statuses

        def event_types_for(self, item_id):
            return [e.event_type for e in self.for_item(item_id)]

        def saw_status(self, item_id, status: TransferStatus) -> bool:
            return status in self.statuses_for(item_id)

    return EventTracker()


# =============================================================================
# PYTEST CONFIGURATION
# =============================================================================

def pytest_configure(config):
    """
    Configure pytest with custom markers.

    Same markers as the other test packages for consistency.
    """
    config.addinivalue_line("markers", "unit: Unit tests (fast, isolated)")
    config.addinivalue_line("markers", "integration: Integration tests (may be slower)")
    config.addinivalue_line("markers", "slow: Slow tests (use sparingly)")
