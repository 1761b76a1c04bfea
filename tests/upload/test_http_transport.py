"""
HTTP Transport Tests

Tests for the requests-based PUT transport with the HTTP session stubbed:
- Streaming body with Content-Length and progress
- Status, timeout and network error mapping
- Cancellation before and during the transfer

To run these tests:
    pytest tests/upload/test_http_transport.py -v
"""

from unittest.mock import MagicMock, patch

import pytest
import requests

from upload.constants import ErrorKind, TransportFailureKind
from upload.implementations.http_transport import HttpTransport
from upload.interfaces.transport_interface import CancelToken, TransportError

SIGNED_URL = "https://storage.example.com/bucket/user/game.mp4?X-Signature=abc"


def make_response(status_code=200, reason="OK", etag='"abc123"'):
    response = MagicMock()
    response.status_code = status_code
    response.reason = reason
    response.headers = {"ETag": etag} if etag else {}
    return response


def drain_body(response):
    """Fake Session.put that reads the whole body like a real adapter"""
    def _put(url, data=None, headers=None, timeout=None):
        for _ in data:
            pass
        return response

    return _put


@pytest.fixture
def transport():
    return HttpTransport(chunk_size=16 * 1024)


@pytest.fixture
def http_session():
    session = MagicMock()
    session.put.side_effect = drain_body(make_response())
    return session


@pytest.fixture
def progress():
    values = []
    return values


# =============================================================================
# SUCCESS TESTS
# =============================================================================


@pytest.mark.unit
class TestSuccessfulPut:
    def test_put_streams_file(self, transport, http_session, video_file, progress):
        with patch.object(transport, "_create_session", return_value=http_session):
            ack = transport.put(
                SIGNED_URL,
                str(video_file),
                progress.append,
                CancelToken(),
                timeout=60,
            )

        assert ack.status_code == 200
        assert ack.bytes_sent == video_file.stat().st_size
        assert ack.etag == '"abc123"'

        args, kwargs = http_session.put.call_args
        assert args[0] == SIGNED_URL
        assert kwargs["headers"]["Content-Type"] == "video/mp4"
        assert len(kwargs["data"]) == video_file.stat().st_size
        assert kwargs["timeout"][1] == 60

        http_session.close.assert_called()

    def test_progress_is_increasing_and_ends_at_one(
        self,
        transport,
        http_session,
        video_file,
        progress,
    ):
        with patch.object(transport, "_create_session", return_value=http_session):
            transport.put(SIGNED_URL, str(video_file), progress.append, CancelToken(), 60)

        assert len(progress) > 2
        assert progress == sorted(progress)
        assert progress[-1] == 1.0

    def test_body_is_sent_in_configured_chunks(self, http_session, video_file):
        chunk_size = 64 * 1024
        transport = HttpTransport(chunk_size=chunk_size)
        sizes = []

        def put(url, data=None, headers=None, timeout=None):
            sizes.extend(len(chunk) for chunk in data)
            return make_response()

        http_session.put.side_effect = put

        with patch.object(transport, "_create_session", return_value=http_session):
            transport.put(SIGNED_URL, str(video_file), lambda p: None, CancelToken(), 60)

        total = video_file.stat().st_size
        assert sum(sizes) == total
        assert sizes[:-1] == [chunk_size] * (len(sizes) - 1)
        assert len(sizes) == -(-total // chunk_size)

    def test_body_has_no_read_method(self, transport, http_session, video_file):
        with patch.object(transport, "_create_session", return_value=http_session):
            transport.put(SIGNED_URL, str(video_file), lambda p: None, CancelToken(), 60)

        body = http_session.put.call_args.kwargs["data"]
        assert not hasattr(body, "read")


# =============================================================================
# FAILURE TESTS
# =============================================================================


@pytest.mark.unit
class TestFailedPut:
    def test_non_2xx_is_server_status(self, transport, video_file):
        session = MagicMock()
        session.put.side_effect = drain_body(make_response(403, "Forbidden"))

        with patch.object(transport, "_create_session", return_value=session):
            with pytest.raises(TransportError) as exc_info:
                transport.put(SIGNED_URL, str(video_file), lambda p: None, CancelToken(), 60)

        error = exc_info.value
        assert error.failure_kind == TransportFailureKind.SERVER_STATUS
        assert error.status_code == 403
        assert error.kind == ErrorKind.TRANSFER_FAILED
        assert str(error) == "Upload failed: 403 Forbidden"

    def test_requests_timeout(self, transport, video_file):
        session = MagicMock()
        session.put.side_effect = requests.Timeout("read timed out")

        with patch.object(transport, "_create_session", return_value=session):
            with pytest.raises(TransportError) as exc_info:
                transport.put(SIGNED_URL, str(video_file), lambda p: None, CancelToken(), 1200)

        assert exc_info.value.failure_kind == TransportFailureKind.TIMEOUT
        assert str(exc_info.value) == "Upload timed out after 20 minutes"

    def test_deadline_exceeded_while_streaming(self, transport, http_session, video_file):
        with patch.object(transport, "_create_session", return_value=http_session):
            with pytest.raises(TransportError) as exc_info:
                transport.put(SIGNED_URL, str(video_file), lambda p: None, CancelToken(), -1)

        assert exc_info.value.failure_kind == TransportFailureKind.TIMEOUT

    def test_network_error(self, transport, video_file):
        session = MagicMock()
        session.put.side_effect = requests.ConnectionError("connection reset")

        with patch.object(transport, "_create_session", return_value=session):
            with pytest.raises(TransportError) as exc_info:
                transport.put(SIGNED_URL, str(video_file), lambda p: None, CancelToken(), 60)

        assert exc_info.value.failure_kind == TransportFailureKind.NETWORK

    def test_missing_file(self, transport, temp_dir):
        with pytest.raises(TransportError):
            transport.put(
                SIGNED_URL,
                str(temp_dir / "missing.mp4"),
                lambda p: None,
                CancelToken(),
                60,
            )


# =============================================================================
# CANCELLATION TESTS
# =============================================================================


@pytest.mark.unit
class TestCancelledPut:
    def test_already_cancelled_token(self, transport, http_session, video_file):
        token = CancelToken()
        token.cancel()

        with patch.object(transport, "_create_session", return_value=http_session):
            with pytest.raises(TransportError) as exc_info:
                transport.put(SIGNED_URL, str(video_file), lambda p: None, token, 60)

        assert exc_info.value.failure_kind == TransportFailureKind.ABORTED
        assert exc_info.value.kind == ErrorKind.CANCELLED
        http_session.close.assert_called()

    def test_cancel_mid_stream(self, transport, http_session, video_file):
        token = CancelToken()

        def cancel_halfway(fraction):
            if fraction >= 0.5:
                token.cancel()

        with patch.object(transport, "_create_session", return_value=http_session):
            with pytest.raises(TransportError) as exc_info:
                transport.put(SIGNED_URL, str(video_file), cancel_halfway, token, 60)

        assert exc_info.value.failure_kind == TransportFailureKind.ABORTED

    def test_connection_closed_by_cancel(self, transport, video_file):
        token = CancelToken()
        session = MagicMock()

        def put(url, data=None, headers=None, timeout=None):
            token.cancel()
            raise requests.ConnectionError("socket closed")

        session.put.side_effect = put

        with patch.object(transport, "_create_session", return_value=session):
            with pytest.raises(TransportError) as exc_info:
                transport.put(SIGNED_URL, str(video_file), lambda p: None, token, 60)

        assert exc_info.value.failure_kind == TransportFailureKind.ABORTED
        # Abort callback closed the session
        session.close.assert_called()
