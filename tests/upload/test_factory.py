"""
Upload Factory Tests

Tests for component creation in auto, http and mock modes.

To run these tests:
    pytest tests/upload/test_factory.py -v
"""

import json
import time

import pytest

from upload.config import UploadConfig
from upload.controllers.upload_queue import UploadQueue
from upload.factory import UploadFactory, create_upload_queue
from upload.implementations.ffmpeg_compressor import FFmpegCompressor
from upload.implementations.http_backend import HttpBroker
from upload.implementations.http_transport import HttpTransport
from upload.implementations.mock_backend import MockBroker, MockSession
from upload.implementations.mock_compressor import MockCompressor


@pytest.fixture
def config(temp_dir):
    return UploadConfig(temp_dir / "upload.yaml")


@pytest.fixture
def broker_env(monkeypatch, temp_dir):
    """Point the factory at a fake backend with a valid session file"""
    token_path = temp_dir / "session.json"
    token_path.write_text(
        json.dumps({"access_token": "jwt", "user_id": "u1", "expires_at": time.time() + 3600}),
    )
    monkeypatch.setattr("upload.factory.UPLOAD_BROKER_URL", "https://project.supabase.co")
    monkeypatch.setattr("upload.factory.UPLOAD_SESSION_TOKEN_PATH", str(token_path))
    return token_path


@pytest.fixture
def no_broker_env(monkeypatch, temp_dir):
    monkeypatch.setattr("upload.factory.UPLOAD_BROKER_URL", "")
    monkeypatch.setattr(
        "upload.factory.UPLOAD_SESSION_TOKEN_PATH",
        str(temp_dir / "missing.json"),
    )


@pytest.mark.unit
class TestUploadFactory:
    def test_mock_mode(self, config):
        components = UploadFactory.create_components(mode="mock", config=config, compress=True)

        assert components.mode == "mock"
        assert isinstance(components.session, MockSession)
        assert isinstance(components.broker, MockBroker)
        assert isinstance(components.compressor, MockCompressor)
        assert components.finalizer.broker is components.broker

    def test_mock_mode_without_compression(self, config):
        components = UploadFactory.create_components(mode="mock", config=config, compress=False)

        assert components.compressor is None

    def test_auto_falls_back_to_mock(self, config, no_broker_env):
        components = UploadFactory.create_components(mode="auto", config=config)

        assert components.mode == "mock"

    def test_http_mode_requires_broker_url(self, config, no_broker_env):
        with pytest.raises(RuntimeError, match="UPLOAD_BROKER_URL"):
            UploadFactory.create_components(mode="http", config=config)

    def test_http_mode_requires_session(self, config, broker_env):
        broker_env.unlink()

        with pytest.raises(RuntimeError, match="No valid session"):
            UploadFactory.create_components(mode="http", config=config)

    def test_auto_detects_http(self, config, broker_env, monkeypatch):
        monkeypatch.setattr(
            "upload.implementations.ffmpeg_compressor.shutil.which",
            lambda name: "/usr/bin/ffmpeg",
        )

        components = UploadFactory.create_components(mode="auto", config=config, compress=True)

        assert components.mode == "http"
        assert isinstance(components.broker, HttpBroker)
        assert isinstance(components.transport, HttpTransport)
        assert isinstance(components.compressor, FFmpegCompressor)
        assert components.session.get_token() == "jwt"
        components.close()

    def test_http_without_ffmpeg_skips_compression(self, config, broker_env, monkeypatch):
        monkeypatch.setattr(
            "upload.implementations.ffmpeg_compressor.shutil.which",
            lambda name: None,
        )

        components = UploadFactory.create_components(mode="http", config=config, compress=True)

        assert components.compressor is None
        components.close()

    def test_is_http_available(self, broker_env):
        assert UploadFactory.is_http_available() is True

    def test_create_queue_uses_config(self, config):
        config.set("max_concurrent_uploads", 3, save=False)
        components = UploadFactory.create_components(mode="mock", config=config)

        queue = UploadFactory.create_queue(components, config=config)
        try:
            assert isinstance(queue, UploadQueue)
            assert queue.max_concurrent_uploads == 3
            assert queue.pipeline.upload_timeout == config.upload_timeout
        finally:
            queue.shutdown()

    def test_create_upload_queue_convenience(self):
        queue = create_upload_queue(force_mock=True, max_concurrent_uploads=1)
        try:
            assert queue.max_concurrent_uploads == 1
            assert isinstance(queue.session, MockSession)
        finally:
            queue.shutdown()
