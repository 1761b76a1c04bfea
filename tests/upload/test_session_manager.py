"""
Session Manager Tests

Tests for the file-backed session showing:
- Token loading and expiry
- Pick-up of tokens written after startup
- Save and clear

To run these tests:
    pytest tests/upload/test_session_manager.py -v
"""

import json
import os
import time

import pytest

from upload.auth.session_manager import SessionManager


def write_session(path, **data):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(data))


@pytest.fixture
def token_path(temp_dir):
    return temp_dir / "credentials" / "session.json"


@pytest.mark.unit
class TestSessionManager:
    def test_missing_file_is_signed_out(self, token_path):
        session = SessionManager(str(token_path))

        assert session.is_authenticated() is False
        assert session.get_token() is None
        assert session.get_user_id() is None

    def test_valid_token(self, token_path):
        write_session(
            token_path,
            access_token="jwt",
            user_id="user-1",
            expires_at=time.time() + 3600,
        )

        session = SessionManager(str(token_path))

        assert session.is_authenticated() is True
        assert session.get_token() == "jwt"
        assert session.get_user_id() == "user-1"

    def test_token_without_expiry(self, token_path):
        write_session(token_path, access_token="jwt")

        assert SessionManager(str(token_path)).is_authenticated() is True

    def test_expired_token(self, token_path):
        write_session(token_path, access_token="jwt", expires_at=time.time() - 10)

        session = SessionManager(str(token_path))

        assert session.is_authenticated() is False
        assert session.get_token() is None

    def test_invalid_json(self, token_path):
        token_path.parent.mkdir(parents=True)
        token_path.write_text("{not json")

        assert SessionManager(str(token_path)).is_authenticated() is False

    def test_picks_up_new_file(self, token_path):
        session = SessionManager(str(token_path))
        assert session.is_authenticated() is False

        write_session(token_path, access_token="late-jwt")

        assert session.get_token() == "late-jwt"

    def test_picks_up_rewritten_file(self, token_path):
        write_session(token_path, access_token="old")
        session = SessionManager(str(token_path))
        assert session.get_token() == "old"

        write_session(token_path, access_token="new")
        # Force a different mtime on coarse-grained filesystems
        stat = token_path.stat()
        os.utime(token_path, (stat.st_atime, stat.st_mtime + 5))

        assert session.get_token() == "new"

    def test_save_and_clear(self, token_path):
        session = SessionManager(str(token_path))

        session.save_token("jwt", user_id="user-2", expires_at=time.time() + 60)

        assert token_path.exists()
        assert session.get_user_id() == "user-2"
        assert SessionManager(str(token_path)).get_token() == "jwt"

        session.clear()

        assert not token_path.exists()
        assert session.is_authenticated() is False
