"""
Session Manager

Loads the signed-in user's access token from a JSON file written by the
desktop client after sign-in.

File format:
    {
        "access_token": "eyJhbGciOi...",
        "user_id": "7c1e...",
        "expires_at": 1767225600
    }

expires_at is optional (Unix seconds). An expired token counts as signed
out; refreshing it is the client's job.
"""

import json
import logging
import os
import time
from typing import Any, Dict, Optional

from upload.interfaces.session_interface import SessionInterface

# Treat tokens this close to expiry as already expired (seconds)
EXPIRY_MARGIN_SECONDS = 30


class SessionManager(SessionInterface):
    """
    File-backed session.

    The token file is re-read whenever it changes on disk, so a client
    that refreshes the token does not require a restart.

    Usage:
        session = SessionManager("credentials/session.json")
        if session.is_authenticated():
            token = session.get_token()
    """

    def __init__(self, token_path: str):
        """
        Initialize session manager.

        Args:
            token_path: Path to the session JSON file
        """
        self.logger = logging.getLogger(__name__)
        self.token_path = token_path
        self._data: Dict[str, Any] = {}
        self._loaded_mtime: Optional[float] = None

        self._load()
        self.logger.info(f"Session Manager initialized ({token_path})")

    def _load(self) -> None:
        """Read the token file if it changed since the last read"""
        try:
            mtime = os.path.getmtime(self.token_path)
        except OSError:
            if self._data:
                self.logger.warning(f"Session file disappeared: {self.token_path}")
            self._data = {}
            self._loaded_mtime = None
            return

        if mtime == self._loaded_mtime:
            return

        try:
            with open(self.token_path, "r") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.warning(f"Failed to read session file: {e}")
            self._data = {}
            self._loaded_mtime = None
            return

        if not isinstance(data, dict):
            self.logger.warning("Session file is not a JSON object, ignoring")
            data = {}

        self._data = data
        self._loaded_mtime = mtime
        self.logger.debug("Session loaded from disk")

    def _is_expired(self) -> bool:
        expires_at = self._data.get("expires_at")
        if expires_at is None:
            return False
        try:
            return time.time() >= float(expires_at) - EXPIRY_MARGIN_SECONDS
        except (TypeError, ValueError):
            self.logger.warning(f"Invalid expires_at in session file: {expires_at!r}")
            return True

    def is_authenticated(self) -> bool:
        """True if a non-expired access token is on file"""
        self._load()
        return bool(self._data.get("access_token")) and not self._is_expired()

    def get_token(self) -> Optional[str]:
        if not self.is_authenticated():
            return None
        return self._data["access_token"]

    def get_user_id(self) -> Optional[str]:
        if not self.is_authenticated():
            return None
        return self._data.get("user_id")

    def save_token(
        self,
        access_token: str,
        user_id: Optional[str] = None,
        expires_at: Optional[float] = None,
    ) -> None:
        """
        Write a new session to disk.

        Args:
            access_token: Bearer token for the broker
            user_id: Owner of the token (needed for quota lookups)
            expires_at: Unix time the token stops being valid
        """
        data: Dict[str, Any] = {"access_token": access_token}
        if user_id is not None:
            data["user_id"] = user_id
        if expires_at is not None:
            data["expires_at"] = expires_at

        directory = os.path.dirname(self.token_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with open(self.token_path, "w") as f:
            json.dump(data, f, indent=2)

        self._data = data
        self._loaded_mtime = os.path.getmtime(self.token_path)
        self.logger.info("Session saved")

    def clear(self) -> None:
        """Sign out: delete the token file"""
        try:
            os.remove(self.token_path)
        except FileNotFoundError:
            pass
        self._data = {}
        self._loaded_mtime = None
        self.logger.info("Session cleared")
