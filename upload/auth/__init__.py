"""
Authentication Package

File-backed session for the signed-URL broker.
"""

from upload.auth.session_manager import SessionManager

__all__ = [
    "SessionManager",
]
