"""
Session Interface

Authentication state of the desktop client. The queue only needs to know
whether a user is signed in and which bearer token to send.
"""

from abc import ABC, abstractmethod
from typing import Optional


class SessionInterface(ABC):
    """
    Abstract base class for session providers.
    """

    @abstractmethod
    def is_authenticated(self) -> bool:
        """True if a user is signed in"""

    @abstractmethod
    def get_token(self) -> Optional[str]:
        """Bearer token for broker calls, or None"""

    @abstractmethod
    def get_user_id(self) -> Optional[str]:
        """Id of the signed-in user, or None"""
