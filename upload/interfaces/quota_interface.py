"""
Quota Oracle Interface

Client-side mirror of the account storage quota. Informational only: the
broker enforces the quota at negotiation time.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class QuotaUsage:
    """
    Storage usage snapshot.

    Attributes:
        used: Bytes currently stored
        limit: Account ceiling in bytes
    """

    used: int
    limit: int

    @property
    def remaining(self) -> int:
        return max(0, self.limit - self.used)

    @property
    def percent_used(self) -> float:
        if self.limit <= 0:
            return 0.0
        return (self.used / self.limit) * 100


class QuotaOracleInterface(ABC):
    """
    Abstract base class for quota oracles.
    """

    @abstractmethod
    def get_usage(self) -> QuotaUsage:
        """Current (possibly stale) usage"""

    @abstractmethod
    def refresh(self) -> None:
        """Re-fetch usage from the authoritative backend"""

    @abstractmethod
    def record_delta(self, delta_bytes: int) -> None:
        """
        Adjust the local figure after an upload (+) or delete (-).

        The next refresh() replaces it with the backend value.
        """

    def would_fit(self, file_size: int) -> bool:
        """
        Check whether a file of file_size bytes fits the quota.

        Returns:
            False only when the mirror says the upload would exceed it
        """
        usage = self.get_usage()
        return usage.used + file_size <= usage.limit
