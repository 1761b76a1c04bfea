"""
Transfer Item Model

One requested upload and its state machine:

    pending -> uploading -> completed | error | cancelled
    pending -> cancelled              (cancelled before a worker started it)

Items are owned and mutated by UploadQueue only. Observers receive
TransferSnapshot copies, never the live item.
"""

import time
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Mapping, Optional

from upload.constants import (
    PROGRESS_COMPLETE,
    TERMINAL_STATUSES,
    ErrorKind,
    TransferStatus,
)
from upload.interfaces.transport_interface import CancelToken

# Allowed transitions; terminal states have none
_TRANSITIONS = {
    TransferStatus.PENDING: {TransferStatus.UPLOADING, TransferStatus.CANCELLED},
    TransferStatus.UPLOADING: {
        TransferStatus.COMPLETED,
        TransferStatus.ERROR,
        TransferStatus.CANCELLED,
    },
}


class InvalidTransitionError(ValueError):
    """Raised when a status change violates the item state machine"""


@dataclass(frozen=True)
class TransferSnapshot:
    """Immutable view of a TransferItem handed to observers and callers"""

    id: str
    source_path: str
    status: TransferStatus
    progress: int
    working_path: Optional[str] = None
    remote_id: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    file_size: Optional[int] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)
    created_at: float = 0.0
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def duration(self) -> Optional[float]:
        """Seconds from start to finish, if both are known"""
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at


@dataclass
class TransferItem:
    """
    Represents one upload moving through the pipeline.

    Mutators enforce the model invariants:
    - status only follows _TRANSITIONS
    - progress never decreases and is frozen once terminal
    - working_path and remote_id are each set at most once
    - cancel_handle only exists while uploading
    """

    id: str
    source_path: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    status: TransferStatus = TransferStatus.PENDING
    progress: int = 0
    working_path: Optional[str] = None
    remote_id: Optional[str] = None
    error_message: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    file_size: Optional[int] = None

    # Explicit cancel request, set by UploadQueue.cancel()
    cancel_requested: bool = False
    # Set once the pipeline decided the outcome is success
    committed: bool = False
    cancel_handle: Optional[CancelToken] = None

    created_at: float = field(default_factory=time.time)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None

    def __post_init__(self):
        self.metadata = MappingProxyType(dict(self.metadata or {}))

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_uploading(self) -> bool:
        return self.status == TransferStatus.UPLOADING

    # =========================================================================
    # STATE TRANSITIONS
    # =========================================================================

    def _transition(self, new_status: TransferStatus) -> None:
        allowed = _TRANSITIONS.get(self.status, set())
        if new_status not in allowed:
            raise InvalidTransitionError(
                f"Item {self.id}: {self.status.value} -> {new_status.value} "
                f"is not allowed",
            )
        self.status = new_status
        if new_status == TransferStatus.UPLOADING:
            self.started_at = time.time()
        elif new_status in TERMINAL_STATUSES:
            self.finished_at = time.time()
            self.cancel_handle = None

    def mark_uploading(self) -> None:
        self._transition(TransferStatus.UPLOADING)

    def mark_completed(self) -> None:
        self._transition(TransferStatus.COMPLETED)
        self.progress = PROGRESS_COMPLETE

    def mark_error(self, kind: ErrorKind, message: str) -> None:
        self._transition(TransferStatus.ERROR)
        self.error_kind = kind
        self.error_message = message

    def mark_cancelled(self, message: str) -> None:
        self._transition(TransferStatus.CANCELLED)
        self.error_kind = ErrorKind.CANCELLED
        self.error_message = message

    # =========================================================================
    # FIELD UPDATES
    # =========================================================================

    def advance_progress(self, value: int) -> bool:
        """
        Raise progress to value.

        Returns:
            True if progress changed. Lower values and terminal items are
            ignored.
        """
        if self.status != TransferStatus.UPLOADING:
            return False
        value = max(0, min(PROGRESS_COMPLETE, int(value)))
        if value <= self.progress:
            return False
        self.progress = value
        return True

    def set_working_path(self, path: str) -> None:
        if self.working_path is not None:
            raise InvalidTransitionError(
                f"Item {self.id}: working_path already set",
            )
        self.working_path = path

    def set_remote_id(self, remote_id: str) -> None:
        if self.remote_id is not None:
            raise InvalidTransitionError(
                f"Item {self.id}: remote_id already set to {self.remote_id}",
            )
        self.remote_id = remote_id

    def snapshot(self) -> TransferSnapshot:
        return TransferSnapshot(
            id=self.id,
            source_path=self.source_path,
            status=self.status,
            progress=self.progress,
            working_path=self.working_path,
            remote_id=self.remote_id,
            error_message=self.error_message,
            error_kind=self.error_kind,
            file_size=self.file_size,
            metadata=self.metadata,
            created_at=self.created_at,
            started_at=self.started_at,
            finished_at=self.finished_at,
        )
