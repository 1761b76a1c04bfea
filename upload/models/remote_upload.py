"""
Remote Upload Model

Server-side record of a finished upload, as listed by the broker.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class RemoteUpload:
    """
    One row of the uploads table.

    Attributes:
        id: Record id (same as TransferSnapshot.remote_id)
        filename: Original file name
        file_size: Stored size in bytes
        status: UPLOADING, UPLOADED or FAILED
        uploaded_at: ISO-8601 timestamp from the backend
        object_key: Storage key of the object
        duration_seconds: Video length, if the backend knows it
        metadata: Caller metadata sent with the negotiation
    """

    id: str
    filename: str
    file_size: int
    status: str
    uploaded_at: Optional[str] = None
    object_key: Optional[str] = None
    duration_seconds: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "RemoteUpload":
        """Create RemoteUpload from a backend row"""
        return cls(
            id=str(data["id"]),
            filename=data.get("filename") or "",
            file_size=int(data.get("file_size") or 0),
            status=data.get("status") or "",
            uploaded_at=data.get("uploaded_at"),
            object_key=data.get("b2_file_name"),
            duration_seconds=data.get("duration_seconds"),
            metadata=data.get("metadata") or {},
        )

    def to_dict(self) -> dict:
        """Convert to dictionary for logging/display"""
        return {
            "id": self.id,
            "filename": self.filename,
            "file_size": self.file_size,
            "status": self.status,
            "uploaded_at": self.uploaded_at,
            "object_key": self.object_key,
            "duration_seconds": self.duration_seconds,
            "metadata": dict(self.metadata),
        }
