"""
Mock Backend Implementations

In-memory session, broker, finalizer and quota oracle for tests and for
running without backend credentials. Each records its calls so tests can
assert on what the pipeline did.
"""

import logging
import threading
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
from uuid import uuid4

from upload.constants import FinalizeOutcome, RejectReason
from upload.interfaces.broker_interface import (
    BrokerRejectedError,
    SignedUpload,
    SignedUrlBrokerInterface,
)
from upload.interfaces.errors import UploadError
from upload.interfaces.finalizer_interface import FinalizeError, FinalizerInterface
from upload.interfaces.quota_interface import QuotaOracleInterface, QuotaUsage
from upload.interfaces.session_interface import SessionInterface
from upload.models.remote_upload import RemoteUpload

MOCK_STORAGE_LIMIT = 10 * 1024 * 1024 * 1024  # 10 GB
MOCK_VIDEO_CONTENT = b"\x00\x00\x00\x18ftypmp42mock-video"

_REJECTION_MESSAGES = {
    RejectReason.QUOTA_EXCEEDED: "Quota exceeded",
    RejectReason.UNAUTHENTICATED: "Unauthorized",
    RejectReason.SERVER_ERROR: "Simulated server error",
}


class MockSession(SessionInterface):
    """Session with a fixed token"""

    def __init__(
        self,
        authenticated: bool = True,
        token: Optional[str] = "mock-token",
        user_id: Optional[str] = "mock-user",
    ):
        self.authenticated = authenticated
        self.token = token
        self.user_id = user_id

    def is_authenticated(self) -> bool:
        return self.authenticated

    def get_token(self) -> Optional[str]:
        return self.token if self.authenticated else None

    def get_user_id(self) -> Optional[str]:
        return self.user_id if self.authenticated else None


class MockBroker(SignedUrlBrokerInterface):
    """
    Broker that issues fake signed URLs.

    Every negotiation creates an UPLOADING record; a MockFinalizer wired to
    this broker moves it to UPLOADED or FAILED. Downloads write content.

    Args:
        reject_reason: If set, every negotiation is rejected with it
        content: Bytes written by download_upload
    """

    def __init__(
        self,
        reject_reason: Optional[RejectReason] = None,
        content: bytes = MOCK_VIDEO_CONTENT,
    ):
        self.logger = logging.getLogger(__name__)
        self.reject_reason = reject_reason
        self.content = content
        self.negotiations: List[Dict[str, Any]] = []
        self.deleted: List[str] = []
        self.downloads: List[Tuple[str, str]] = []
        self.records: Dict[str, RemoteUpload] = {}
        self._lock = threading.Lock()

    def negotiate_upload(
        self,
        file_name: str,
        file_size: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SignedUpload:
        with self._lock:
            self.negotiations.append(
                {"file_name": file_name, "file_size": file_size, "metadata": metadata},
            )

        if self.reject_reason is not None:
            self.logger.info(f"[MOCK] Rejecting {file_name}: {self.reject_reason.value}")
            raise BrokerRejectedError(
                _REJECTION_MESSAGES[self.reject_reason],
                reason=self.reject_reason,
            )

        key = f"mock-user/{uuid4().hex}/{file_name}"
        signed = SignedUpload(
            upload_url=f"https://storage.mock.local/{key}?X-Signature=mock",
            remote_id=f"mock_{uuid4().hex[:11]}",
            object_key=key,
        )
        self.add_record(
            RemoteUpload(
                id=signed.remote_id,
                filename=file_name,
                file_size=file_size,
                status="UPLOADING",
                uploaded_at=datetime.now(timezone.utc).isoformat(),
                object_key=key,
                metadata=dict(metadata or {}),
            ),
        )
        self.logger.info(f"[MOCK] Issued upload URL for {file_name} ({signed.remote_id})")
        return signed

    def delete_upload(self, remote_id: str) -> None:
        with self._lock:
            self.deleted.append(remote_id)
            self.records.pop(remote_id, None)
        self.logger.info(f"[MOCK] Deleted upload {remote_id}")

    def list_uploads(self) -> List[RemoteUpload]:
        with self._lock:
            uploaded = [r for r in self.records.values() if r.status == "UPLOADED"]
        return sorted(uploaded, key=lambda r: r.uploaded_at or "", reverse=True)

    def download_upload(self, remote_id: str, dest_path: str) -> str:
        with self._lock:
            record = self.records.get(remote_id)
            self.downloads.append((remote_id, str(dest_path)))

        if record is None:
            raise UploadError(f"Upload {remote_id} not found")

        dest = Path(dest_path)
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.content)
        self.logger.info(f"[MOCK] Downloaded {remote_id} to {dest}")
        return str(dest)

    def add_record(self, record: RemoteUpload) -> None:
        with self._lock:
            self.records[record.id] = record

    def set_status(self, remote_id: str, status: str) -> None:
        with self._lock:
            record = self.records.get(remote_id)
            if record is not None:
                self.records[remote_id] = replace(record, status=status)

    @property
    def negotiation_count(self) -> int:
        with self._lock:
            return len(self.negotiations)


class MockFinalizer(FinalizerInterface):
    """
    Finalizer that records every mark_terminal call.

    Args:
        fail: If True, every call raises FinalizeError after recording
        broker: MockBroker whose record status should follow the outcome
    """

    def __init__(self, fail: bool = False, broker: Optional[MockBroker] = None):
        self.logger = logging.getLogger(__name__)
        self.fail = fail
        self.broker = broker
        self.calls: List[Tuple[str, FinalizeOutcome]] = []
        self._lock = threading.Lock()

    def mark_terminal(self, remote_id: str, outcome: FinalizeOutcome) -> None:
        with self._lock:
            self.calls.append((remote_id, outcome))

        if self.fail:
            raise FinalizeError("Simulated finalize failure")

        if self.broker is not None:
            self.broker.set_status(remote_id, outcome.value)
        self.logger.info(f"[MOCK] Upload {remote_id} marked {outcome.value}")

    def outcomes_for(self, remote_id: str) -> List[FinalizeOutcome]:
        with self._lock:
            return [outcome for rid, outcome in self.calls if rid == remote_id]

    def was_marked(self, outcome: FinalizeOutcome) -> bool:
        with self._lock:
            return any(o == outcome for _, o in self.calls)


class MockQuotaOracle(QuotaOracleInterface):
    """Quota mirror with settable usage"""

    def __init__(self, used: int = 0, limit: int = MOCK_STORAGE_LIMIT):
        self._usage = QuotaUsage(used=used, limit=limit)
        self.refresh_count = 0
        self.deltas: List[int] = []
        self._lock = threading.Lock()

    def get_usage(self) -> QuotaUsage:
        with self._lock:
            return self._usage

    def refresh(self) -> None:
        with self._lock:
            self.refresh_count += 1

    def record_delta(self, delta_bytes: int) -> None:
        with self._lock:
            self.deltas.append(delta_bytes)
            self._usage = QuotaUsage(
                used=max(0, self._usage.used + delta_bytes),
                limit=self._usage.limit,
            )

    def set_usage(self, used: int, limit: int) -> None:
        with self._lock:
            self._usage = QuotaUsage(used=used, limit=limit)
