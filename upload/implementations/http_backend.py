"""
HTTP Backend Implementations

Broker, finalizer and quota oracle backed by the upload backend's HTTP API
(edge functions for negotiation, finalization and download URLs, REST
tables for profile and upload records). All three share one BrokerApiClient.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional

import requests

from upload.constants import (
    DEFAULT_HTTP_TIMEOUT,
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_ENDPOINT,
    DOWNLOAD_PART_SUFFIX,
    FINALIZE_ENDPOINT,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_PAYLOAD_TOO_LARGE,
    HTTP_STATUS_UNAUTHORIZED,
    NEGOTIATE_ENDPOINT,
    PROFILE_ENDPOINT,
    UPLOADS_ENDPOINT,
    ErrorKind,
    FinalizeOutcome,
    RejectReason,
)
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


def _error_detail(response: requests.Response) -> str:
    """Best-effort error text from a backend response"""
    try:
        body = response.json()
        if isinstance(body, dict):
            detail = body.get("error") or body.get("message")
            if detail:
                return str(detail)
    except ValueError:
        pass
    return (response.text or response.reason or "").strip()[:200]


class BrokerApiClient:
    """
    Thin wrapper around requests.Session for backend calls.

    Adds the bearer token (read from the session on every call, so token
    refreshes are picked up) and the public API key.
    """

    def __init__(
        self,
        base_url: str,
        session: SessionInterface,
        api_key: str = "",
        http_timeout: float = DEFAULT_HTTP_TIMEOUT,
        http_session: Optional[requests.Session] = None,
    ):
        """
        Args:
            base_url: Backend root, e.g. https://project.supabase.co
            session: Supplies token and user id
            api_key: Public API key sent as the apikey header
            http_timeout: Per-request timeout in seconds
            http_session: Custom requests session (testing)
        """
        if not base_url:
            raise ValueError("Broker base URL is required")

        self.logger = logging.getLogger(__name__)
        self.base_url = base_url.rstrip("/")
        self.session = session
        self.api_key = api_key
        self.http_timeout = http_timeout
        self._http = http_session or requests.Session()

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        token = self.session.get_token()
        if token:
            headers["Authorization"] = f"Bearer {token}"
        if self.api_key:
            headers["apikey"] = self.api_key
        return headers

    def request(self, method: str, endpoint: str, **kwargs: Any) -> requests.Response:
        """
        Send a request to base_url + endpoint.

        Raises:
            requests.RequestException: Network errors and timeouts
        """
        url = f"{self.base_url}{endpoint}"
        self.logger.debug(f"{method} {url}")
        return self._http.request(
            method,
            url,
            headers=self._headers(),
            timeout=self.http_timeout,
            **kwargs,
        )

    def stream(self, url: str) -> requests.Response:
        """
        GET an absolute URL (a signed download link) as a stream.

        No bearer token or API key is sent; the signature authorizes it.

        Raises:
            requests.RequestException: Network errors and timeouts
        """
        self.logger.debug(f"GET (stream) {url.split('?', 1)[0]}")
        return self._http.get(url, stream=True, timeout=self.http_timeout)

    def close(self) -> None:
        self._http.close()


class HttpBroker(SignedUrlBrokerInterface):
    """
    Negotiates signed upload URLs with the backend.

    Status mapping:
    - 200 with uploadUrl and upload.id -> SignedUpload
    - 401 -> unauthenticated
    - 413 -> quota_exceeded
    - anything else, network errors, malformed body -> server_error

    Also lists, downloads and deletes the user's upload records.
    """

    def __init__(self, client: BrokerApiClient):
        self.logger = logging.getLogger(__name__)
        self.client = client

    def negotiate_upload(
        self,
        file_name: str,
        file_size: int,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> SignedUpload:
        payload = {
            "fileName": file_name,
            "fileSize": file_size,
            "metadata": metadata or None,
        }

        try:
            response = self.client.request("POST", NEGOTIATE_ENDPOINT, json=payload)
        except requests.Timeout as e:
            raise BrokerRejectedError(
                f"timeout contacting upload service ({e})",
                reason=RejectReason.SERVER_ERROR,
            ) from e
        except requests.RequestException as e:
            raise BrokerRejectedError(
                f"network error ({e})",
                reason=RejectReason.SERVER_ERROR,
            ) from e

        if response.status_code == HTTP_STATUS_UNAUTHORIZED:
            raise BrokerRejectedError(
                _error_detail(response) or "Unauthorized",
                reason=RejectReason.UNAUTHENTICATED,
            )

        if response.status_code == HTTP_STATUS_PAYLOAD_TOO_LARGE:
            raise BrokerRejectedError(
                _error_detail(response) or "Quota exceeded",
                reason=RejectReason.QUOTA_EXCEEDED,
            )

        if not response.ok:
            raise BrokerRejectedError(
                f"HTTP {response.status_code}: {_error_detail(response)}",
                reason=RejectReason.SERVER_ERROR,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise BrokerRejectedError(
                "invalid response from upload service",
                reason=RejectReason.SERVER_ERROR,
            ) from e

        upload = (data or {}).get("upload") or {}
        upload_url = (data or {}).get("uploadUrl")
        remote_id = upload.get("id")

        if not upload_url or not remote_id:
            raise BrokerRejectedError(
                "No upload URL received from server",
                reason=RejectReason.SERVER_ERROR,
            )

        return SignedUpload(
            upload_url=upload_url,
            remote_id=str(remote_id),
            object_key=upload.get("b2_file_name"),
        )

    def delete_upload(self, remote_id: str) -> None:
        """
        Delete an upload record (row-level security limits it to the owner).

        Raises:
            UploadError: If the backend refused or was unreachable
        """
        try:
            response = self.client.request(
                "DELETE",
                UPLOADS_ENDPOINT,
                params={"id": f"eq.{remote_id}"},
            )
        except requests.RequestException as e:
            raise UploadError(f"Failed to delete upload {remote_id}: {e}") from e

        if not response.ok:
            raise UploadError(
                f"Failed to delete upload {remote_id}: "
                f"HTTP {response.status_code} {_error_detail(response)}",
            )

        self.logger.info(f"Deleted upload record {remote_id}")

    def list_uploads(self) -> List[RemoteUpload]:
        """
        Fetch the user's UPLOADED records, newest first.

        Raises:
            UploadError: No user, network error, or bad response
        """
        user_id = self.client.session.get_user_id()
        if not user_id:
            raise UploadError(
                "Cannot list uploads without a signed-in user",
                kind=ErrorKind.AUTH_REQUIRED,
            )

        try:
            response = self.client.request(
                "GET",
                UPLOADS_ENDPOINT,
                params={
                    "select": "*",
                    "user_id": f"eq.{user_id}",
                    "status": f"eq.{FinalizeOutcome.UPLOADED.value}",
                    "order": "uploaded_at.desc",
                },
            )
        except requests.RequestException as e:
            raise UploadError(f"Failed to fetch uploads: {e}") from e

        if not response.ok:
            raise UploadError(
                f"Failed to fetch uploads: HTTP {response.status_code} "
                f"{_error_detail(response)}",
            )

        try:
            rows = response.json() or []
            uploads = [RemoteUpload.from_dict(row) for row in rows]
        except (ValueError, KeyError, TypeError) as e:
            raise UploadError(f"Invalid uploads response: {e}") from e

        self.logger.debug(f"Fetched {len(uploads)} upload(s) for {user_id}")
        return uploads

    def download_upload(self, remote_id: str, dest_path: str) -> str:
        """
        Get a signed download URL and stream the object to dest_path.

        The body is written to dest_path + ".part" and renamed once complete,
        so a failed download never leaves a truncated file at dest_path.

        Raises:
            UploadError: Auth rejected, unknown record, network error
        """
        download_url = self._request_download_url(remote_id)
        dest = Path(dest_path)
        part = dest.with_name(dest.name + DOWNLOAD_PART_SUFFIX)

        self.logger.info(f"Downloading upload {remote_id} to {dest}")

        try:
            with self.client.stream(download_url) as response:
                if not response.ok:
                    raise UploadError(
                        f"Download failed: {response.status_code} {response.reason}",
                    )
                dest.parent.mkdir(parents=True, exist_ok=True)
                bytes_written = 0
                with open(part, "wb") as f:
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if chunk:
                            f.write(chunk)
                            bytes_written += len(chunk)
            os.replace(part, dest)

        except UploadError:
            self._discard(part)
            raise
        except (requests.RequestException, OSError) as e:
            self._discard(part)
            raise UploadError(f"Download failed: {e}") from e

        self.logger.info(f"✅ Downloaded {remote_id} ({bytes_written} bytes)")
        return str(dest)

    def _request_download_url(self, remote_id: str) -> str:
        try:
            response = self.client.request(
                "POST",
                DOWNLOAD_ENDPOINT,
                json={"uploadId": remote_id},
            )
        except requests.RequestException as e:
            raise UploadError(f"Failed to get download URL: {e}") from e

        if response.status_code == HTTP_STATUS_UNAUTHORIZED:
            raise UploadError(
                _error_detail(response) or "Unauthorized",
                kind=ErrorKind.AUTH_REQUIRED,
            )

        if response.status_code == HTTP_STATUS_NOT_FOUND:
            raise UploadError(f"Upload {remote_id} not found")

        if not response.ok:
            raise UploadError(
                f"Failed to get download URL: HTTP {response.status_code} "
                f"{_error_detail(response)}",
            )

        try:
            download_url = (response.json() or {}).get("downloadUrl")
        except ValueError as e:
            raise UploadError("Invalid response from download service") from e

        if not download_url:
            raise UploadError("No download URL received from server")
        return download_url

    def _discard(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            self.logger.warning(f"Could not remove partial download {path}: {e}")


class HttpFinalizer(FinalizerInterface):
    """
    Marks upload records UPLOADED or FAILED via the complete-upload function.
    """

    def __init__(self, client: BrokerApiClient):
        self.logger = logging.getLogger(__name__)
        self.client = client

    def mark_terminal(self, remote_id: str, outcome: FinalizeOutcome) -> None:
        payload = {"uploadId": remote_id, "status": outcome.value}

        try:
            response = self.client.request("POST", FINALIZE_ENDPOINT, json=payload)
        except requests.RequestException as e:
            raise FinalizeError(f"complete-upload unreachable: {e}") from e

        if not response.ok:
            raise FinalizeError(
                f"complete-upload returned HTTP {response.status_code}: "
                f"{_error_detail(response)}",
            )

        self.logger.debug(f"Upload {remote_id} marked {outcome.value}")


class HttpQuotaOracle(QuotaOracleInterface):
    """
    Mirrors storage_used / storage_limit from the user's profile row.

    The figure is fetched lazily on first use and refreshed on demand;
    record_delta adjusts it locally in between.
    """

    def __init__(self, client: BrokerApiClient):
        self.logger = logging.getLogger(__name__)
        self.client = client
        self._usage: Optional[QuotaUsage] = None
        self._lock = threading.Lock()

    def get_usage(self) -> QuotaUsage:
        with self._lock:
            usage = self._usage
        if usage is None:
            self.refresh()
            with self._lock:
                usage = self._usage
        return usage

    def refresh(self) -> None:
        """
        Re-fetch usage from the profile table.

        Raises:
            UploadError: No user, network error, or missing profile
        """
        user_id = self.client.session.get_user_id()
        if not user_id:
            raise UploadError(
                "Cannot fetch storage quota without a signed-in user",
                kind=ErrorKind.AUTH_REQUIRED,
            )

        try:
            response = self.client.request(
                "GET",
                PROFILE_ENDPOINT,
                params={
                    "id": f"eq.{user_id}",
                    "select": "storage_used,storage_limit",
                },
            )
            response.raise_for_status()
            rows = response.json()
        except (requests.RequestException, ValueError) as e:
            raise UploadError(f"Failed to fetch storage quota: {e}") from e

        if not rows:
            raise UploadError(f"Profile not found for user {user_id}")

        profile = rows[0]
        usage = QuotaUsage(
            used=int(profile.get("storage_used") or 0),
            limit=int(profile.get("storage_limit") or 0),
        )

        with self._lock:
            self._usage = usage

        self.logger.debug(
            f"Storage quota: {usage.used} / {usage.limit} bytes "
            f"({usage.percent_used:.1f}%)",
        )

    def record_delta(self, delta_bytes: int) -> None:
        with self._lock:
            if self._usage is None:
                return
            self._usage = QuotaUsage(
                used=max(0, self._usage.used + delta_bytes),
                limit=self._usage.limit,
            )
