"""
Protocols (Interfaces) for Dependency Inversion.

The orchestrator and poller depend on these, never on the HTTP adapters
directly, so tests and alternative transports can be injected.
"""
from typing import Any, Dict, Optional, Protocol, runtime_checkable

from .models import DownloadCredential, JobStatus, UploadCredential


@runtime_checkable
class IAPIClient(Protocol):
    """Interface for backend API operations."""

    async def post(self, endpoint: str, json: Dict) -> Any:
        """POST request to API, returning the decoded JSON body."""
        ...

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        """GET request to API, returning the decoded JSON body."""
        ...


@runtime_checkable
class ICredentialClient(Protocol):
    """Interface for credential issuance."""

    async def request_upload_credential(self, filename: str, content_type: str) -> UploadCredential:
        ...

    async def request_download_credential(self, object_key: str) -> DownloadCredential:
        ...


@runtime_checkable
class IBlobTransferClient(Protocol):
    """Interface for direct blob-store transfer."""

    async def upload(self, credential: UploadCredential, data: bytes, content_type: str) -> None:
        ...


@runtime_checkable
class IStatusClient(Protocol):
    """Interface for a single status fetch."""

    async def fetch_status(self, job_id: str) -> JobStatus:
        ...
