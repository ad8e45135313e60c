"""
Credential Client - Single Responsibility: obtain presigned URLs.

Pure request/response; holds no state beyond the API adapter.
"""
import logging

from ..models import DownloadCredential, UploadCredential
from ..protocols import IAPIClient

log = logging.getLogger(__name__)


class CredentialClient:
    """Requests upload and download credentials from the backend."""

    def __init__(self, api_client: IAPIClient):
        self._api = api_client

    async def request_upload_credential(self, filename: str, content_type: str) -> UploadCredential:
        """
        Ask the backend for a presigned PUT URL.

        Args:
            filename: Name of the file being uploaded
            content_type: MIME type the transfer will be sent with

        Returns:
            UploadCredential carrying the jobId assigned to this upload

        Raises:
            BackendError: non-success status or a body missing required fields
        """
        data = await self._api.post(
            "/presign/upload",
            json={"filename": filename, "contentType": content_type},
        )
        credential = UploadCredential.from_response(data)
        log.info(
            f"Upload credential issued for {filename}: job={credential.job_id} "
            f"key={credential.key} expiresIn={credential.expires_in}s"
        )
        return credential

    async def request_download_credential(self, object_key: str) -> DownloadCredential:
        """Ask the backend for a presigned GET URL for ``object_key``."""
        data = await self._api.get("/presign/download", params={"key": object_key})
        credential = DownloadCredential.from_response(data)
        log.info(f"Download credential issued for {object_key}")
        return credential
