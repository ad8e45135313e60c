"""
Blob Transfer Client - Single Responsibility: move bytes to and from the blob store.

Talks to presigned URLs directly; the backend never sees file bytes.
"""
from pathlib import Path
from typing import Optional
import logging

import httpx

from ..errors import CredentialExpiredError, TransferError
from ..models import UploadCredential

logger = logging.getLogger(__name__)


class BlobTransferClient:
    """
    Client for presigned blob-store requests.

    One request, one outcome: no retry and no chunking.
    """

    def __init__(
        self,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(timeout=self._timeout, transport=self._transport)
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    def _require_client(self) -> httpx.AsyncClient:
        if not self._client:
            raise RuntimeError("BlobTransferClient not initialized. Use 'async with' context.")
        return self._client

    async def upload(self, credential: UploadCredential, data: bytes, content_type: str) -> None:
        """
        PUT the full payload to the credential's presigned URL.

        Args:
            credential: Upload credential issued for this job
            data: Complete file contents
            content_type: Sent as the Content-Type header

        Raises:
            TransferError: non-2xx response or no response at all
            CredentialExpiredError: the failure happened after the credential expired
        """
        client = self._require_client()
        logger.info(f"Uploading {len(data)} bytes to bucket {credential.bucket} key {credential.key}")

        try:
            response = await client.put(
                credential.url,
                content=data,
                headers={"Content-Type": content_type},
            )
        except httpx.HTTPError as exc:
            if credential.is_expired():
                raise CredentialExpiredError(None, credential.expires_in) from exc
            raise TransferError(None, str(exc)) from exc

        if not response.is_success:
            if credential.is_expired():
                raise CredentialExpiredError(response.status_code, credential.expires_in)
            raise TransferError(response.status_code)

        logger.debug(f"Transfer of {credential.key} finished with {response.status_code}")

    async def download(self, url: str, destination: Path) -> Path:
        """Stream a presigned GET to ``destination``."""
        client = self._require_client()
        destination = Path(destination)
        destination.parent.mkdir(parents=True, exist_ok=True)

        try:
            async with client.stream("GET", url) as response:
                if not response.is_success:
                    raise TransferError(response.status_code)
                with open(destination, "wb") as f:
                    async for chunk in response.aiter_bytes():
                        f.write(chunk)
        except httpx.HTTPError as exc:
            raise TransferError(None, str(exc)) from exc

        logger.info(f"Downloaded output to {destination}")
        return destination
