"""HTTP adapter for backend API operations."""
from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from ..errors import BackendError

log = logging.getLogger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Backend-supplied error message, or empty string when the body is unparseable."""
    try:
        body = response.json()
    except ValueError:
        return ""
    if isinstance(body, dict):
        for field in ("message", "error", "detail"):
            value = body.get(field)
            if isinstance(value, str):
                return value
    return ""


class HTTPAPIClient:
    """
    HTTP client adapter for backend calls.

    Implements IAPIClient protocol. One request per call, no retries: a
    backend hiccup surfaces immediately as BackendError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 60,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        self._client = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args):
        if self._client:
            await self._client.aclose()
            self._client = None

    async def post(self, endpoint: str, json: Dict) -> Any:
        return await self._request("POST", endpoint, json=json)

    async def get(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", endpoint, params=params)

    async def get_bytes(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> bytes:
        response = await self._send("GET", endpoint, params=params)
        return response.content

    async def _request(self, method: str, endpoint: str, **kwargs) -> Any:
        response = await self._send(method, endpoint, **kwargs)
        try:
            return response.json()
        except ValueError:
            raise BackendError(
                response.status_code, f"{method} {endpoint} returned a non-JSON body"
            )

    async def _send(self, method: str, endpoint: str, **kwargs) -> httpx.Response:
        if not self._client:
            raise RuntimeError("HTTPAPIClient not initialized. Use 'async with' context.")

        response = await self._client.request(method, endpoint, **kwargs)
        log.debug(f"{method} {endpoint} -> {response.status_code}")

        if not response.is_success:
            message = _error_message(response)
            log.warning(f"API error {response.status_code} on {method} {endpoint}: {message}")
            raise BackendError(response.status_code, message)

        return response
