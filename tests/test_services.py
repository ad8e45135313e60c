"""Tests for jobclient HTTP services."""
import json
import time

import httpx
import pytest

from jobclient.errors import BackendError, CallerError, CredentialExpiredError, TransferError
from jobclient.models import RemoteState, UploadCredential
from jobclient.services.api_client import HTTPAPIClient
from jobclient.services.credentials import CredentialClient
from jobclient.services.reports import ReportClient, default_filename
from jobclient.services.status import StatusClient
from jobclient.services.transfer import BlobTransferClient


BASE_URL = "https://api.example"


def _credential(**overrides):
    values = dict(url="https://blob/x", key="k1", bucket="b", expires_in=900, job_id="j1")
    values.update(overrides)
    return UploadCredential(**values)


class TestHTTPAPIClient:
    @pytest.mark.asyncio
    async def test_requires_context(self):
        client = HTTPAPIClient(BASE_URL)
        with pytest.raises(RuntimeError, match="async with"):
            await client.get("/status")

    @pytest.mark.asyncio
    async def test_non_json_success_body(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        async with HTTPAPIClient(BASE_URL, transport=transport) as api:
            with pytest.raises(BackendError, match="non-JSON"):
                await api.get("/status")

    @pytest.mark.asyncio
    async def test_no_retry_on_server_error(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(503, json={"message": "down"})

        async with HTTPAPIClient(BASE_URL, transport=httpx.MockTransport(handler)) as api:
            with pytest.raises(BackendError) as excinfo:
                await api.post("/presign/upload", json={})

        assert len(calls) == 1
        assert excinfo.value.status == 503
        assert excinfo.value.message == "down"


class TestCredentialClient:
    @pytest.mark.asyncio
    async def test_request_upload_credential(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(
                200,
                json={"url": "https://blob/x", "key": "k1", "bucket": "b", "expiresIn": 900, "jobId": "j1"},
            )

        async with HTTPAPIClient(BASE_URL, transport=httpx.MockTransport(handler)) as api:
            credential = await CredentialClient(api).request_upload_credential("a.csv", "text/csv")

        assert seen == {
            "method": "POST",
            "path": "/presign/upload",
            "body": {"filename": "a.csv", "contentType": "text/csv"},
        }
        assert credential.job_id == "j1"
        assert credential.url == "https://blob/x"

    @pytest.mark.asyncio
    async def test_error_message_from_body(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(400, json={"error": "bad filename"}))
        async with HTTPAPIClient(BASE_URL, transport=transport) as api:
            with pytest.raises(BackendError) as excinfo:
                await CredentialClient(api).request_upload_credential("a.csv", "text/csv")
        assert excinfo.value.status == 400
        assert excinfo.value.message == "bad filename"

    @pytest.mark.asyncio
    async def test_unparseable_error_body(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(502, text="Bad Gateway"))
        async with HTTPAPIClient(BASE_URL, transport=transport) as api:
            with pytest.raises(BackendError) as excinfo:
                await CredentialClient(api).request_upload_credential("a.csv", "text/csv")
        assert excinfo.value.status == 502
        assert excinfo.value.message == ""

    @pytest.mark.asyncio
    async def test_malformed_success_body(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, json={"key": "k1"}))
        async with HTTPAPIClient(BASE_URL, transport=transport) as api:
            with pytest.raises(BackendError, match="url"):
                await CredentialClient(api).request_upload_credential("a.csv", "text/csv")

    @pytest.mark.asyncio
    async def test_request_download_credential(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["key"] = request.url.params["key"]
            return httpx.Response(200, json={"url": "https://blob/out"})

        async with HTTPAPIClient(BASE_URL, transport=httpx.MockTransport(handler)) as api:
            credential = await CredentialClient(api).request_download_credential("out/k1")

        assert seen == {"path": "/presign/download", "key": "out/k1"}
        assert credential.url == "https://blob/out"


class TestStatusClient:
    @pytest.mark.asyncio
    async def test_fetch_status(self):
        def handler(request):
            assert request.url.path == "/status"
            assert request.url.params["jobId"] == "j 1"
            return httpx.Response(200, json={"jobId": "j 1", "state": "RUNNING", "percent": 30})

        async with HTTPAPIClient(BASE_URL, transport=httpx.MockTransport(handler)) as api:
            status = await StatusClient(api).fetch_status("j 1")

        assert status.state is RemoteState.RUNNING
        assert status.percent == 30


class TestBlobTransferClient:
    @pytest.mark.asyncio
    async def test_upload_puts_bytes_with_content_type(self):
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["url"] = str(request.url)
            seen["content_type"] = request.headers["content-type"]
            seen["body"] = request.content
            return httpx.Response(200)

        async with BlobTransferClient(transport=httpx.MockTransport(handler)) as transfer:
            await transfer.upload(_credential(), b"0123456789", "text/csv")

        assert seen == {
            "method": "PUT",
            "url": "https://blob/x",
            "content_type": "text/csv",
            "body": b"0123456789",
        }

    @pytest.mark.asyncio
    async def test_upload_failure_carries_status(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(403))
        async with BlobTransferClient(transport=transport) as transfer:
            with pytest.raises(TransferError) as excinfo:
                await transfer.upload(_credential(), b"data", "text/csv")
        assert excinfo.value.status == 403

    @pytest.mark.asyncio
    async def test_upload_after_expiry_is_credential_error(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(403))
        stale = _credential(expires_in=60, issued_at=time.monotonic() - 120)
        async with BlobTransferClient(transport=transport) as transfer:
            with pytest.raises(CredentialExpiredError) as excinfo:
                await transfer.upload(stale, b"data", "text/csv")
        assert excinfo.value.status == 403

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with BlobTransferClient(transport=httpx.MockTransport(handler)) as transfer:
            with pytest.raises(TransferError) as excinfo:
                await transfer.upload(_credential(), b"data", "text/csv")
        assert excinfo.value.status is None

    @pytest.mark.asyncio
    async def test_download_to_file(self, tmp_path):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, content=b"id,text\n1,hola\n"))
        target = tmp_path / "out" / "result.csv"
        async with BlobTransferClient(transport=transport) as transfer:
            path = await transfer.download("https://blob/out", target)
        assert path == target
        assert target.read_bytes() == b"id,text\n1,hola\n"

    @pytest.mark.asyncio
    async def test_download_failure(self, tmp_path):
        transport = httpx.MockTransport(lambda r: httpx.Response(404))
        async with BlobTransferClient(transport=transport) as transfer:
            with pytest.raises(TransferError) as excinfo:
                await transfer.download("https://blob/out", tmp_path / "x.csv")
        assert excinfo.value.status == 404


class TestReportClient:
    def test_default_filename(self):
        assert default_filename("vercel", "next.js") == "vercel-next.js-issues.csv"

    @pytest.mark.asyncio
    async def test_download_issues_csv(self):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, content=b"number,title\n1,bug\n")

        async with HTTPAPIClient(BASE_URL, transport=httpx.MockTransport(handler)) as api:
            content = await ReportClient(api).download_issues_csv("vercel", "next.js", ["bug", "docs"], 10)

        assert content == b"number,title\n1,bug\n"
        assert seen["path"] == "/issues.csv"
        assert seen["params"] == {"owner": "vercel", "repo": "next.js", "labels": "bug,docs", "wantedN": "10"}

    @pytest.mark.asyncio
    async def test_wanted_n_out_of_range(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200))
        async with HTTPAPIClient(BASE_URL, transport=transport) as api:
            with pytest.raises(CallerError):
                await ReportClient(api).download_issues_csv("vercel", "next.js", "bug", 0)

    @pytest.mark.asyncio
    async def test_backend_error(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(500, text="oops"))
        async with HTTPAPIClient(BASE_URL, transport=transport) as api:
            with pytest.raises(BackendError) as excinfo:
                await ReportClient(api).download_issues_csv("vercel", "next.js")
        assert excinfo.value.status == 500
