"""
Job Orchestrator - Coordinates the presigned upload workflow.

Flow:
1. Request an upload credential (CredentialClient)
2. PUT the file to the blob store (BlobTransferClient)
3. Poll the status resource until terminal (JobStatusPoller)
4. Optional: request a download credential for the output

One flow at a time per orchestrator: a second submit while busy is rejected
with Busy, never queued.
"""
from __future__ import annotations

import asyncio
import logging
import mimetypes
from functools import partial
from pathlib import Path
from typing import Callable, Optional, Union

import httpx

from .errors import Busy, CallerError, JobClientError
from .models import ClientConfig, Job, JobState, JobStatus, RemoteState
from .poller import JobStatusPoller
from .protocols import IBlobTransferClient, ICredentialClient, IStatusClient
from .services.api_client import HTTPAPIClient
from .services.credentials import CredentialClient
from .services.status import StatusClient
from .services.transfer import BlobTransferClient
from .utils.events import EventEmitter

log = logging.getLogger(__name__)

Source = Union[str, Path, bytes]


class JobOrchestrator:
    """
    Orchestrates one upload/process/download job at a time.

    Usage:
        async with JobOrchestrator(ClientConfig(base_url=api_url)) as jobs:
            jobs.on("job", lambda job: print(job.state, job.progress_percent))
            await jobs.submit(Path("a.csv"))
            job = await jobs.wait()
            if job.state is JobState.COMPLETED:
                url = await jobs.request_download()

    Observers subscribed to ``"job"`` receive a Job snapshot on every change;
    ``"status"`` listeners receive each non-terminal JobStatus as polled.
    """

    def __init__(
        self,
        config: ClientConfig,
        credential_client: Optional[ICredentialClient] = None,
        transfer_client: Optional[IBlobTransferClient] = None,
        status_client: Optional[IStatusClient] = None,
        poller_factory: Optional[Callable[[], JobStatusPoller]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize orchestrator with dependencies.

        Args:
            config: Client configuration (base URL, poll interval, bounds)
            credential_client: Pre-built credential client
            transfer_client: Pre-built blob transfer client
            status_client: Pre-built status client
            poller_factory: Builds a fresh poller for each job
            transport: httpx transport for the clients built in __aenter__
        """
        self._config = config
        self._credentials = credential_client
        self._transfer = transfer_client
        self._status = status_client
        self._poller_factory = poller_factory or self._default_poller
        self._transport = transport
        self._owned = []

        self._events = EventEmitter()
        self._job: Optional[Job] = None
        self._poller: Optional[JobStatusPoller] = None
        self._busy = False
        self._flow = 0
        self._settled = asyncio.Event()

    async def __aenter__(self):
        """Open HTTP clients for any collaborator not injected."""
        if self._credentials is None or self._status is None:
            api = HTTPAPIClient(
                self._config.base_url,
                timeout=self._config.request_timeout,
                transport=self._transport,
            )
            await api.__aenter__()
            self._owned.append(api)
            if self._credentials is None:
                self._credentials = CredentialClient(api)
            if self._status is None:
                self._status = StatusClient(api)

        if self._transfer is None:
            transfer = BlobTransferClient(
                timeout=self._config.request_timeout,
                transport=self._transport,
            )
            await transfer.__aenter__()
            self._owned.append(transfer)
            self._transfer = transfer

        return self

    async def __aexit__(self, *args):
        """Stop any running poller, then close owned clients."""
        self.close()
        while self._owned:
            await self._owned.pop().__aexit__(*args)

    def _default_poller(self) -> JobStatusPoller:
        return JobStatusPoller(
            self._status,
            interval=self._config.poll_interval,
            max_attempts=self._config.max_poll_attempts,
            max_duration=self._config.max_poll_duration,
        )

    @property
    def busy(self) -> bool:
        return self._busy

    @property
    def job(self) -> Optional[Job]:
        """Snapshot of the current job, if any."""
        return self._job.snapshot() if self._job else None

    def on(self, event_name: str, callback: Callable) -> None:
        self._events.on(event_name, callback)

    def off(self, event_name: str, callback: Callable) -> None:
        self._events.off(event_name, callback)

    def resolve_content_type(self, filename: str, content_type: Optional[str] = None) -> str:
        if content_type:
            return content_type
        guessed, _ = mimetypes.guess_type(filename)
        return guessed or self._config.default_content_type

    async def submit(
        self,
        source: Source,
        content_type: Optional[str] = None,
        filename: Optional[str] = None,
    ) -> Job:
        """
        Start a new job for ``source`` (a path or raw bytes).

        Returns once polling has started, or once the flow has failed; the
        outcome of the job itself is observed via events or ``wait()``.
        Credential and transfer failures are not raised; they leave the job
        in FAILED with ``last_error`` set.

        Raises:
            Busy: another flow is active on this orchestrator
            CallerError: the source cannot be read or has no filename
        """
        if self._busy:
            raise Busy()

        # Claim the guard before the first await.
        self._busy = True
        self._flow += 1
        flow = self._flow
        self._settled = asyncio.Event()

        try:
            name, data = await self._load(source, filename)
        except CallerError:
            self._release(flow)
            raise

        content_type = self.resolve_content_type(name, content_type)
        job = Job(filename=name, content_type=content_type)
        if not self._is_current(flow):
            # cancelled while reading the source
            return job
        self._job = job
        log.info(f"Submitting {name} ({len(data)} bytes, {content_type})")

        await self._set_state(flow, JobState.PRESIGNING)
        if not self._is_current(flow):
            return job.snapshot()
        try:
            credential = await self._credentials.request_upload_credential(name, content_type)
        except (JobClientError, httpx.HTTPError) as exc:
            return await self._fail(flow, f"presign failed: {exc}")
        if not self._is_current(flow):
            return job.snapshot()

        job.attach_credential(credential)
        await self._set_state(flow, JobState.UPLOADING)
        if not self._is_current(flow):
            return job.snapshot()
        try:
            await self._transfer.upload(credential, data, content_type)
        except (JobClientError, httpx.HTTPError) as exc:
            return await self._fail(flow, str(exc))
        if not self._is_current(flow):
            return job.snapshot()

        await self._set_state(flow, JobState.POLLING)
        if not self._is_current(flow):
            return job.snapshot()

        poller = self._poller_factory()
        self._poller = poller
        poller.start(
            credential.job_id,
            partial(self._on_update, flow),
            partial(self._on_terminal, flow),
        )
        return job.snapshot()

    def cancel_current(self) -> bool:
        """
        Stop local work on the active job and release the busy guard.

        The job keeps its last observed state; the backend is not told to
        stop. Returns False when nothing was active.
        """
        if not self._busy:
            return False

        self._flow += 1
        if self._poller is not None:
            self._poller.stop()
            self._poller = None
        self._busy = False
        self._settled.set()

        state = self._job.state.name if self._job else "IDLE"
        log.info(f"Cancelled current job locally (left in {state})")
        return True

    def close(self) -> None:
        """Teardown: make sure no poll timer outlives the orchestrator."""
        self.cancel_current()

    async def wait(self) -> Optional[Job]:
        """Wait until the current job is terminal or cancelled.

        Returns None when the flow was cancelled before a job was created.
        """
        if self._job is None and not self._busy:
            raise CallerError("no job has been submitted")
        await self._settled.wait()
        return self._job.snapshot() if self._job else None

    async def request_download(self) -> str:
        """Presigned GET URL for the completed job's output."""
        job = self._job
        if job is None or job.state is not JobState.COMPLETED:
            state = job.state.name if job else "IDLE"
            raise CallerError(f"download requires a COMPLETED job (current state {state})")
        if not job.output_key:
            raise CallerError(f"job {job.job_id} completed without an output key")

        credential = await self._credentials.request_download_credential(job.output_key)
        return credential.url

    async def download_output(self, destination: Union[str, Path]) -> Path:
        """Fetch the completed job's output into ``destination``."""
        url = await self.request_download()
        return await self._transfer.download(url, Path(destination))

    async def _load(self, source: Source, filename: Optional[str]):
        if isinstance(source, (bytes, bytearray)):
            if not filename:
                raise CallerError("filename is required when submitting raw bytes")
            return filename, bytes(source)

        path = Path(source)
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise CallerError(f"cannot read {path}: {exc}") from exc
        return filename or path.name, data

    def _is_current(self, flow: int) -> bool:
        return flow == self._flow and self._busy

    def _release(self, flow: int) -> None:
        if flow != self._flow:
            return
        self._busy = False
        self._poller = None
        self._settled.set()

    async def _set_state(self, flow: int, state: JobState) -> None:
        if not self._is_current(flow):
            return
        self._job.advance(state)
        log.info(f"Job {self._job.job_id or self._job.filename}: {state.name}")
        await self._events.emit("job", self._job.snapshot())

    async def _fail(self, flow: int, message: str) -> Job:
        job = self._job
        if not self._is_current(flow):
            return job.snapshot()
        job.fail(message)
        log.error(f"Job {job.job_id or job.filename} failed: {message}")
        self._release(flow)
        await self._events.emit("job", job.snapshot())
        return job.snapshot()

    async def _on_update(self, flow: int, status: JobStatus) -> None:
        if not self._is_current(flow):
            return
        job = self._job
        job.remote_state = status.state
        if status.percent is not None:
            job.progress_percent = status.percent
        await self._events.emit("status", status)
        await self._events.emit("job", job.snapshot())

    async def _on_terminal(self, flow: int, status: JobStatus) -> None:
        if not self._is_current(flow):
            return
        job = self._job
        job.remote_state = status.state
        if status.percent is not None:
            job.progress_percent = status.percent

        if status.state is RemoteState.COMPLETED:
            credential = job.upload_credential
            job.output_key = status.out_key or (credential.out_key if credential else None)
            job.advance(JobState.COMPLETED)
            log.info(f"Job {job.job_id} completed: output {job.output_key}")
        else:
            job.fail(status.error or "job failed")
            log.error(f"Job {job.job_id} failed: {job.last_error}")

        self._release(flow)
        await self._events.emit("job", job.snapshot())
