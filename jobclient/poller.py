"""
Job Status Poller - the only recurring timer in the client.

Polls the status resource on a fixed interval until the backend reports a
terminal state or the poller is stopped. Every delivery is checked against
the epoch captured when the timer was started, so a response that arrives
after ``stop()`` (or after a restart) is dropped instead of delivered.
"""
from __future__ import annotations

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional, Union

import httpx

from .errors import BackendError, CallerError
from .models import JobStatus
from .protocols import IStatusClient
from .utils.events import invoke

log = logging.getLogger(__name__)

StatusCallback = Callable[[JobStatus], Union[None, Awaitable[None]]]


class PollerState(Enum):
    IDLE = "idle"
    RUNNING = "running"
    STOPPED = "stopped"


class JobStatusPoller:
    """
    Fixed-interval status poller.

    Usage:
        poller = JobStatusPoller(status_client, interval=1.5)
        poller.start(job_id, on_update, on_terminal)
        ...
        poller.stop()  # safe at any time, idempotent

    Transient fetch failures (BackendError, malformed bodies, transport
    errors) skip the tick; polling continues. ``on_terminal`` fires exactly
    once, after which the poller is inert.
    """

    def __init__(
        self,
        status_client: IStatusClient,
        interval: float = 1.5,
        max_attempts: Optional[int] = None,
        max_duration: Optional[float] = None,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._status = status_client
        self._interval = interval
        self._max_attempts = max_attempts
        self._max_duration = max_duration

        self._state = PollerState.IDLE
        self._epoch = 0
        self._task: Optional[asyncio.Task] = None
        self._done = asyncio.Event()
        self.attempts = 0

    @property
    def state(self) -> PollerState:
        return self._state

    @property
    def running(self) -> bool:
        return self._state is PollerState.RUNNING

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        self.stop()

    def start(self, job_id: str, on_update: StatusCallback, on_terminal: StatusCallback) -> None:
        """Begin polling ``job_id``; restarting a running poller cancels the old timer first."""
        if self._state is PollerState.STOPPED:
            raise CallerError("poller already stopped; create a new one")
        if self._state is PollerState.RUNNING:
            log.debug("Restarting poller; cancelling previous timer")
            self._cancel_task()

        self._epoch += 1
        self._state = PollerState.RUNNING
        self.attempts = 0
        self._task = asyncio.get_running_loop().create_task(
            self._run(self._epoch, job_id, on_update, on_terminal)
        )
        log.info(f"Polling job {job_id} every {self._interval}s")

    def stop(self) -> None:
        """Cancel the timer; any in-flight response is discarded."""
        if self._state is PollerState.STOPPED:
            return
        self._epoch += 1
        self._state = PollerState.STOPPED
        self._cancel_task()
        self._done.set()
        log.debug("Poller stopped")

    async def wait(self) -> None:
        """Wait until the poller stops (terminal delivery or stop())."""
        if self._state is PollerState.IDLE:
            raise CallerError("poller was never started")
        await self._done.wait()

    def _cancel_task(self) -> None:
        task, self._task = self._task, None
        if task is None or task.done():
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        if task is not current:
            task.cancel()

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch and self._state is PollerState.RUNNING

    def _bound_exceeded(self, started: float) -> Optional[str]:
        if self._max_attempts is not None and self.attempts >= self._max_attempts:
            return f"polling gave up after {self.attempts} attempts"
        if self._max_duration is not None:
            elapsed = asyncio.get_running_loop().time() - started
            if elapsed >= self._max_duration:
                return f"polling gave up after {elapsed:.1f}s"
        return None

    async def _run(
        self,
        epoch: int,
        job_id: str,
        on_update: StatusCallback,
        on_terminal: StatusCallback,
    ) -> None:
        started = asyncio.get_running_loop().time()
        while True:
            await asyncio.sleep(self._interval)
            if not self._is_current(epoch):
                return

            self.attempts += 1
            try:
                status = await self._status.fetch_status(job_id)
            except (BackendError, httpx.HTTPError) as exc:
                log.warning(f"Status tick {self.attempts} for job {job_id} failed, skipping: {exc}")
                status = None
            except Exception as exc:
                if not self._is_current(epoch):
                    return
                log.exception(f"Unexpected error polling job {job_id}")
                await self._deliver_terminal(epoch, on_terminal, JobStatus.failed(job_id, str(exc)))
                return

            # stop() or a restart may have happened while the fetch was in flight
            if not self._is_current(epoch):
                log.debug(f"Discarding late status response for job {job_id}")
                return

            if status is not None and status.is_terminal:
                await self._deliver_terminal(epoch, on_terminal, status)
                return

            if status is not None:
                try:
                    await invoke(on_update, status)
                except Exception:
                    log.exception(f"on_update callback failed for job {job_id}")
                if not self._is_current(epoch):
                    return

            reason = self._bound_exceeded(started)
            if reason is not None:
                log.warning(f"Job {job_id}: {reason}")
                await self._deliver_terminal(epoch, on_terminal, JobStatus.failed(job_id, reason))
                return

    async def _deliver_terminal(self, epoch: int, on_terminal: StatusCallback, status: JobStatus) -> None:
        self._finish(epoch)
        log.info(f"Job {status.job_id} reached {status.state.value} after {self.attempts} polls")
        try:
            await invoke(on_terminal, status)
        except Exception:
            log.exception(f"on_terminal callback failed for job {status.job_id}")

    def _finish(self, epoch: int) -> None:
        # Mark stopped before delivering so stop() from a callback is a no-op.
        self._epoch = epoch + 1
        self._state = PollerState.STOPPED
        self._task = None
        self._done.set()
