"""
Models for jobclient module.

Credentials and status snapshots are immutable dataclasses; the Job is the
single mutable record the orchestrator owns and publishes snapshots of.
"""
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Optional
import time

from .errors import BackendError, CallerError


class JobState(Enum):
    """Client-side lifecycle of a job."""
    IDLE = "idle"
    PRESIGNING = "presigning"
    UPLOADING = "uploading"
    POLLING = "polling"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_busy(self) -> bool:
        return self in (JobState.PRESIGNING, JobState.UPLOADING, JobState.POLLING)

    @property
    def is_terminal(self) -> bool:
        return self in (JobState.COMPLETED, JobState.FAILED)


class RemoteState(Enum):
    """Job state as reported by the backend status resource."""
    STARTED = "STARTED"
    RUNNING = "RUNNING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (RemoteState.COMPLETED, RemoteState.FAILED)


# Position in the lifecycle; COMPLETED and FAILED share a rank.
_STATE_RANK = {
    JobState.IDLE: 0,
    JobState.PRESIGNING: 1,
    JobState.UPLOADING: 2,
    JobState.POLLING: 3,
    JobState.COMPLETED: 4,
    JobState.FAILED: 4,
}


def _require(data: Dict[str, Any], name: str, what: str) -> Any:
    value = data.get(name)
    if value is None or value == "":
        raise BackendError(200, f"{what} response is missing '{name}'")
    return value


@dataclass(frozen=True)
class UploadCredential:
    """Time-limited write credential issued by the backend."""
    url: str
    key: str
    bucket: str
    expires_in: int
    job_id: str
    status_key: Optional[str] = None
    out_key: Optional[str] = None
    issued_at: float = field(default_factory=time.monotonic, compare=False)

    @property
    def expires_at(self) -> float:
        return self.issued_at + self.expires_in

    def is_expired(self, now: Optional[float] = None) -> bool:
        """True once the monotonic clock has passed the validity window."""
        if now is None:
            now = time.monotonic()
        return now >= self.expires_at

    @classmethod
    def from_response(cls, data: Any) -> "UploadCredential":
        if not isinstance(data, dict):
            raise BackendError(200, "presign upload response is not a JSON object")
        url = _require(data, "url", "presign upload")
        expires_in = _require(data, "expiresIn", "presign upload")
        try:
            expires_in = int(expires_in)
        except (TypeError, ValueError):
            raise BackendError(200, f"presign upload 'expiresIn' is not a number: {expires_in!r}")
        return cls(
            url=url,
            key=_require(data, "key", "presign upload"),
            bucket=_require(data, "bucket", "presign upload"),
            expires_in=expires_in,
            job_id=str(_require(data, "jobId", "presign upload")),
            status_key=data.get("statusKey"),
            out_key=data.get("outKey"),
        )


@dataclass(frozen=True)
class DownloadCredential:
    """Time-limited read credential for a processed artifact."""
    url: str

    @classmethod
    def from_response(cls, data: Any) -> "DownloadCredential":
        if not isinstance(data, dict):
            raise BackendError(200, "presign download response is not a JSON object")
        return cls(url=_require(data, "url", "presign download"))


@dataclass(frozen=True)
class JobStatus:
    """One observation of the backend status resource."""
    job_id: str
    state: RemoteState
    percent: Optional[int] = None
    out_key: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal

    @classmethod
    def from_response(cls, data: Any) -> "JobStatus":
        if not isinstance(data, dict):
            raise BackendError(200, "status response is not a JSON object")
        raw_state = _require(data, "state", "status")
        try:
            state = RemoteState(raw_state)
        except ValueError:
            raise BackendError(200, f"status response has unknown state {raw_state!r}")

        percent = data.get("percent")
        if percent is not None:
            try:
                percent = max(0, min(100, int(percent)))
            except (TypeError, ValueError):
                percent = None

        return cls(
            job_id=str(_require(data, "jobId", "status")),
            state=state,
            percent=percent,
            out_key=data.get("outKey"),
            error=data.get("error"),
        )

    @classmethod
    def failed(cls, job_id: str, error: str) -> "JobStatus":
        """Terminal FAILED status produced locally (e.g. polling bound exceeded)."""
        return cls(job_id=job_id, state=RemoteState.FAILED, error=error)


@dataclass
class Job:
    """The unit of work tracked by an orchestrator; never persisted."""
    filename: str
    content_type: str
    state: JobState = JobState.IDLE
    job_id: Optional[str] = None
    upload_credential: Optional[UploadCredential] = None
    output_key: Optional[str] = None
    last_error: Optional[str] = None
    progress_percent: Optional[int] = None
    remote_state: Optional[RemoteState] = None

    def advance(self, new_state: JobState) -> None:
        """Move along the lifecycle; backward moves and leaving a terminal state are refused."""
        if new_state == self.state:
            return
        if self.state.is_terminal or _STATE_RANK[new_state] < _STATE_RANK[self.state]:
            raise CallerError(
                f"invalid job transition {self.state.name} -> {new_state.name}"
            )
        self.state = new_state

    def attach_credential(self, credential: UploadCredential) -> None:
        if self.upload_credential is not None:
            raise CallerError("upload credential already set for this job")
        self.upload_credential = credential
        self.job_id = credential.job_id

    def fail(self, error: str) -> None:
        self.advance(JobState.FAILED)
        self.last_error = error

    def snapshot(self) -> "Job":
        return replace(self)


@dataclass(frozen=True)
class ClientConfig:
    """Immutable configuration for the job client."""
    base_url: str
    poll_interval: float = 1.5
    max_poll_attempts: Optional[int] = None
    max_poll_duration: Optional[float] = None
    request_timeout: float = 60
    default_content_type: str = "text/csv"

    def __post_init__(self):
        if self.poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if self.max_poll_attempts is not None and self.max_poll_attempts < 1:
            raise ValueError("max_poll_attempts must be at least 1")
        if self.max_poll_duration is not None and self.max_poll_duration <= 0:
            raise ValueError("max_poll_duration must be positive")
