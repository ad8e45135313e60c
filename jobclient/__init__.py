"""
jobclient - Presigned upload, server-side processing and download of a file.

The backend never sees file bytes: it issues a time-limited PUT URL, the
client transfers the file straight to the blob store, then polls the job
status until the worker finishes and asks for a GET URL for the output.

Usage:
    from jobclient import JobOrchestrator, ClientConfig, JobState

    async with JobOrchestrator(ClientConfig(base_url=api_url)) as jobs:
        jobs.on("job", lambda job: print(job.state.name, job.progress_percent))
        await jobs.submit(Path("a.csv"))
        job = await jobs.wait()
        if job.state is JobState.COMPLETED:
            url = await jobs.request_download()
"""
from .errors import (
    BackendError,
    Busy,
    CallerError,
    CredentialExpiredError,
    JobClientError,
    TransferError,
)
from .models import (
    ClientConfig,
    DownloadCredential,
    Job,
    JobState,
    JobStatus,
    RemoteState,
    UploadCredential,
)
from .orchestrator import JobOrchestrator
from .poller import JobStatusPoller, PollerState
from .services import (
    BlobTransferClient,
    CredentialClient,
    HTTPAPIClient,
    ReportClient,
    StatusClient,
)

__version__ = "0.1.0"
__all__ = [
    # Main
    "JobOrchestrator",
    "JobStatusPoller",
    "PollerState",
    # Models
    "ClientConfig",
    "DownloadCredential",
    "Job",
    "JobState",
    "JobStatus",
    "RemoteState",
    "UploadCredential",
    # Errors
    "JobClientError",
    "BackendError",
    "TransferError",
    "CredentialExpiredError",
    "Busy",
    "CallerError",
    # Services
    "BlobTransferClient",
    "CredentialClient",
    "HTTPAPIClient",
    "ReportClient",
    "StatusClient",
]
