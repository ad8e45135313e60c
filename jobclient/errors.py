"""Error taxonomy for the job client."""
from typing import Optional


class JobClientError(Exception):
    """Base class for every error raised by jobclient."""


class BackendError(JobClientError):
    """Credential or status call returned non-success, or a malformed body."""

    def __init__(self, status: int, message: str = ""):
        self.status = status
        self.message = message
        super().__init__(f"backend error {status}: {message}" if message else f"backend error {status}")


class TransferError(JobClientError):
    """Blob-store PUT failed. ``status`` is None when no response was received."""

    def __init__(self, status: Optional[int], detail: str = ""):
        self.status = status
        self.detail = detail
        text = f"transfer failed with status {status}" if status is not None else "transfer failed"
        if detail:
            text = f"{text}: {detail}"
        super().__init__(text)


class CredentialExpiredError(JobClientError):
    """Blob-store PUT failed after the upload credential's validity window."""

    def __init__(self, status: Optional[int], expires_in: int):
        self.status = status
        self.expires_in = expires_in
        super().__init__(
            f"upload credential expired (valid for {expires_in}s); transfer returned status {status}"
        )


class Busy(JobClientError):
    """A new flow was requested while one is active."""

    def __init__(self, message: str = "a job is already in progress"):
        super().__init__(message)


class CallerError(JobClientError):
    """Operation invoked outside its valid precondition."""
