"""Services for jobclient module."""
from .api_client import HTTPAPIClient
from .credentials import CredentialClient
from .reports import ReportClient
from .status import StatusClient
from .transfer import BlobTransferClient

__all__ = [
    "HTTPAPIClient",
    "CredentialClient",
    "ReportClient",
    "StatusClient",
    "BlobTransferClient",
]
