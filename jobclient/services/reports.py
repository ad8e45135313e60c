"""Report Client - fetches the issues CSV export from the backend."""
from typing import Iterable, Union
import logging

from ..errors import CallerError
from .api_client import HTTPAPIClient

log = logging.getLogger(__name__)

MAX_WANTED = 1000


def default_filename(owner: str, repo: str) -> str:
    return f"{owner}-{repo}-issues.csv"


class ReportClient:
    """Downloads issue listings as CSV."""

    def __init__(self, api_client: HTTPAPIClient):
        self._api = api_client

    async def download_issues_csv(
        self,
        owner: str,
        repo: str,
        labels: Union[str, Iterable[str]] = "",
        wanted_n: int = 50,
    ) -> bytes:
        """
        Fetch ``/issues.csv`` for a repository.

        Args:
            owner: Repository owner
            repo: Repository name
            labels: Comma separated string or iterable of label names
            wanted_n: Number of issues to include (1..1000)

        Returns:
            Raw CSV bytes
        """
        if not owner or not repo:
            raise CallerError("owner and repo are required")
        if not 1 <= wanted_n <= MAX_WANTED:
            raise CallerError(f"wanted_n must be between 1 and {MAX_WANTED}, got {wanted_n}")
        if not isinstance(labels, str):
            labels = ",".join(labels)

        content = await self._api.get_bytes(
            "/issues.csv",
            params={"owner": owner, "repo": repo, "labels": labels, "wantedN": str(wanted_n)},
        )
        log.info(f"Fetched issues CSV for {owner}/{repo} ({len(content)} bytes)")
        return content
