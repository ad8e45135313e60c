"""Status Client - one round-trip to the job status resource."""
from ..models import JobStatus
from ..protocols import IAPIClient


class StatusClient:
    """Fetches the backend's view of a job."""

    def __init__(self, api_client: IAPIClient):
        self._api = api_client

    async def fetch_status(self, job_id: str) -> JobStatus:
        data = await self._api.get("/status", params={"jobId": job_id})
        return JobStatus.from_response(data)
