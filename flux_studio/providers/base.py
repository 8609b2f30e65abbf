"""
Collaborator interfaces the pipeline depends on.

The orchestrator and poller only see these contracts; the Replicate and
Cloudinary clients are the default implementations.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict

from flux_studio.pipeline.schemas import JobHandle, JobStatusSnapshot


class IJobProvider(ABC):
    """Submits jobs and reports their status."""

    name: str = "provider"

    @abstractmethod
    async def submit_job(
        self,
        model_id: str,
        input_payload: Dict[str, Any],
        credential: str
    ) -> JobHandle:
        """Create a remote job. Raises SubmissionError on rejection."""
        pass

    @abstractmethod
    async def get_job_status(self, job_id: str, credential: str) -> JobStatusSnapshot:
        """Fetch the current status of a job once."""
        pass


class IAssetUploader(ABC):
    """Transfers a local file to durable, publicly fetchable storage."""

    name: str = "uploader"

    def ensure_configured(self) -> None:
        """Raise ConfigError when the uploader cannot work; checked before a run starts."""
        return None

    @abstractmethod
    async def upload_asset(self, file_bytes: bytes, filename: str, mime_type: str) -> str:
        """Upload and return the remote URL. Raises UploadError on failure."""
        pass
