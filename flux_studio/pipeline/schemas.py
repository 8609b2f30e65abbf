from pydantic import BaseModel, ConfigDict, Field
from typing import List, Dict, Optional, Any
from datetime import datetime, timezone
from enum import Enum


class RemoteJobStatus(str, Enum):
    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"

    @property
    def is_terminal(self) -> bool:
        return self in (RemoteJobStatus.SUCCEEDED, RemoteJobStatus.FAILED, RemoteJobStatus.CANCELED)


class JobHandle(BaseModel):
    """Provider-assigned reference to one remote job. Never persisted."""
    id: str
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class JobStatusSnapshot(BaseModel):
    """One status fetch result."""
    status: RemoteJobStatus
    output: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @classmethod
    def from_provider(cls, data: Dict[str, Any]) -> "JobStatusSnapshot":
        """Normalize a provider response; `output` may be a URL, a list of URLs or absent."""
        raw_status = data.get("status") or RemoteJobStatus.PROCESSING.value
        try:
            status = RemoteJobStatus(raw_status)
        except ValueError:
            # Unknown intermediate states keep polling
            status = RemoteJobStatus.PROCESSING

        raw_output = data.get("output")
        if raw_output is None:
            output = []
        elif isinstance(raw_output, str):
            output = [raw_output]
        else:
            output = [str(url) for url in raw_output if url]

        error = data.get("error")
        return cls(status=status, output=output, error=str(error) if error else None)


class RequestPayload(BaseModel):
    """Exact request a remote model expects: model identifier plus input bag."""
    model_config = ConfigDict(protected_namespaces=())

    model_id: str
    input: Dict[str, Any]

    def canonical_json(self) -> str:
        return self.model_dump_json()
