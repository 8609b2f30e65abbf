"""
Replicate Prediction Client

Creates predictions and fetches their status over the Replicate HTTP API.
The credential is supplied per call and only ever placed in the
Authorization header.
"""

from typing import Any, Dict, Optional

import httpx

from flux_studio.core.config import settings
from flux_studio.core.exceptions import SubmissionError, ExternalAPIError
from flux_studio.core.logging import get_logger
from flux_studio.core.metrics import record_provider_call
from flux_studio.pipeline.schemas import JobHandle, JobStatusSnapshot
from flux_studio.providers.base import IJobProvider

logger = get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull the provider's message out of an error response."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("detail") or data.get("error") or data.get("title") or data)
    return str(data)


class ReplicateClient(IJobProvider):
    """Replicate predictions API."""

    name = "replicate"

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.base_url = (base_url or settings.REPLICATE_API_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport
        )

    @staticmethod
    def _headers(credential: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {credential}",
            "Content-Type": "application/json"
        }

    @staticmethod
    def _prediction_request(model_id: str, input_payload: Dict[str, Any]):
        """
        Map a model identifier to (path, body).

        "owner/name:version" pins a version; "owner/name" runs the model's
        latest version through the model-scoped endpoint.
        """
        if ":" in model_id:
            _, version = model_id.split(":", 1)
            return "/predictions", {"version": version, "input": input_payload}
        return f"/models/{model_id}/predictions", {"input": input_payload}

    async def submit_job(
        self,
        model_id: str,
        input_payload: Dict[str, Any],
        credential: str
    ) -> JobHandle:
        path, body = self._prediction_request(model_id, input_payload)
        logger.info("replicate_submit_starting", model_id=model_id)

        try:
            async with self._client() as client:
                response = await client.post(path, json=body, headers=self._headers(credential))
        except httpx.HTTPError as e:
            record_provider_call(self.name, "submit", "error")
            raise SubmissionError(f"Failed to create prediction: {e}")

        if response.status_code not in (200, 201):
            record_provider_call(self.name, "submit", "error")
            message = _error_message(response)
            logger.warning(
                "replicate_submit_rejected",
                http_status=response.status_code,
                error=message
            )
            raise SubmissionError(
                f"Failed to create prediction: {message}",
                http_status=response.status_code
            )

        data = response.json()
        job_id = data.get("id")
        if not job_id:
            record_provider_call(self.name, "submit", "error")
            raise SubmissionError("Prediction response carried no id")

        record_provider_call(self.name, "submit", "success")
        logger.info("replicate_submit_completed", job_id=job_id)
        return JobHandle(id=job_id)

    async def get_job_status(self, job_id: str, credential: str) -> JobStatusSnapshot:
        async with self._client() as client:
            response = await client.get(
                f"/predictions/{job_id}",
                headers=self._headers(credential)
            )

        if response.status_code != 200:
            record_provider_call(self.name, "status", "error")
            raise ExternalAPIError(
                f"Failed to get prediction status: {_error_message(response)}",
                service=self.name,
                http_status=response.status_code
            )

        record_provider_call(self.name, "status", "success")
        return JobStatusSnapshot.from_provider(response.json())
