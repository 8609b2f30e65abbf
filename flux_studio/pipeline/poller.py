"""
Job Poller

Drives one remote job to a terminal state by fetching its status at a fixed
interval. Cancellation is checked immediately before every fetch and before
every wait; the wait itself wakes early when the signal is set.
"""

from typing import List, Optional

from flux_studio.core.config import settings
from flux_studio.core.exceptions import (
    PollError,
    PollCanceled,
    PollRemoteFailure,
    PollTimeout,
    PollTransportError,
)
from flux_studio.core.logging import get_logger
from flux_studio.core.metrics import record_poll
from flux_studio.pipeline.cancellation import CancellationSignal
from flux_studio.pipeline.schemas import JobHandle, RemoteJobStatus
from flux_studio.providers.base import IJobProvider

logger = get_logger(__name__)


class JobPoller:
    """Polls a job handle until success, failure, timeout or cancellation."""

    def __init__(
        self,
        provider: IJobProvider,
        interval_seconds: Optional[float] = None,
        max_attempts: Optional[int] = None
    ):
        self.provider = provider
        self.interval_seconds = settings.POLL_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        self.max_attempts = settings.POLL_MAX_ATTEMPTS if max_attempts is None else max_attempts

    async def poll(
        self,
        handle: JobHandle,
        credential: str,
        signal: CancellationSignal
    ) -> List[str]:
        """
        Wait for the job to finish.

        Returns:
            Output URLs reported by the provider

        Raises:
            PollCanceled, PollRemoteFailure, PollTimeout, PollTransportError
        """
        attempts = 0

        while attempts < self.max_attempts:
            if signal.is_cancelled:
                record_poll("canceled", attempts)
                raise PollCanceled(job_id=handle.id)

            attempts += 1
            try:
                snapshot = await self.provider.get_job_status(handle.id, credential)
            except PollError:
                raise
            except Exception as e:
                record_poll("transport_error", attempts)
                logger.warning("job_poll_fetch_failed", job_id=handle.id, attempt=attempts, error=str(e))
                raise PollTransportError(
                    f"Failed to get prediction status: {e}",
                    job_id=handle.id
                ) from e

            logger.debug("job_poll_status", job_id=handle.id, attempt=attempts, status=snapshot.status.value)

            if snapshot.status == RemoteJobStatus.SUCCEEDED:
                if not snapshot.output:
                    record_poll("failed", attempts)
                    raise PollRemoteFailure("Prediction succeeded without output", job_id=handle.id)
                record_poll("succeeded", attempts)
                logger.info("job_poll_succeeded", job_id=handle.id, attempts=attempts, outputs=len(snapshot.output))
                return snapshot.output

            if snapshot.status in (RemoteJobStatus.FAILED, RemoteJobStatus.CANCELED):
                record_poll("failed", attempts)
                reason = snapshot.error or f"Prediction {snapshot.status.value}"
                logger.warning("job_poll_remote_failure", job_id=handle.id, attempts=attempts, error=reason)
                raise PollRemoteFailure(f"Prediction failed: {reason}", job_id=handle.id)

            if attempts >= self.max_attempts:
                break

            if signal.is_cancelled:
                record_poll("canceled", attempts)
                raise PollCanceled(job_id=handle.id)

            if await signal.wait(self.interval_seconds):
                record_poll("canceled", attempts)
                raise PollCanceled(job_id=handle.id)

        record_poll("timeout", attempts)
        logger.warning("job_poll_timeout", job_id=handle.id, attempts=attempts)
        raise PollTimeout(
            f"Prediction timed out after {attempts} status checks",
            attempts=attempts,
            job_id=handle.id
        )
