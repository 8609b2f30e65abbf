"""
Global Exception Handling

Error taxonomy for the batch pipeline and structured error responses
for the HTTP layer.
"""

import traceback
from typing import Optional, Dict, Any
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from flux_studio.core.logging import get_logger, item_id_var

logger = get_logger(__name__)


# =============================================================================
# Custom Exceptions
# =============================================================================

class StudioBaseException(Exception):
    """Base exception for Flux Studio."""

    kind = "unexpected"

    def __init__(
        self,
        message: str,
        code: int = 500,
        item_id: Optional[str] = None,
        stage: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.item_id = item_id or item_id_var.get()
        self.stage = stage
        self.details = details or {}
        super().__init__(self.message)


class ConfigError(StudioBaseException):
    """Raised when required configuration (e.g. the provider credential) is missing."""

    kind = "config"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=412, **kwargs)


class ValidationError(StudioBaseException):
    """Raised when input validation fails."""

    kind = "validation"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=400, **kwargs)


class NotFoundError(StudioBaseException):
    """Raised when a batch, item or gallery entry does not exist."""

    kind = "not_found"

    def __init__(self, message: str, **kwargs):
        super().__init__(message, code=404, **kwargs)


class BatchBusyError(StudioBaseException):
    """Raised when a queue is edited or re-run while a run is active."""

    kind = "busy"

    def __init__(self, message: str = "A run is already active for this batch", **kwargs):
        super().__init__(message, code=409, **kwargs)


class TemplateError(StudioBaseException):
    """Raised when a workflow template is missing or malformed."""

    kind = "template"

    def __init__(self, message: str, template: Optional[str] = None, **kwargs):
        super().__init__(message, code=500, **kwargs)
        self.details["template"] = template


class InvalidTransitionError(StudioBaseException):
    """Raised when a work item is moved along an edge its state machine does not allow."""

    kind = "transition"

    def __init__(self, current: str, target: str, **kwargs):
        super().__init__(
            f"Illegal status transition {current} -> {target}",
            code=409,
            **kwargs
        )
        self.details["from"] = current
        self.details["to"] = target


class ExternalAPIError(StudioBaseException):
    """Raised when an external provider call fails."""

    def __init__(
        self,
        message: str,
        service: str,
        http_status: Optional[int] = None,
        code: int = 502,
        **kwargs
    ):
        super().__init__(message, code=code, **kwargs)
        self.details["service"] = service
        self.details["http_status"] = http_status


class UploadError(ExternalAPIError):
    """Raised when an asset transfer fails."""

    kind = "upload"

    def __init__(self, message: str, service: str = "cloudinary", **kwargs):
        super().__init__(message, service=service, stage="upload", **kwargs)


class SubmissionError(ExternalAPIError):
    """Raised when the provider rejects a job request (bad payload or bad credential)."""

    kind = "submission"

    def __init__(self, message: str, service: str = "replicate", **kwargs):
        super().__init__(message, service=service, stage="submit", **kwargs)


class PollError(ExternalAPIError):
    """Base class for job polling outcomes other than success."""

    kind = "poll"

    def __init__(self, message: str, job_id: Optional[str] = None, service: str = "replicate", **kwargs):
        super().__init__(message, service=service, stage="poll", **kwargs)
        self.details["job_id"] = job_id


class PollTransportError(PollError):
    """A single status fetch failed (network error or non-success HTTP status)."""

    kind = "poll_transport"


class PollRemoteFailure(PollError):
    """The provider reported the job as failed."""

    kind = "poll_remote_failure"


class PollTimeout(PollError):
    """The job did not reach a terminal state within the attempt budget."""

    kind = "poll_timeout"

    def __init__(self, message: str, attempts: int = 0, **kwargs):
        super().__init__(message, code=504, **kwargs)
        self.details["attempts"] = attempts


class PollCanceled(PollError):
    """Cancellation was observed while polling."""

    kind = "canceled"

    def __init__(self, message: str = "Polling canceled", **kwargs):
        super().__init__(message, code=499, **kwargs)


# =============================================================================
# Exception Handlers
# =============================================================================

def _error_body(exc: StudioBaseException) -> Dict[str, Any]:
    return {
        "error": exc.message,
        "kind": exc.kind,
        "item_id": exc.item_id,
        "code": exc.code,
        "stage": exc.stage,
        "details": exc.details,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


def register_exception_handlers(app: FastAPI):
    """Register custom exception handlers with FastAPI app."""

    @app.exception_handler(StudioBaseException)
    async def studio_exception_handler(request: Request, exc: StudioBaseException):
        logger.error(
            "studio_exception",
            error=exc.message,
            kind=exc.kind,
            code=exc.code,
            stage=exc.stage,
            path=str(request.url.path)
        )
        return JSONResponse(status_code=exc.code, content=_error_body(exc))

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        logger.error(
            "unhandled_exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
            traceback=traceback.format_exc()
        )
        return JSONResponse(
            status_code=500,
            content={
                "error": "Internal server error",
                "code": 500,
                "timestamp": datetime.now(timezone.utc).isoformat()
            }
        )
