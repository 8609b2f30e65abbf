"""
WorkItem Model with Pipeline Status Tracking

One WorkItem is one user intent (an uploaded image or a generation request)
driven through upload -> submit -> poll -> record. Status changes go through
the mark_* methods, which only allow the edges of the item state machine.
"""

import uuid
from enum import Enum
from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, List
from datetime import datetime, timezone

from flux_studio.core.exceptions import InvalidTransitionError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ItemStatus(str, Enum):
    """Work item status states."""
    PENDING = "pending"           # Waiting for a run (also where a canceled item lands)
    UPLOADING = "uploading"       # Source asset transfer in flight
    UPLOADED = "uploaded"         # Remote asset URL resolved
    SUBMITTING = "submitting"     # Job request in flight
    POLLING = "polling"           # Waiting on the remote job
    SUCCEEDED = "succeeded"       # All requested variants produced
    FAILED = "failed"             # A step raised; error recorded
    CANCELED = "canceled"         # Never stored; cancellation resets to PENDING


# Cancellation edges lead back to PENDING; FAILED -> PENDING is the explicit user retry.
ALLOWED_TRANSITIONS: Dict[ItemStatus, frozenset] = {
    ItemStatus.PENDING: frozenset({ItemStatus.UPLOADING, ItemStatus.SUBMITTING, ItemStatus.FAILED}),
    ItemStatus.UPLOADING: frozenset({ItemStatus.UPLOADED, ItemStatus.PENDING, ItemStatus.FAILED}),
    ItemStatus.UPLOADED: frozenset({ItemStatus.SUBMITTING, ItemStatus.PENDING, ItemStatus.FAILED}),
    ItemStatus.SUBMITTING: frozenset({ItemStatus.POLLING, ItemStatus.PENDING, ItemStatus.FAILED}),
    ItemStatus.POLLING: frozenset({
        ItemStatus.SUBMITTING, ItemStatus.SUCCEEDED, ItemStatus.PENDING, ItemStatus.FAILED
    }),
    ItemStatus.SUCCEEDED: frozenset(),
    ItemStatus.FAILED: frozenset({ItemStatus.PENDING}),
    ItemStatus.CANCELED: frozenset(),
}

IN_FLIGHT_STATUSES = frozenset({
    ItemStatus.UPLOADING,
    ItemStatus.UPLOADED,
    ItemStatus.SUBMITTING,
    ItemStatus.POLLING,
})


class SourceAsset(BaseModel):
    """A staged local file awaiting upload."""
    path: str
    filename: str
    mime_type: str = "image/png"
    size: int = 0


class WorkItem(BaseModel):
    """
    One unit of batch work.

    Stores:
    - The optional source asset and its resolved remote URL
    - Per-item knobs and the last resolved request parameters
    - Outputs accumulated across variants
    - Error state when failed
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))

    # Input Data
    source_asset: Optional[SourceAsset] = None
    remote_asset_url: Optional[str] = None
    knobs: Dict[str, Any] = Field(default_factory=dict)
    parameters: Dict[str, Any] = Field(default_factory=dict)
    variants_requested: int = Field(default=1, ge=1)

    # Pipeline Status
    status: ItemStatus = ItemStatus.PENDING
    outputs: List[str] = Field(default_factory=list)
    variants_completed: int = 0

    # Error Tracking
    error: Optional[str] = None
    error_kind: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def remaining_variants(self) -> int:
        return max(self.variants_requested - self.variants_completed, 0)

    @property
    def label(self) -> str:
        """Human-readable name used for output filenames."""
        if self.source_asset:
            return self.source_asset.filename
        return f"generation_{self.id[:8]}"

    def _transition(self, target: ItemStatus):
        if target not in ALLOWED_TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, target.value, item_id=self.id)
        self.status = target
        self.updated_at = _utcnow()

    def mark_uploading(self):
        if self.source_asset is None:
            raise InvalidTransitionError(self.status.value, ItemStatus.UPLOADING.value, item_id=self.id)
        self._transition(ItemStatus.UPLOADING)

    def mark_uploaded(self, remote_url: str):
        self._transition(ItemStatus.UPLOADED)
        self.remote_asset_url = remote_url

    def mark_submitting(self, parameters: Dict[str, Any]):
        # Items with a source asset must pass through the upload states first
        if self.status == ItemStatus.PENDING and self.source_asset is not None:
            raise InvalidTransitionError(self.status.value, ItemStatus.SUBMITTING.value, item_id=self.id)
        self._transition(ItemStatus.SUBMITTING)
        self.parameters = parameters

    def mark_polling(self):
        self._transition(ItemStatus.POLLING)

    def add_variant_outputs(self, urls: List[str]):
        """Publish the outputs of one finished variant."""
        if self.status != ItemStatus.POLLING:
            raise InvalidTransitionError(self.status.value, "record", item_id=self.id)
        self.outputs.extend(urls)
        self.variants_completed += 1
        self.updated_at = _utcnow()

    def mark_succeeded(self):
        if not self.outputs:
            raise InvalidTransitionError(
                self.status.value,
                ItemStatus.SUCCEEDED.value,
                item_id=self.id,
                details={"reason": "no outputs recorded"}
            )
        self._transition(ItemStatus.SUCCEEDED)

    def mark_failed(self, error_message: str, error_kind: str = "unexpected"):
        self._transition(ItemStatus.FAILED)
        self.error = error_message or "Processing failed"
        self.error_kind = error_kind

    def reset_to_pending(self):
        """Cancellation observed: keep recorded outputs, drop back to PENDING."""
        self._transition(ItemStatus.PENDING)

    def retry(self):
        """Explicit user retry of a failed item."""
        self._transition(ItemStatus.PENDING)
        self.error = None
        self.error_kind = None

    def to_response_dict(self) -> Dict[str, Any]:
        """Convert to API response format."""
        return {
            "id": self.id,
            "status": self.status.value,
            "filename": self.source_asset.filename if self.source_asset else None,
            "remote_asset_url": self.remote_asset_url,
            "knobs": self.knobs,
            "parameters": self.parameters,
            "variants_requested": self.variants_requested,
            "variants_completed": self.variants_completed,
            "outputs": list(self.outputs),
            "error": {
                "message": self.error,
                "kind": self.error_kind
            } if self.status == ItemStatus.FAILED else None,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }
