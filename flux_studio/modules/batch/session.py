"""
Batch Sessions

A BatchSession owns one tool's queue: its profile, shared knobs and the
ordered work items. Runs are launched as asyncio tasks with a fresh
CancellationSignal each time; at most one run per session is active.
"""

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flux_studio.core.config import settings
from flux_studio.core.exceptions import (
    BatchBusyError,
    NotFoundError,
    StudioBaseException,
    ValidationError,
)
from flux_studio.core.logging import get_logger
from flux_studio.core.storage import IStorage, inspect_image
from flux_studio.modules.batch.models import ItemStatus, SourceAsset, WorkItem
from flux_studio.pipeline.cancellation import CancellationSignal
from flux_studio.pipeline.orchestrator import BatchOrchestrator, RunSummary
from flux_studio.pipeline.profiles import ProcessingProfile, get_profile
from flux_studio.pipeline.recorder import ResultRecorder

logger = get_logger(__name__)

STAGING_URL_PREFIX = "/static/uploads"


class BatchSession:
    """One queue of work items bound to a processing profile."""

    def __init__(self, profile: ProcessingProfile, knobs: Optional[Dict[str, Any]] = None):
        self.id = str(uuid.uuid4())
        self.profile = profile
        self.knobs: Dict[str, Any] = dict(knobs or {})
        self.items: List[WorkItem] = []
        self.created_at = datetime.now(timezone.utc)
        self.last_summary: Optional[RunSummary] = None
        self.last_error: Optional[Dict[str, Any]] = None
        self._signal: Optional[CancellationSignal] = None
        self._task: Optional[asyncio.Task] = None

    # =========================================================================
    # Queue editing
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def _ensure_idle(self):
        if self.is_running:
            raise BatchBusyError()

    def get_item(self, item_id: str) -> WorkItem:
        for item in self.items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"Item {item_id} not found in batch {self.id}")

    def _check_variants(self, variants: int):
        if variants < 1 or variants > settings.MAX_VARIANTS_PER_ITEM:
            raise ValidationError(
                f"variants must be between 1 and {settings.MAX_VARIANTS_PER_ITEM}"
            )

    def check_image(self, file_data: bytes, filename: str) -> str:
        """Validate an image file for this queue without staging it. Returns its mime type."""
        self._ensure_idle()
        if not self.profile.requires_image:
            raise ValidationError(f"Profile '{self.profile.name}' does not take input images")
        if not file_data:
            raise ValidationError(f"File '{filename}' is empty")
        if len(file_data) > settings.MAX_IMAGE_SIZE_BYTES:
            raise ValidationError(
                f"File '{filename}' exceeds {settings.MAX_IMAGE_SIZE_BYTES} bytes",
                details={"size": len(file_data)}
            )
        _, mime_type = inspect_image(file_data)
        return mime_type

    async def add_image(
        self,
        file_data: bytes,
        filename: str,
        storage: IStorage,
        recorder: Optional[ResultRecorder] = None,
        knobs: Optional[Dict[str, Any]] = None,
        variants: int = 1
    ) -> WorkItem:
        """Stage an image file and queue it for `variants` generations."""
        self._check_variants(variants)
        mime_type = self.check_image(file_data, filename)

        storage_key = await storage.upload(file_data, filename, folder=self.id)
        item = WorkItem(
            source_asset=SourceAsset(
                path=str(storage.get_path(storage_key)),
                filename=filename,
                mime_type=mime_type,
                size=len(file_data)
            ),
            knobs=dict(knobs or {}),
            variants_requested=variants
        )
        self.items.append(item)

        if recorder is not None:
            await recorder.record_upload(
                f"{STAGING_URL_PREFIX}/{storage_key}",
                filename=filename,
                tool=self.profile.tool,
                size=len(file_data)
            )

        logger.info("item_queued", batch_id=self.id, item_id=item.id, filename=filename, variants=variants)
        return item

    def add_generation(self, prompt: str, variants: int = 1, knobs: Optional[Dict[str, Any]] = None) -> WorkItem:
        """Queue a text-to-image request producing `variants` outputs."""
        self._ensure_idle()
        if self.profile.requires_image:
            raise ValidationError(f"Profile '{self.profile.name}' needs input images")
        prompt = (prompt or "").strip()
        if not prompt:
            raise ValidationError("Prompt must not be empty")
        self._check_variants(variants)

        item_knobs = dict(knobs or {})
        item_knobs["prompt"] = prompt
        item = WorkItem(knobs=item_knobs, variants_requested=variants)
        self.items.append(item)
        logger.info("item_queued", batch_id=self.id, item_id=item.id, variants=variants)
        return item

    def remove(self, item_id: str) -> WorkItem:
        """Drop an item from the queue. Its staged file stays referenced by the gallery."""
        self._ensure_idle()
        item = self.get_item(item_id)
        self.items.remove(item)
        logger.info("item_removed", batch_id=self.id, item_id=item.id)
        return item

    def retry(self, item_id: str) -> WorkItem:
        """Move a failed item back to pending."""
        self._ensure_idle()
        item = self.get_item(item_id)
        item.retry()
        logger.info("item_retry_requested", batch_id=self.id, item_id=item.id)
        return item

    # =========================================================================
    # Runs
    # =========================================================================

    def start(self, orchestrator: BatchOrchestrator, credential: Optional[str]) -> CancellationSignal:
        """
        Launch a run over the pending items.

        Configuration is checked synchronously so a missing credential is
        reported to the caller instead of surfacing inside the task.
        """
        self._ensure_idle()
        orchestrator.check_ready(self.items, credential)
        if not any(item.status == ItemStatus.PENDING for item in self.items):
            raise ValidationError("Nothing to run: no pending items")

        self._signal = CancellationSignal()
        self.last_error = None
        self._task = asyncio.create_task(self._run(orchestrator, credential, self._signal))
        return self._signal

    async def _run(self, orchestrator: BatchOrchestrator, credential: Optional[str], signal: CancellationSignal):
        try:
            self.last_summary = await orchestrator.run(
                self.items,
                self.profile,
                self.knobs,
                credential,
                signal,
                batch_id=self.id
            )
        except StudioBaseException as e:
            self.last_error = {"message": e.message, "kind": e.kind}
            logger.error("batch_run_aborted", batch_id=self.id, error=e.message, kind=e.kind)
        return self.last_summary

    def cancel(self) -> bool:
        """Request cancellation of the active run. Returns False if nothing was running."""
        if not self.is_running or self._signal is None:
            return False
        if self._signal.cancel():
            logger.info("batch_cancel_requested", batch_id=self.id)
        return True

    async def wait(self) -> Optional[RunSummary]:
        """Wait for the active run (if any) to finish."""
        if self._task is not None:
            await self._task
        return self.last_summary

    def to_response_dict(self) -> Dict[str, Any]:
        counts = {status.value: 0 for status in ItemStatus if status != ItemStatus.CANCELED}
        for item in self.items:
            counts[item.status.value] += 1
        return {
            "id": self.id,
            "profile": self.profile.name,
            "tool": self.profile.tool,
            "knobs": self.knobs,
            "running": self.is_running,
            "counts": counts,
            "items": [item.to_response_dict() for item in self.items],
            "last_summary": self.last_summary.model_dump() if self.last_summary else None,
            "last_error": self.last_error,
            "created_at": self.created_at.isoformat()
        }


class SessionRegistry:
    """In-process registry of batch sessions."""

    def __init__(self):
        self._sessions: Dict[str, BatchSession] = {}

    def create(self, profile_name: str, knobs: Optional[Dict[str, Any]] = None) -> BatchSession:
        profile = get_profile(profile_name)
        session = BatchSession(profile, knobs)
        self._sessions[session.id] = session
        logger.info("batch_created", batch_id=session.id, profile=profile.name)
        return session

    def get(self, batch_id: str) -> BatchSession:
        session = self._sessions.get(batch_id)
        if session is None:
            raise NotFoundError(f"Batch {batch_id} not found")
        return session

    def all(self) -> List[BatchSession]:
        return list(self._sessions.values())

    async def shutdown(self):
        """Cancel active runs and wait for them to settle."""
        for session in self._sessions.values():
            session.cancel()
        for session in self._sessions.values():
            await session.wait()
