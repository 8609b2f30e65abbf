"""
Batch Orchestrator

Runs the pending items of a queue, in order, one at a time:

    [pending] -> upload -> build parameters -> submit -> poll -> record -> [succeeded]

A failure is confined to its item. Cancellation stops the run after the
step in flight; the interrupted item goes back to pending with whatever
outputs it had already recorded.
"""

import asyncio
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from flux_studio.core.exceptions import (
    ConfigError,
    PollCanceled,
    StudioBaseException,
    UploadError,
)
from flux_studio.core.logging import get_logger, LogContext, set_stage
from flux_studio.core.metrics import (
    active_runs_gauge,
    record_item_outcome,
    track_stage_latency,
)
from flux_studio.modules.batch.models import ItemStatus, WorkItem
from flux_studio.pipeline.cancellation import CancellationSignal
from flux_studio.pipeline.parameters import ParameterBuilder
from flux_studio.pipeline.poller import JobPoller
from flux_studio.pipeline.profiles import ProcessingProfile
from flux_studio.pipeline.recorder import Provenance, ResultRecorder
from flux_studio.providers.base import IAssetUploader, IJobProvider

logger = get_logger(__name__)


class RunSummary(BaseModel):
    """Outcome counts of one run over the whole queue."""
    succeeded: int = 0
    failed: int = 0
    pending: int = 0
    processed: int = 0
    canceled: bool = False


class _RunStopped(Exception):
    """Internal: cancellation observed between steps of an item."""


def output_filename(label: str, index: int) -> str:
    """`photo.png`, 2 -> `photo_generated_2.jpg`"""
    return f"{Path(label).stem}_generated_{index}.jpg"


class BatchOrchestrator:
    """
    Sequential batch runner.

    Collaborators are injected so the run can be exercised against fakes:
    the uploader and provider do the network work, the poller drives each
    remote job and the recorder appends outputs to the gallery.
    """

    def __init__(
        self,
        uploader: IAssetUploader,
        provider: IJobProvider,
        poller: JobPoller,
        builder: ParameterBuilder,
        recorder: ResultRecorder
    ):
        self.uploader = uploader
        self.provider = provider
        self.poller = poller
        self.builder = builder
        self.recorder = recorder

    def check_ready(self, items: List[WorkItem], credential: Optional[str]):
        """Configuration checks that must pass before any network call."""
        if not credential:
            raise ConfigError("Replicate API key is not set", stage="run")
        needs_upload = any(
            item.status == ItemStatus.PENDING and item.source_asset is not None
            for item in items
        )
        if needs_upload:
            self.uploader.ensure_configured()

    async def run(
        self,
        items: List[WorkItem],
        profile: ProcessingProfile,
        knobs: Dict[str, Any],
        credential: Optional[str],
        signal: CancellationSignal,
        batch_id: Optional[str] = None
    ) -> RunSummary:
        """
        Process every PENDING item in queue order.

        Items in any other status are left untouched, so calling run() again
        after a cancel only picks up the remaining work.

        Raises:
            ConfigError: credential or uploader configuration missing;
                         no item is touched in that case.
        """
        self.check_ready(items, credential)

        summary = RunSummary()
        active_runs_gauge.inc()
        logger.info("batch_run_started", batch_id=batch_id, profile=profile.name, items=len(items))

        try:
            for item in items:
                if item.status != ItemStatus.PENDING:
                    continue
                if signal.is_cancelled:
                    summary.canceled = True
                    break

                with LogContext(batch_id=batch_id, item_id=item.id, stage="queued"):
                    stopped = await self._process_item(item, profile, knobs, credential, signal)

                summary.processed += 1
                if stopped:
                    summary.canceled = True
                    break
        finally:
            active_runs_gauge.dec()

        for item in items:
            if item.status == ItemStatus.SUCCEEDED:
                summary.succeeded += 1
            elif item.status == ItemStatus.FAILED:
                summary.failed += 1
            elif item.status == ItemStatus.PENDING:
                summary.pending += 1

        logger.info(
            "batch_run_finished",
            batch_id=batch_id,
            succeeded=summary.succeeded,
            failed=summary.failed,
            pending=summary.pending,
            canceled=summary.canceled
        )
        return summary

    async def _process_item(
        self,
        item: WorkItem,
        profile: ProcessingProfile,
        knobs: Dict[str, Any],
        credential: str,
        signal: CancellationSignal
    ) -> bool:
        """Drive one item. Returns True when cancellation stopped it."""
        try:
            await self._execute(item, profile, knobs, credential, signal)
        except (_RunStopped, PollCanceled):
            if item.status != ItemStatus.PENDING:
                item.reset_to_pending()
            logger.info("item_canceled", outputs_kept=len(item.outputs))
            record_item_outcome(profile.name, "canceled")
            return True
        except asyncio.CancelledError:
            if item.status != ItemStatus.PENDING:
                item.reset_to_pending()
            raise
        except StudioBaseException as e:
            item.mark_failed(e.message, e.kind)
            logger.warning("item_failed", error=e.message, kind=e.kind, stage=e.stage)
            record_item_outcome(profile.name, "failed")
            return False
        except Exception as e:
            item.mark_failed(str(e), "unexpected")
            logger.error("item_failed_unexpected", error=str(e), error_type=type(e).__name__)
            record_item_outcome(profile.name, "failed")
            return False

        record_item_outcome(profile.name, "succeeded")
        return False

    async def _execute(
        self,
        item: WorkItem,
        profile: ProcessingProfile,
        knobs: Dict[str, Any],
        credential: str,
        signal: CancellationSignal
    ):
        effective_knobs = {**knobs, **item.knobs}

        asset_url = None
        if item.source_asset is not None:
            asset_url = await self._upload(item)
            if signal.is_cancelled:
                raise _RunStopped()

        # Parameters are resolved once per item; every variant reuses them
        set_stage("build")
        payload = self.builder.build(profile, effective_knobs, asset_url)
        prompt = payload.input.get("prompt")

        while item.remaining_variants > 0:
            if signal.is_cancelled:
                raise _RunStopped()

            set_stage("submit")
            item.mark_submitting(payload.input)
            with track_stage_latency("submit"):
                handle = await self.provider.submit_job(payload.model_id, payload.input, credential)
            logger.info("job_submitted", job_id=handle.id, variant=item.variants_completed + 1)

            item.mark_polling()
            set_stage("poll")
            with track_stage_latency("poll"):
                urls = await self.poller.poll(handle, credential, signal)

            set_stage("record")
            for offset, url in enumerate(urls, start=1):
                await self.recorder.record(url, Provenance(
                    tool=profile.tool,
                    filename=output_filename(item.label, len(item.outputs) + offset),
                    prompt=prompt
                ))
            item.add_variant_outputs(urls)

        item.mark_succeeded()
        logger.info("item_succeeded", outputs=len(item.outputs))

    async def _upload(self, item: WorkItem) -> str:
        asset = item.source_asset
        item.mark_uploading()
        set_stage("upload")

        try:
            with open(asset.path, "rb") as f:
                file_bytes = f.read()
        except OSError as e:
            raise UploadError(f"Source file unavailable: {e}", item_id=item.id)

        with track_stage_latency("upload"):
            remote_url = await self.uploader.upload_asset(file_bytes, asset.filename, asset.mime_type)

        item.mark_uploaded(remote_url)
        logger.info("item_uploaded", filename=asset.filename)
        return remote_url
