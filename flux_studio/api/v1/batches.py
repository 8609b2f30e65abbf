"""
Batch Endpoints

POST   /api/v1/batches                               - Create a queue for a profile
GET    /api/v1/batches                               - List queues
GET    /api/v1/batches/{batch_id}                    - Queue state and items
POST   /api/v1/batches/{batch_id}/images             - Add source images (multipart)
POST   /api/v1/batches/{batch_id}/generations        - Add a text-to-image request
DELETE /api/v1/batches/{batch_id}/items/{item_id}    - Remove an item
POST   /api/v1/batches/{batch_id}/items/{item_id}/retry - Retry a failed item
POST   /api/v1/batches/{batch_id}/run                - Start processing pending items
POST   /api/v1/batches/{batch_id}/cancel             - Cancel the active run
GET    /api/v1/batches/{batch_id}/outputs.zip        - Download all outputs as a ZIP
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from pydantic import BaseModel, Field

from flux_studio.api.dependencies import (
    get_archiver,
    get_credential_store,
    get_orchestrator,
    get_prompt_history,
    get_recorder,
    get_registry,
)
from flux_studio.core.config import settings
from flux_studio.core.logging import get_logger, LogContext
from flux_studio.core.storage import IStorage, get_storage
from flux_studio.modules.batch.archive import ARCHIVE_FILENAME, OutputArchiver
from flux_studio.modules.batch.session import SessionRegistry
from flux_studio.modules.gallery.store import PromptHistory
from flux_studio.modules.settings.credentials import CredentialStore
from flux_studio.pipeline.orchestrator import BatchOrchestrator
from flux_studio.pipeline.recorder import ResultRecorder

logger = get_logger(__name__)
router = APIRouter()


# =============================================================================
# Request/Response Schemas
# =============================================================================

class CreateBatchRequest(BaseModel):
    """Request to open a queue."""
    profile: str = Field(..., description="restyle, upscale, generate or generate-pro")
    knobs: Dict[str, Any] = Field(default_factory=dict)


class GenerationRequest(BaseModel):
    """Queue a text-to-image request."""
    prompt: str = Field(..., min_length=1, max_length=2000)
    variants: int = Field(default=1, ge=1)
    knobs: Dict[str, Any] = Field(default_factory=dict)


class RunResponse(BaseModel):
    batch_id: str
    status: str
    pending: int
    message: str


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", status_code=201)
async def create_batch(
    request: CreateBatchRequest,
    registry: SessionRegistry = Depends(get_registry)
):
    session = registry.create(request.profile, request.knobs)
    return session.to_response_dict()


@router.get("")
async def list_batches(registry: SessionRegistry = Depends(get_registry)):
    return {"batches": [session.to_response_dict() for session in registry.all()]}


@router.get("/{batch_id}")
async def get_batch(batch_id: str, registry: SessionRegistry = Depends(get_registry)):
    return registry.get(batch_id).to_response_dict()


@router.post("/{batch_id}/images", status_code=201)
async def add_images(
    batch_id: str,
    files: List[UploadFile] = File(...),
    variants: int = Form(default=1),
    registry: SessionRegistry = Depends(get_registry),
    storage: IStorage = Depends(get_storage),
    recorder: ResultRecorder = Depends(get_recorder)
):
    """
    Queue one or more source images, each for `variants` generations.

    Every file is checked to be a decodable image before any of them is
    staged, so a rejected upload queues nothing. Accepted files are staged
    locally and recorded in the gallery as uploaded entries.
    """
    session = registry.get(batch_id)
    uploads = []
    with LogContext(batch_id=batch_id, stage="queue"):
        for upload in files:
            file_data = await upload.read()
            filename = upload.filename or "image"
            session.check_image(file_data, filename)
            uploads.append((file_data, filename))

        added = []
        for file_data, filename in uploads:
            item = await session.add_image(
                file_data,
                filename,
                storage,
                recorder=recorder,
                variants=variants
            )
            added.append(item.to_response_dict())
    return {"batch_id": batch_id, "items": added}


@router.post("/{batch_id}/generations", status_code=201)
async def add_generation(
    batch_id: str,
    request: GenerationRequest,
    registry: SessionRegistry = Depends(get_registry),
    prompts: PromptHistory = Depends(get_prompt_history)
):
    session = registry.get(batch_id)
    item = session.add_generation(request.prompt, request.variants, request.knobs)
    await prompts.save(request.prompt)
    return item.to_response_dict()


@router.delete("/{batch_id}/items/{item_id}")
async def remove_item(
    batch_id: str,
    item_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    item = registry.get(batch_id).remove(item_id)
    return {"removed": item.id}


@router.post("/{batch_id}/items/{item_id}/retry")
async def retry_item(
    batch_id: str,
    item_id: str,
    registry: SessionRegistry = Depends(get_registry)
):
    return registry.get(batch_id).retry(item_id).to_response_dict()


@router.post("/{batch_id}/run", response_model=RunResponse, status_code=202)
async def run_batch(
    batch_id: str,
    registry: SessionRegistry = Depends(get_registry),
    orchestrator: BatchOrchestrator = Depends(get_orchestrator),
    credentials: CredentialStore = Depends(get_credential_store),
    prompts: PromptHistory = Depends(get_prompt_history)
):
    """
    Start a run over the pending items.

    Returns immediately; poll GET /batches/{batch_id} for progress.
    A missing credential is reported here (412) and no item is touched.
    """
    session = registry.get(batch_id)
    credential = await credentials.get()
    session.start(orchestrator, credential)

    prompt: Optional[str] = session.knobs.get("prompt")
    if prompt:
        await prompts.save(prompt)

    pending = sum(1 for item in session.items if item.status.value == "pending")
    logger.info("batch_run_dispatched", batch_id=batch_id, pending=pending)
    return RunResponse(
        batch_id=batch_id,
        status="running",
        pending=pending,
        message=f"Processing {pending} item(s); polling every {settings.POLL_INTERVAL_SECONDS:g}s"
    )


@router.post("/{batch_id}/cancel")
async def cancel_batch(batch_id: str, registry: SessionRegistry = Depends(get_registry)):
    session = registry.get(batch_id)
    requested = session.cancel()
    return {"batch_id": batch_id, "cancel_requested": requested}


@router.get("/{batch_id}/outputs.zip")
async def download_outputs(
    batch_id: str,
    registry: SessionRegistry = Depends(get_registry),
    archiver: OutputArchiver = Depends(get_archiver)
):
    """Download every recorded output of the queue as one ZIP."""
    session = registry.get(batch_id)
    with LogContext(batch_id=batch_id, stage="archive"):
        content = await archiver.build(session.items)
    return Response(
        content=content,
        media_type="application/zip",
        headers={"Content-Disposition": f'attachment; filename="{ARCHIVE_FILENAME}"'}
    )
