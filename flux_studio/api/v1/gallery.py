"""
Gallery Endpoints

GET    /api/v1/gallery             - List entries, newest first (filter by kind or tool)
GET    /api/v1/gallery/stats       - Counts by kind and remaining capacity
DELETE /api/v1/gallery/{entry_id}  - Remove one entry
DELETE /api/v1/gallery             - Clear the gallery
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query

from flux_studio.api.dependencies import get_gallery_store
from flux_studio.core.exceptions import NotFoundError
from flux_studio.modules.gallery.models import EntryKind
from flux_studio.modules.gallery.store import GalleryStore

router = APIRouter()


@router.get("")
async def list_gallery(
    kind: Optional[EntryKind] = Query(default=None),
    tool: Optional[str] = Query(default=None),
    gallery: GalleryStore = Depends(get_gallery_store)
):
    entries = await gallery.list_entries()
    if kind is not None:
        entries = [entry for entry in entries if entry.kind == kind]
    if tool:
        entries = [entry for entry in entries if entry.origin_tool == tool]
    return {
        "entries": [entry.model_dump(mode="json") for entry in entries],
        "count": len(entries)
    }


@router.get("/stats")
async def gallery_stats(gallery: GalleryStore = Depends(get_gallery_store)):
    return await gallery.stats()


@router.delete("/{entry_id}")
async def delete_entry(entry_id: str, gallery: GalleryStore = Depends(get_gallery_store)):
    if not await gallery.remove(entry_id):
        raise NotFoundError(f"Gallery entry {entry_id} not found")
    return {"removed": entry_id}


@router.delete("")
async def clear_gallery(gallery: GalleryStore = Depends(get_gallery_store)):
    await gallery.clear()
    return {"cleared": True}
