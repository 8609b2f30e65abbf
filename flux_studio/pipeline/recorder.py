"""
Result Recorder

Appends artifacts to the gallery with provenance. Not idempotent: every call
creates a new entry, so callers record each produced output exactly once.
"""

from typing import Optional

from pydantic import BaseModel

from flux_studio.core.logging import get_logger
from flux_studio.modules.gallery.models import EntryKind, GalleryEntry
from flux_studio.modules.gallery.store import GalleryStore

logger = get_logger(__name__)


class Provenance(BaseModel):
    """Where an artifact came from."""
    tool: str
    filename: str
    kind: EntryKind = EntryKind.GENERATED
    prompt: Optional[str] = None
    size: Optional[int] = None


class ResultRecorder:
    def __init__(self, gallery: GalleryStore):
        self.gallery = gallery

    async def record(self, artifact_url: str, provenance: Provenance) -> GalleryEntry:
        entry = GalleryEntry(
            url=artifact_url,
            filename=provenance.filename,
            kind=provenance.kind,
            origin_tool=provenance.tool,
            prompt=provenance.prompt or None,
            size=provenance.size
        )
        await self.gallery.add(entry)
        logger.info("gallery_entry_recorded", entry_id=entry.id, kind=entry.kind.value, tool=entry.origin_tool)
        return entry

    async def record_upload(
        self,
        url: str,
        filename: str,
        tool: str,
        size: Optional[int] = None
    ) -> GalleryEntry:
        """Record a source image the user added to a queue."""
        return await self.record(
            url,
            Provenance(tool=tool, filename=filename, kind=EntryKind.UPLOADED, size=size)
        )
