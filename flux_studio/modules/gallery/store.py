"""
Gallery and Prompt History Stores

Both are bounded, newest-first lists kept under a single key in the
key-value store. Writes are serialized per store instance.
"""

import asyncio
from typing import List, Optional

from pydantic import ValidationError as PydanticValidationError

from flux_studio.core.config import settings
from flux_studio.core.kv_store import IKeyValueStore
from flux_studio.core.logging import get_logger
from flux_studio.modules.gallery.models import EntryKind, GalleryEntry, GalleryStats

logger = get_logger(__name__)

GALLERY_KEY = "gallery-images"
PROMPTS_KEY = "saved-prompts"


class GalleryStore:
    """Bounded newest-first gallery; inserting into a full gallery evicts the oldest entries."""

    def __init__(self, kv: IKeyValueStore, max_entries: Optional[int] = None):
        self.kv = kv
        self.max_entries = settings.GALLERY_MAX_ENTRIES if max_entries is None else max_entries
        self._lock = asyncio.Lock()

    async def _load(self) -> List[GalleryEntry]:
        raw = await self.kv.get(GALLERY_KEY) or []
        entries = []
        for item in raw:
            try:
                entries.append(GalleryEntry.model_validate(item))
            except PydanticValidationError:
                logger.warning("gallery_entry_skipped", entry=item)
        return entries

    async def _save(self, entries: List[GalleryEntry]) -> None:
        await self.kv.set(GALLERY_KEY, [entry.model_dump(mode="json") for entry in entries])

    async def list_entries(self) -> List[GalleryEntry]:
        return await self._load()

    async def add(self, entry: GalleryEntry) -> List[GalleryEntry]:
        return await self.add_many([entry])

    async def add_many(self, new_entries: List[GalleryEntry]) -> List[GalleryEntry]:
        """Prepend entries (first argument ends up newest) and trim to max_entries."""
        async with self._lock:
            entries = await self._load()
            updated = (list(new_entries) + entries)[:self.max_entries]
            await self._save(updated)
        evicted = len(entries) + len(new_entries) - len(updated)
        if evicted > 0:
            logger.info("gallery_entries_evicted", count=evicted)
        return updated

    async def remove(self, entry_id: str) -> bool:
        async with self._lock:
            entries = await self._load()
            remaining = [entry for entry in entries if entry.id != entry_id]
            if len(remaining) == len(entries):
                return False
            await self._save(remaining)
        return True

    async def clear(self) -> None:
        async with self._lock:
            await self.kv.delete(GALLERY_KEY)

    async def by_kind(self, kind: EntryKind) -> List[GalleryEntry]:
        return [entry for entry in await self._load() if entry.kind == kind]

    async def by_tool(self, tool: str) -> List[GalleryEntry]:
        return [entry for entry in await self._load() if entry.origin_tool == tool]

    async def has_space(self) -> bool:
        return len(await self._load()) < self.max_entries

    async def stats(self) -> GalleryStats:
        entries = await self._load()
        uploaded = sum(1 for entry in entries if entry.kind == EntryKind.UPLOADED)
        return GalleryStats(
            total=len(entries),
            uploaded=uploaded,
            generated=len(entries) - uploaded,
            available=self.max_entries - len(entries)
        )


class PromptHistory:
    """Bounded, deduplicated, most-recent-first prompt list."""

    def __init__(self, kv: IKeyValueStore, max_prompts: Optional[int] = None):
        self.kv = kv
        self.max_prompts = settings.PROMPT_HISTORY_MAX if max_prompts is None else max_prompts
        self._lock = asyncio.Lock()

    async def load(self) -> List[str]:
        raw = await self.kv.get(PROMPTS_KEY) or []
        return [str(prompt) for prompt in raw]

    async def save(self, prompt: Optional[str]) -> List[str]:
        """Move (or add) the trimmed prompt to the front. Blank prompts are ignored."""
        cleaned = (prompt or "").strip()
        if not cleaned:
            return await self.load()
        async with self._lock:
            prompts = await self.load()
            updated = [cleaned] + [p for p in prompts if p != cleaned]
            updated = updated[:self.max_prompts]
            await self.kv.set(PROMPTS_KEY, updated)
        return updated

    async def last(self) -> str:
        prompts = await self.load()
        return prompts[0] if prompts else ""

    async def clear(self) -> None:
        async with self._lock:
            await self.kv.delete(PROMPTS_KEY)
