import pytest

from flux_studio.modules.gallery.models import EntryKind, GalleryEntry
from flux_studio.modules.gallery.store import GalleryStore, PromptHistory
from flux_studio.pipeline.recorder import Provenance


def entry(n: int, kind: EntryKind = EntryKind.GENERATED, tool: str = "Canny") -> GalleryEntry:
    return GalleryEntry(url=f"https://out/{n}.jpg", filename=f"{n}.jpg", kind=kind, origin_tool=tool)


# =============================================================================
# Gallery
# =============================================================================

@pytest.mark.asyncio
async def test_gallery_is_newest_first_and_bounded(kv_store):
    gallery = GalleryStore(kv_store, max_entries=3)

    for n in range(5):
        await gallery.add(entry(n))

    entries = await gallery.list_entries()
    assert [e.filename for e in entries] == ["4.jpg", "3.jpg", "2.jpg"]
    assert not await gallery.has_space()


@pytest.mark.asyncio
async def test_gallery_persists_across_instances(kv_store):
    await GalleryStore(kv_store).add(entry(1))

    entries = await GalleryStore(kv_store).list_entries()

    assert len(entries) == 1
    assert entries[0].url == "https://out/1.jpg"


@pytest.mark.asyncio
async def test_gallery_filters_and_stats(gallery):
    await gallery.add(entry(1, EntryKind.UPLOADED, "Canny"))
    await gallery.add(entry(2, EntryKind.GENERATED, "Canny"))
    await gallery.add(entry(3, EntryKind.GENERATED, "FluxUpscale"))

    assert len(await gallery.by_kind(EntryKind.GENERATED)) == 2
    assert [e.filename for e in await gallery.by_tool("Canny")] == ["2.jpg", "1.jpg"]

    stats = await gallery.stats()
    assert stats.total == 3
    assert stats.uploaded == 1
    assert stats.generated == 2
    assert stats.available == 97


@pytest.mark.asyncio
async def test_gallery_remove_and_clear(gallery):
    first = entry(1)
    await gallery.add_many([first, entry(2)])

    assert await gallery.remove(first.id) is True
    assert await gallery.remove(first.id) is False
    assert len(await gallery.list_entries()) == 1

    await gallery.clear()
    assert await gallery.list_entries() == []


@pytest.mark.asyncio
async def test_recorder_is_not_idempotent(recorder, gallery):
    provenance = Provenance(tool="Canny", filename="a_generated_1.jpg", prompt="neon")

    await recorder.record("https://out/a.jpg", provenance)
    await recorder.record("https://out/a.jpg", provenance)

    entries = await gallery.list_entries()
    assert len(entries) == 2
    assert entries[0].id != entries[1].id
    assert entries[0].kind == EntryKind.GENERATED


@pytest.mark.asyncio
async def test_recorder_upload_entry(recorder):
    recorded = await recorder.record_upload("/static/uploads/b/a.png", filename="a.png", tool="FluxUpscale", size=120)

    assert recorded.kind == EntryKind.UPLOADED
    assert recorded.size == 120
    assert recorded.prompt is None


# =============================================================================
# Prompt history
# =============================================================================

@pytest.mark.asyncio
async def test_prompt_history_dedupes_most_recent_first(kv_store):
    history = PromptHistory(kv_store)

    await history.save("A")
    await history.save("B")
    await history.save("A")

    assert await history.load() == ["A", "B"]
    assert await history.last() == "A"


@pytest.mark.asyncio
async def test_prompt_history_trims_and_ignores_blank(kv_store):
    history = PromptHistory(kv_store)

    await history.save("  sunset over dunes  ")
    await history.save("   ")
    await history.save(None)

    assert await history.load() == ["sunset over dunes"]


@pytest.mark.asyncio
async def test_prompt_history_is_capped(kv_store):
    history = PromptHistory(kv_store, max_prompts=10)

    for n in range(12):
        await history.save(f"prompt {n}")

    prompts = await history.load()
    assert len(prompts) == 10
    assert prompts[0] == "prompt 11"
    assert "prompt 1" not in prompts


@pytest.mark.asyncio
async def test_prompt_history_clear(kv_store):
    history = PromptHistory(kv_store)
    await history.save("x")

    await history.clear()

    assert await history.load() == []
    assert await history.last() == ""


@pytest.mark.asyncio
async def test_explicit_zero_limits_are_kept(kv_store):
    gallery = GalleryStore(kv_store, max_entries=0)
    history = PromptHistory(kv_store, max_prompts=0)

    await gallery.add(entry(1))
    await history.save("kept nowhere")

    assert gallery.max_entries == 0
    assert await gallery.list_entries() == []
    assert await history.load() == []
