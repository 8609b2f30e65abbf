import json
from unittest.mock import AsyncMock

import pytest

from flux_studio.core.exceptions import ValidationError
from flux_studio.core.kv_store import LocalKeyValueStore, RedisKeyValueStore
from flux_studio.core.storage import LocalStorage, inspect_image


def test_inspect_image(png_bytes):
    assert inspect_image(png_bytes) == ("PNG", "image/png")

    with pytest.raises(ValidationError):
        inspect_image(b"GIF89 but not really")


@pytest.mark.asyncio
async def test_local_storage_roundtrip(tmp_path, png_bytes):
    storage = LocalStorage(str(tmp_path))

    key = await storage.upload(png_bytes, "photo.png", folder="batch-1")

    assert key.startswith("batch-1/") and key.endswith(".png")
    assert await storage.exists(key)
    assert storage.get_path(key).read_bytes() == png_bytes
    assert await storage.delete(key) is True
    assert await storage.delete(key) is False
    assert not await storage.exists(key)


@pytest.mark.asyncio
async def test_local_kv_store_persists_to_disk(tmp_path):
    path = tmp_path / "nested" / "state.json"
    store = LocalKeyValueStore(str(path))

    await store.set("saved-prompts", ["A", "B"])
    await store.set("replicate-api-key", "r8_x")
    await store.delete("replicate-api-key")

    assert json.loads(path.read_text()) == {"saved-prompts": ["A", "B"]}
    assert await LocalKeyValueStore(str(path)).get("saved-prompts") == ["A", "B"]
    assert await store.get("missing") is None


@pytest.mark.asyncio
async def test_local_kv_store_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "state.json"
    path.write_text("{ truncated")

    assert await LocalKeyValueStore(str(path)).get("gallery-images") is None


@pytest.mark.asyncio
async def test_redis_kv_store_prefixes_and_encodes():
    client = AsyncMock()
    client.get.return_value = json.dumps([{"id": "img_1"}])
    store = RedisKeyValueStore(client)

    await store.set("gallery-images", [{"id": "img_1"}])
    value = await store.get("gallery-images")
    await store.delete("gallery-images")
    await store.close()

    client.set.assert_awaited_once_with("flux_studio:gallery-images", json.dumps([{"id": "img_1"}]))
    client.get.assert_awaited_once_with("flux_studio:gallery-images")
    client.delete.assert_awaited_once_with("flux_studio:gallery-images")
    client.aclose.assert_awaited_once()
    assert value == [{"id": "img_1"}]
