import io
import os
import tempfile

# Settings are read at import time; keep test state out of the working tree
os.environ.setdefault("LOCAL_STORAGE_PATH", tempfile.mkdtemp(prefix="flux_studio_uploads_"))
os.environ.setdefault("LOCAL_STATE_PATH", os.path.join(tempfile.mkdtemp(prefix="flux_studio_state_"), "state.json"))
os.environ.setdefault("LOG_FORMAT_JSON", "false")

import pytest
from unittest.mock import AsyncMock, MagicMock
from httpx import AsyncClient, ASGITransport
from PIL import Image
from typing import AsyncGenerator

from flux_studio.core.config import settings
from flux_studio.core.kv_store import LocalKeyValueStore
from flux_studio.core.storage import StorageFactory
from flux_studio.modules.gallery.store import GalleryStore
from flux_studio.pipeline.parameters import ParameterBuilder
from flux_studio.pipeline.poller import JobPoller
from flux_studio.pipeline.recorder import ResultRecorder
from flux_studio.pipeline.orchestrator import BatchOrchestrator
from flux_studio.providers.base import IJobProvider

from fakes import ScriptedProvider


@pytest.fixture
def png_bytes() -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (8, 8), color=(200, 40, 40)).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def kv_store(tmp_path):
    return LocalKeyValueStore(str(tmp_path / "state.json"))


@pytest.fixture
def gallery(kv_store):
    return GalleryStore(kv_store, max_entries=100)


@pytest.fixture
def recorder(gallery):
    return ResultRecorder(gallery)


@pytest.fixture
def uploader():
    fake = MagicMock()
    fake.ensure_configured = MagicMock(return_value=None)
    fake.upload_asset = AsyncMock(
        side_effect=lambda file_bytes, filename, mime_type: f"https://res.cloudinary.com/demo/{filename}"
    )
    return fake


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def make_orchestrator(uploader, recorder):
    def _make(provider: IJobProvider, max_attempts: int = 60) -> BatchOrchestrator:
        return BatchOrchestrator(
            uploader=uploader,
            provider=provider,
            poller=JobPoller(provider, interval_seconds=0, max_attempts=max_attempts),
            builder=ParameterBuilder(),
            recorder=recorder
        )
    return _make


@pytest.fixture
def source_file(tmp_path, png_bytes):
    def _make(name: str) -> str:
        path = tmp_path / name
        path.write_bytes(png_bytes)
        return str(path)
    return _make


@pytest.fixture
async def client(tmp_path, monkeypatch) -> AsyncGenerator[AsyncClient, None]:
    from flux_studio.api.dependencies import reset_dependencies
    from flux_studio.main import app

    monkeypatch.setattr(settings, "LOCAL_STATE_PATH", str(tmp_path / "state.json"))
    monkeypatch.setattr(settings, "LOCAL_STORAGE_PATH", str(tmp_path / "uploads"))
    monkeypatch.setattr(settings, "KV_BACKEND", "local")
    monkeypatch.setattr(settings, "REPLICATE_API_TOKEN", None)
    reset_dependencies()
    StorageFactory.reset()

    # Trigger lifespan events (startup/shutdown)
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
            yield ac

    app.dependency_overrides.clear()
    reset_dependencies()
    StorageFactory.reset()
