"""
FastAPI Dependencies

Provides dependency injection for:
- Key-value store (singleton, local JSON file or Redis)
- Gallery, prompt history and credential stores (singletons over the store)
- Batch session registry (process-wide)
- Batch orchestrator wired to the Cloudinary and Replicate clients
- Output archiver for ZIP downloads
"""

from typing import Optional

from flux_studio.core.kv_store import IKeyValueStore, KeyValueStoreFactory
from flux_studio.modules.batch.archive import OutputArchiver
from flux_studio.modules.batch.session import SessionRegistry
from flux_studio.modules.gallery.store import GalleryStore, PromptHistory
from flux_studio.modules.settings.credentials import CredentialStore
from flux_studio.pipeline.orchestrator import BatchOrchestrator
from flux_studio.pipeline.parameters import ParameterBuilder
from flux_studio.pipeline.poller import JobPoller
from flux_studio.pipeline.recorder import ResultRecorder
from flux_studio.providers.cloudinary import CloudinaryUploader
from flux_studio.providers.replicate import ReplicateClient


# =============================================================================
# Global Singletons - one per process
# =============================================================================

_gallery: Optional[GalleryStore] = None
_prompts: Optional[PromptHistory] = None
_credentials: Optional[CredentialStore] = None
_registry: Optional[SessionRegistry] = None
_orchestrator: Optional[BatchOrchestrator] = None


def get_kv_store() -> IKeyValueStore:
    return KeyValueStoreFactory.get_store()


def get_gallery_store() -> GalleryStore:
    global _gallery
    if _gallery is None:
        _gallery = GalleryStore(get_kv_store())
    return _gallery


def get_prompt_history() -> PromptHistory:
    global _prompts
    if _prompts is None:
        _prompts = PromptHistory(get_kv_store())
    return _prompts


def get_credential_store() -> CredentialStore:
    global _credentials
    if _credentials is None:
        _credentials = CredentialStore(get_kv_store())
    return _credentials


def get_registry() -> SessionRegistry:
    global _registry
    if _registry is None:
        _registry = SessionRegistry()
    return _registry


def get_recorder() -> ResultRecorder:
    return ResultRecorder(get_gallery_store())


def get_orchestrator() -> BatchOrchestrator:
    """Returns the orchestrator wired to the real providers."""
    global _orchestrator
    if _orchestrator is None:
        provider = ReplicateClient()
        _orchestrator = BatchOrchestrator(
            uploader=CloudinaryUploader(),
            provider=provider,
            poller=JobPoller(provider),
            builder=ParameterBuilder(),
            recorder=get_recorder()
        )
    return _orchestrator


def get_archiver() -> OutputArchiver:
    return OutputArchiver()


def reset_dependencies():
    """Drop all singletons (useful for testing)."""
    global _gallery, _prompts, _credentials, _registry, _orchestrator
    _gallery = None
    _prompts = None
    _credentials = None
    _registry = None
    _orchestrator = None
    KeyValueStoreFactory.reset()
