import hashlib
import json

import httpx
import pytest

from flux_studio.core.exceptions import (
    ConfigError,
    ExternalAPIError,
    SubmissionError,
    UploadError,
)
from flux_studio.pipeline.schemas import JobStatusSnapshot, RemoteJobStatus
from flux_studio.providers.cloudinary import CloudinaryUploader, sign_upload
from flux_studio.providers.replicate import ReplicateClient

BASE = "https://api.replicate.test/v1"


# =============================================================================
# Replicate
# =============================================================================

@pytest.mark.asyncio
async def test_submit_pinned_version_posts_to_predictions():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "pred-1", "status": "starting"})

    client = ReplicateClient(base_url=BASE, transport=httpx.MockTransport(handler))
    handle = await client.submit_job("owner/model:abc123", {"prompt": "p"}, "r8_secret")

    assert handle.id == "pred-1"
    assert seen["url"] == f"{BASE}/predictions"
    assert seen["auth"] == "Bearer r8_secret"
    assert seen["body"] == {"version": "abc123", "input": {"prompt": "p"}}


@pytest.mark.asyncio
async def test_submit_unversioned_model_uses_model_endpoint():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"id": "pred-2"})

    client = ReplicateClient(base_url=BASE, transport=httpx.MockTransport(handler))
    await client.submit_job("black-forest-labs/flux-dev", {"prompt": "p"}, "token")

    assert seen["url"] == f"{BASE}/models/black-forest-labs/flux-dev/predictions"
    assert seen["body"] == {"input": {"prompt": "p"}}


@pytest.mark.asyncio
async def test_submit_rejection_surfaces_provider_detail():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(401, json={"detail": "Invalid token"})
    )
    client = ReplicateClient(base_url=BASE, transport=transport)

    with pytest.raises(SubmissionError) as exc_info:
        await client.submit_job("owner/model:v", {}, "bad")

    assert "Invalid token" in exc_info.value.message
    assert exc_info.value.details["http_status"] == 401
    assert exc_info.value.kind == "submission"


@pytest.mark.asyncio
async def test_submit_network_error_is_a_submission_error():
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    client = ReplicateClient(base_url=BASE, transport=httpx.MockTransport(handler))

    with pytest.raises(SubmissionError):
        await client.submit_job("owner/model:v", {}, "token")


@pytest.mark.asyncio
async def test_status_snapshot_normalizes_output():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(200, json={"id": "pred-1", "status": "succeeded", "output": "https://out/1.jpg"})
    )
    client = ReplicateClient(base_url=BASE, transport=transport)

    snapshot = await client.get_job_status("pred-1", "token")

    assert snapshot.status == RemoteJobStatus.SUCCEEDED
    assert snapshot.output == ["https://out/1.jpg"]


@pytest.mark.asyncio
async def test_status_http_error_raises():
    transport = httpx.MockTransport(lambda request: httpx.Response(500, text="upstream"))
    client = ReplicateClient(base_url=BASE, transport=transport)

    with pytest.raises(ExternalAPIError):
        await client.get_job_status("pred-1", "token")


def test_snapshot_from_provider_variants():
    assert JobStatusSnapshot.from_provider({"status": "processing"}).output == []
    assert JobStatusSnapshot.from_provider({"status": "queued"}).status == RemoteJobStatus.PROCESSING

    listed = JobStatusSnapshot.from_provider({"status": "succeeded", "output": ["a", None, "b"]})
    assert listed.output == ["a", "b"]

    failed = JobStatusSnapshot.from_provider({"status": "failed", "error": "NSFW"})
    assert failed.status == RemoteJobStatus.FAILED
    assert failed.error == "NSFW"


# =============================================================================
# Cloudinary
# =============================================================================

def test_sign_upload_matches_sha1_of_params_and_secret():
    expected = hashlib.sha1(b"timestamp=1700000000s3cret").hexdigest()
    assert sign_upload(1700000000, "s3cret") == expected


def test_unconfigured_uploader_reports_missing_settings():
    uploader = CloudinaryUploader(cloud_name="demo", api_key=None, api_secret=None)
    uploader.api_key = None
    uploader.api_secret = None

    with pytest.raises(ConfigError) as exc_info:
        uploader.ensure_configured()

    assert "CLOUDINARY_API_KEY" in exc_info.value.message
    assert "CLOUDINARY_API_SECRET" in exc_info.value.message


@pytest.mark.asyncio
async def test_upload_returns_secure_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(200, json={"secure_url": "https://res.cloudinary.com/demo/image/upload/a.png"})

    uploader = CloudinaryUploader(
        cloud_name="demo",
        api_key="key",
        api_secret="secret",
        base_url="https://api.cloudinary.test/v1_1",
        transport=httpx.MockTransport(handler)
    )

    url = await uploader.upload_asset(b"\x89PNG...", "a.png", "image/png")

    assert url == "https://res.cloudinary.com/demo/image/upload/a.png"
    assert seen["url"] == "https://api.cloudinary.test/v1_1/demo/image/upload"
    assert b'name="signature"' in seen["body"]
    assert b'name="api_key"' in seen["body"]
    assert b'filename="a.png"' in seen["body"]


@pytest.mark.asyncio
async def test_upload_error_carries_provider_message():
    transport = httpx.MockTransport(
        lambda request: httpx.Response(401, json={"error": {"message": "Invalid Signature"}})
    )
    uploader = CloudinaryUploader(
        cloud_name="demo", api_key="key", api_secret="secret",
        base_url="https://api.cloudinary.test/v1_1", transport=transport
    )

    with pytest.raises(UploadError) as exc_info:
        await uploader.upload_asset(b"data", "a.png", "image/png")

    assert "Invalid Signature" in exc_info.value.message
    assert exc_info.value.kind == "upload"
