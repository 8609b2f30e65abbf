"""
Cloudinary Asset Uploader

Signed multipart upload of source images; returns the asset's secure_url.
"""

import time
import hashlib
from typing import Optional

import httpx

from flux_studio.core.config import settings
from flux_studio.core.exceptions import ConfigError, UploadError
from flux_studio.core.logging import get_logger
from flux_studio.core.metrics import record_provider_call
from flux_studio.providers.base import IAssetUploader

logger = get_logger(__name__)


def sign_upload(timestamp: int, api_secret: str) -> str:
    """SHA-1 signature over the signed parameters followed by the secret."""
    return hashlib.sha1(f"timestamp={timestamp}{api_secret}".encode("utf-8")).hexdigest()


class CloudinaryUploader(IAssetUploader):
    """Cloudinary image upload API."""

    name = "cloudinary"

    def __init__(
        self,
        cloud_name: Optional[str] = None,
        api_key: Optional[str] = None,
        api_secret: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.cloud_name = cloud_name or settings.CLOUDINARY_CLOUD_NAME
        self.api_key = api_key or settings.CLOUDINARY_API_KEY
        self.api_secret = api_secret or settings.CLOUDINARY_API_SECRET
        self.base_url = (base_url or settings.CLOUDINARY_API_URL).rstrip("/")
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport

    def ensure_configured(self) -> None:
        missing = [
            name for name, value in (
                ("CLOUDINARY_CLOUD_NAME", self.cloud_name),
                ("CLOUDINARY_API_KEY", self.api_key),
                ("CLOUDINARY_API_SECRET", self.api_secret),
            ) if not value
        ]
        if missing:
            raise ConfigError(f"Asset uploader is not configured: missing {', '.join(missing)}")

    async def upload_asset(self, file_bytes: bytes, filename: str, mime_type: str) -> str:
        self.ensure_configured()

        timestamp = int(time.time())
        data = {
            "timestamp": str(timestamp),
            "api_key": self.api_key,
            "signature": sign_upload(timestamp, self.api_secret),
        }
        files = {"file": (filename, file_bytes, mime_type)}
        url = f"{self.base_url}/{self.cloud_name}/image/upload"

        logger.info("cloudinary_upload_starting", filename=filename, size=len(file_bytes))

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, data=data, files=files)
        except httpx.HTTPError as e:
            record_provider_call(self.name, "upload", "error")
            raise UploadError(f"Upload failed: {e}")

        if response.status_code != 200:
            record_provider_call(self.name, "upload", "error")
            try:
                body = response.json()
                error = body.get("error", {}) if isinstance(body, dict) else body
                message = error.get("message") if isinstance(error, dict) else str(error)
            except ValueError:
                message = response.text
            raise UploadError(
                f"Upload failed: {message or 'Unknown error'}",
                http_status=response.status_code
            )

        secure_url = response.json().get("secure_url")
        if not secure_url:
            record_provider_call(self.name, "upload", "error")
            raise UploadError("Upload response carried no secure_url")

        record_provider_call(self.name, "upload", "success")
        logger.info("cloudinary_upload_completed", filename=filename)
        return secure_url
