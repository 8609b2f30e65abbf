"""
Batch Output Archive

Bundles every output of a queue into one ZIP. Entries are named the same
way the gallery names generated images: `<stem>_generated_<n>.jpg`.
"""

import io
import zipfile
from typing import List, Optional, Tuple

import httpx

from flux_studio.core.config import settings
from flux_studio.core.exceptions import ExternalAPIError, NotFoundError
from flux_studio.core.logging import get_logger
from flux_studio.modules.batch.models import WorkItem
from flux_studio.pipeline.orchestrator import output_filename

logger = get_logger(__name__)

ARCHIVE_FILENAME = "processed_images.zip"


def archive_entries(items: List[WorkItem]) -> List[Tuple[str, str]]:
    """(entry name, url) for every recorded output, in queue order."""
    entries = []
    for item in items:
        for index, url in enumerate(item.outputs, start=1):
            entries.append((output_filename(item.label, index), url))
    return entries


class OutputArchiver:
    """Downloads recorded outputs and packs them into an in-memory ZIP."""

    def __init__(
        self,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self._transport = transport

    async def build(self, items: List[WorkItem]) -> bytes:
        """
        Raises:
            NotFoundError: no item has outputs yet
            ExternalAPIError: an output could not be downloaded
        """
        entries = archive_entries(items)
        if not entries:
            raise NotFoundError("No processed images to download")

        buffer = io.BytesIO()
        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
                for name, url in entries:
                    archive.writestr(name, await self._download(client, url))

        logger.info("output_archive_built", files=len(entries), bytes=buffer.tell())
        return buffer.getvalue()

    @staticmethod
    async def _download(client: httpx.AsyncClient, url: str) -> bytes:
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise ExternalAPIError(f"Failed to download {url}: {e}", service="download") from e
        if response.status_code >= 400:
            raise ExternalAPIError(
                f"Failed to download {url}: HTTP {response.status_code}",
                service="download",
                http_status=response.status_code
            )
        return response.content
