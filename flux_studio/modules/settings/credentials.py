"""
Provider credential store.

The token lives in the key-value store under the same key the settings
dialog uses; the environment token is only a fallback.
"""

from typing import Optional

from flux_studio.core.config import settings
from flux_studio.core.exceptions import ValidationError
from flux_studio.core.kv_store import IKeyValueStore

CREDENTIAL_KEY = "replicate-api-key"


class CredentialStore:
    def __init__(self, kv: IKeyValueStore, fallback: Optional[str] = None):
        self.kv = kv
        self.fallback = fallback if fallback is not None else settings.REPLICATE_API_TOKEN

    async def get(self) -> Optional[str]:
        stored = await self.kv.get(CREDENTIAL_KEY)
        return stored or self.fallback or None

    async def set(self, token: str) -> None:
        token = (token or "").strip()
        if not token:
            raise ValidationError("Credential must not be empty")
        await self.kv.set(CREDENTIAL_KEY, token)

    async def clear(self) -> None:
        await self.kv.delete(CREDENTIAL_KEY)

    async def is_set(self) -> bool:
        return bool(await self.get())
