"""
Settings Endpoints

PUT    /api/v1/settings/credential  - Store the Replicate API key
GET    /api/v1/settings/credential  - Whether a key is configured (never the key itself)
DELETE /api/v1/settings/credential  - Forget the stored key
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from flux_studio.api.dependencies import get_credential_store
from flux_studio.core.logging import get_logger
from flux_studio.modules.settings.credentials import CredentialStore

logger = get_logger(__name__)
router = APIRouter()


class CredentialRequest(BaseModel):
    token: str


@router.put("/credential")
async def set_credential(request: CredentialRequest, credentials: CredentialStore = Depends(get_credential_store)):
    await credentials.set(request.token)
    logger.info("credential_updated")
    return {"configured": True}


@router.get("/credential")
async def credential_status(credentials: CredentialStore = Depends(get_credential_store)):
    return {"configured": await credentials.is_set()}


@router.delete("/credential")
async def clear_credential(credentials: CredentialStore = Depends(get_credential_store)):
    await credentials.clear()
    logger.info("credential_cleared")
    return {"configured": await credentials.is_set()}
