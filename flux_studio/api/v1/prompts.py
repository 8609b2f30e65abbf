"""
Prompt History Endpoints

GET    /api/v1/prompts  - Saved prompts, most recent first
POST   /api/v1/prompts  - Save a prompt
DELETE /api/v1/prompts  - Clear history
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from flux_studio.api.dependencies import get_prompt_history
from flux_studio.modules.gallery.store import PromptHistory

router = APIRouter()


class SavePromptRequest(BaseModel):
    prompt: str = Field(..., max_length=2000)


@router.get("")
async def list_prompts(prompts: PromptHistory = Depends(get_prompt_history)):
    saved = await prompts.load()
    return {"prompts": saved, "last": saved[0] if saved else ""}


@router.post("")
async def save_prompt(request: SavePromptRequest, prompts: PromptHistory = Depends(get_prompt_history)):
    return {"prompts": await prompts.save(request.prompt)}


@router.delete("")
async def clear_prompts(prompts: PromptHistory = Depends(get_prompt_history)):
    await prompts.clear()
    return {"cleared": True}
