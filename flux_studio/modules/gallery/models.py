"""
Gallery Models

A GalleryEntry is an immutable record of an uploaded or generated artifact.
"""

import uuid
from enum import Enum
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class EntryKind(str, Enum):
    UPLOADED = "uploaded"
    GENERATED = "generated"


class GalleryEntry(BaseModel):
    """Durable record of an artifact with its provenance."""
    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: f"img_{uuid.uuid4().hex[:12]}")
    url: str
    filename: str
    kind: EntryKind = EntryKind.UPLOADED
    origin_tool: str
    prompt: Optional[str] = None
    size: Optional[int] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class GalleryStats(BaseModel):
    total: int
    uploaded: int
    generated: int
    available: int
