from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class SourceCacheEntry(BaseModel):
    """Cached source text fetched from a network location."""

    location: str
    content: str  # Raw package source
    fetched_at: datetime
    expires_at: datetime
    stale: bool = False
