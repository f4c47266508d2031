from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class CacheEntry(BaseModel):
    """A live (unexpired) row of the generic TTL cache."""

    key: str
    content: str
    content_type: str
    expires_at: datetime
    created_at: datetime | None = None
