"""Schemas for the raw ingestion endpoint.

Only `url` is semantically required; the core validates it so that a missing
url and a blank url produce the same 400 message.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class IngestRequest(BaseModel):
    """Request payload from a producer (chat bot, crawler)."""

    url: Optional[str] = Field(None, description="Candidate article url (trimmed, <= 2048 chars)")
    vertical: Optional[str] = Field(None, description="ree | coal | policy; anything else maps to ree")
    source: Optional[str] = Field(None, description="Producer label, default 'discord'")
    source_channel_id: Optional[str] = None
    source_message_id: Optional[str] = None
    author_id: Optional[str] = None
    author_username: Optional[str] = None
    metadata: Optional[dict[str, Any]] = Field(None, description="Open mapping, shallow-merged on duplicates")
    posted_at: Optional[str] = Field(None, description="Producer timestamp, kept in metadata.posted_at")

    model_config = ConfigDict(extra="ignore", coerce_numbers_to_str=True)


class IngestResponse(BaseModel):
    ok: bool = True
    inserted: bool
    id: int
