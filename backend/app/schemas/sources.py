"""Schemas for the crawler-facing source endpoints."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class DueSourceOut(BaseModel):
    id: int
    vertical: str
    name: str
    url: str
    poll_interval_min: int
    etag: Optional[str] = None
    last_modified: Optional[str] = None


class DueSourcesResponse(BaseModel):
    ok: bool = True
    sources: list[DueSourceOut]


class PollReportRequest(BaseModel):
    """Outcome of one poll. `seen_keys` is capped and deduped by the core."""

    source_id: Any = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None
    last_error: Optional[str] = None
    seen_keys: list[Any] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class PollReportResponse(BaseModel):
    ok: bool = True
    seen: int = Field(ge=0, description="Seen-keys newly recorded by this report")


class SeenLookupRequest(BaseModel):
    source_id: Any = None
    keys: list[Any] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class SeenLookupResponse(BaseModel):
    ok: bool = True
    seen: list[str]
