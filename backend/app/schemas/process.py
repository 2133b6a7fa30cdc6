"""Schemas for the enrichment trigger endpoints."""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict


ProcessMode = Literal["manual_post", "cron_get"]


class ProcessRequest(BaseModel):
    # Clamped to [1, 50] by the claim queue; junk falls back to the default.
    limit: Any = None

    model_config = ConfigDict(extra="ignore")


class ItemResult(BaseModel):
    id: int
    ok: bool
    error: Optional[str] = None
    error_type: Optional[str] = None


class ProcessResponse(BaseModel):
    ok: bool = True
    mode: ProcessMode
    limit: int
    picked: int
    processed: int
    results: list[ItemResult]
