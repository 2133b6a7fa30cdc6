"""Schemas for the brief collaborator (daily digest poster)."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class BriefItem(BaseModel):
    id: int
    raw_item_id: int
    vertical: str
    url: str
    title: Optional[str] = None
    summary_1: str
    bullets: list[str]
    why_it_matters: Optional[str] = None
    tags: list[str]
    entities: Union[dict[str, Any], list[Any]] = Field(default_factory=dict)
    relevance_score: int = Field(ge=0, le=100)
    visibility: str
    model: str
    created_at: datetime


class UnpostedResponse(BaseModel):
    ok: bool = True
    vertical: str
    limit: int
    items: list[BriefItem]


class MarkPostedRequest(BaseModel):
    ids: list[Any] = Field(default_factory=list)

    model_config = ConfigDict(extra="ignore")


class MarkPostedResponse(BaseModel):
    ok: bool = True
    updated: int = Field(ge=0)
