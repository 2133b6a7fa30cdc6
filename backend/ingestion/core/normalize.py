"""Validation and normalization of model output.

Hard failures (ValidationError, nothing persisted):
- summary empty after trimming
- bullets not reducing to exactly 5 non-empty entries after trimming and
  leading-marker stripping

Soft normalization (never fails):
- tags: case-insensitive match on the closed vocabulary, unmatched dropped,
  deduped, capped at 8, default ["Other"]
- relevance_score: coerced to int, clamped to [0, 100]; junk -> 0
- visibility: closed enum, default "public"
- title / why_it_matters: trimmed, empty -> None
- entities: mapping or sequence passed through, anything else -> {}
"""

from __future__ import annotations

import math
import re
from typing import Any, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic import ValidationError as PydanticValidationError

from app.models.processed_item import Visibility
from ingestion.core.errors import ValidationError, truncate_message


TAG_VOCABULARY: tuple[str, ...] = (
    "Mining",
    "Concentrate",
    "MREC",
    "Separation",
    "Metal",
    "Magnet",
    "Recycling",
    "Policy",
    "Finance",
    "Other",
)
DEFAULT_TAG = "Other"
MAX_TAGS = 8
BULLET_COUNT = 5

_TAG_LOOKUP = {t.lower(): t for t in TAG_VOCABULARY}
_BULLET_MARKER_RE = re.compile(r"^(?:•\s*|(?:[-*–—·]|\d{1,2}[.)])(?:\s+|$))")


def strip_bullet_marker(text: str) -> str:
    return _BULLET_MARKER_RE.sub("", text.strip(), count=1).strip()


def normalize_tags(value: Any) -> list[str]:
    if isinstance(value, str):
        value = value.split(",")
    if not isinstance(value, (list, tuple)):
        return [DEFAULT_TAG]
    out: list[str] = []
    for item in value:
        if not isinstance(item, (str, int, float)):
            continue
        tag = _TAG_LOOKUP.get(str(item).strip().lower())
        if tag and tag not in out:
            out.append(tag)
        if len(out) >= MAX_TAGS:
            break
    return out or [DEFAULT_TAG]


def coerce_score(value: Any) -> int:
    """Integer relevance in [0, 100]; non-numeric, NaN and inf map to 0."""
    if isinstance(value, bool):
        n: float = int(value)
    elif isinstance(value, (int, float)):
        n = value
    elif isinstance(value, str):
        s = value.strip()
        try:
            n = int(s)
        except ValueError:
            try:
                n = float(s)
            except ValueError:
                return 0
    else:
        return 0
    if isinstance(n, float):
        if math.isnan(n) or math.isinf(n):
            return 0
        n = int(n)
    return max(0, min(100, int(n)))


def _optional_text(value: Any) -> Optional[str]:
    if value is None or isinstance(value, (dict, list)):
        return None
    s = str(value).strip()
    return s or None


class EnrichmentResult(BaseModel):
    """Normalized model output, ready for ProcessedItem persistence."""

    title: Optional[str] = None
    summary: str
    bullets: list[str]
    why_it_matters: Optional[str] = None
    tags: list[str] = Field(default_factory=lambda: [DEFAULT_TAG])
    entities: Union[dict[str, Any], list[Any]] = Field(default_factory=dict)
    relevance_score: int = 0
    visibility: Visibility = Visibility.PUBLIC

    model_config = ConfigDict(frozen=True, extra="ignore")

    @model_validator(mode="before")
    @classmethod
    def _map_keys(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            raise ValueError("Model output is not a JSON object")
        data = dict(data)
        if "summary_1" in data:
            data["summary"] = data.pop("summary_1")
        data.setdefault("summary", "")
        data.setdefault("bullets", None)
        return data

    @field_validator("summary", mode="before")
    @classmethod
    def _summary(cls, v: Any) -> str:
        s = _optional_text(v)
        if not s:
            raise ValueError("Model output missing summary_1")
        return s

    @field_validator("bullets", mode="before")
    @classmethod
    def _bullets(cls, v: Any) -> list[str]:
        if not isinstance(v, (list, tuple)):
            raise ValueError("Model output bullets must be an array")
        cleaned = []
        for b in v:
            if not isinstance(b, (str, int, float)) or isinstance(b, bool):
                continue
            s = strip_bullet_marker(str(b))
            if s:
                cleaned.append(s)
        if len(cleaned) != BULLET_COUNT:
            raise ValueError(f"Model output bullets must be exactly {BULLET_COUNT} (got {len(cleaned)})")
        return cleaned

    @field_validator("title", "why_it_matters", mode="before")
    @classmethod
    def _trimmed(cls, v: Any) -> Optional[str]:
        return _optional_text(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, v: Any) -> list[str]:
        return normalize_tags(v)

    @field_validator("entities", mode="before")
    @classmethod
    def _entities(cls, v: Any) -> Union[dict[str, Any], list[Any]]:
        if isinstance(v, dict):
            return v
        if isinstance(v, (list, tuple)):
            return list(v)
        return {}

    @field_validator("relevance_score", mode="before")
    @classmethod
    def _score(cls, v: Any) -> int:
        return coerce_score(v)

    @field_validator("visibility", mode="before")
    @classmethod
    def _visibility(cls, v: Any) -> Visibility:
        try:
            return Visibility(str(v).strip().lower())
        except ValueError:
            return Visibility.PUBLIC


def normalize_model_output(raw: Any) -> EnrichmentResult:
    """Validate/normalize a raw model object; shape violations raise ValidationError."""
    try:
        return EnrichmentResult.model_validate(raw)
    except PydanticValidationError as e:
        errors = e.errors()
        msg = errors[0].get("msg", str(e)) if errors else str(e)
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, "):]
        raise ValidationError(truncate_message(msg, 400)) from e
