"""AI Summarizer - structured news analysis via an OpenAI-compatible Responses API.

The instruction contract is fixed: title, one-sentence summary, exactly 5 bullets,
why-it-matters, tags from the closed vocabulary, entities, relevance score and
visibility. The call returns the raw JSON object; shape checks and normalization
live in `ingestion.core.normalize` so a malformed result is a ValidationError,
while transport/status/parse failures are ExternalServiceError.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import httpx

from app.core.config import DEFAULT_MODEL, DEFAULT_OPENAI_BASE_URL, Settings
from ingestion.core.errors import ExternalServiceError, truncate_message
from ingestion.core.normalize import TAG_VOCABULARY

logger = logging.getLogger("cockpit.ingestion.ai")

MAX_PROMPT_CONTENT_CHARS = 12_000
MAX_ERROR_BODY_CHARS = 400

_FENCED_JSON_RE = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL)
_BARE_JSON_RE = re.compile(r"\{.*\}", re.DOTALL)


def build_prompt(content: str, url: str, vertical: str) -> str:
    tags = ", ".join(TAG_VOCABULARY)
    return f"""You are a news analyst for {(vertical or "").upper()} markets.

Return strict JSON with keys:
title (string or null),
summary_1 (string, 1 sentence),
bullets (array of exactly 5 short bullets),
why_it_matters (string, 1-2 sentences),
tags (array of supply-chain tags from: {tags}),
entities (object or array of the companies, people, places and materials mentioned),
relevance_score (integer 0-100),
visibility (one of: public, pro, internal)

Article URL: {url}

Content:
{(content or "")[:MAX_PROMPT_CONTENT_CHARS]}"""


def _decode_object(text: str) -> Optional[dict[str, Any]]:
    """Parse a JSON object from model text, tolerating fenced or wrapped output."""
    text = (text or "").strip()
    if not text:
        return None
    candidates = [text]
    fenced = _FENCED_JSON_RE.search(text)
    if fenced:
        candidates.append(fenced.group(1))
    bare = _BARE_JSON_RE.search(text)
    if bare:
        candidates.append(bare.group(0))
    for c in candidates:
        try:
            data = json.loads(c)
        except ValueError:
            continue
        if isinstance(data, dict):
            return data
    return None


def _output_texts(data: dict[str, Any]) -> list[str]:
    texts: list[str] = []
    if isinstance(data.get("output_text"), str):
        texts.append(data["output_text"])
    output = data.get("output")
    if isinstance(output, list):
        joined = "".join(
            c.get("text", "")
            for o in output
            if isinstance(o, dict)
            for c in (o.get("content") or [])
            if isinstance(c, dict) and isinstance(c.get("text"), str)
        )
        if joined:
            texts.append(joined)
    # Chat-completions shaped payloads from compatible gateways.
    choices = data.get("choices")
    if isinstance(choices, list):
        for ch in choices:
            msg = ch.get("message") if isinstance(ch, dict) else None
            if isinstance(msg, dict) and isinstance(msg.get("content"), str):
                texts.append(msg["content"])
    return texts


def parse_model_payload(data: Any) -> dict[str, Any]:
    """Extract the result object from any of the supported response encodings."""
    if not isinstance(data, dict):
        raise ExternalServiceError("Could not parse model JSON")
    if isinstance(data.get("output_json"), dict):
        return data["output_json"]
    for text in _output_texts(data):
        obj = _decode_object(text)
        if obj is not None:
            return obj
    raise ExternalServiceError("Could not parse model JSON")


class ResponsesSummarizer:
    """Summarizer backed by the `/responses` endpoint."""

    def __init__(
        self,
        api_key: str,
        model_name: str = DEFAULT_MODEL,
        *,
        base_url: str = DEFAULT_OPENAI_BASE_URL,
        timeout_seconds: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        self.model_name = model_name
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResponsesSummarizer":
        return cls(
            settings.openai_api_key,
            settings.openai_model,
            base_url=settings.openai_base_url,
            timeout_seconds=settings.model_timeout_seconds,
        )

    def analyze(self, content: str, url: str, vertical: str) -> dict[str, Any]:
        body = {
            "model": self.model_name,
            "input": build_prompt(content, url, vertical),
            "text": {"format": {"type": "json_object"}},
        }
        try:
            with httpx.Client(timeout=self.timeout_seconds, transport=self._transport) as client:
                resp = client.post(
                    f"{self.base_url}/responses",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json=body,
                )
        except httpx.TimeoutException as e:
            raise ExternalServiceError(f"Model call timed out after {self.timeout_seconds:.0f}s") from e
        except httpx.HTTPError as e:
            raise ExternalServiceError(truncate_message(f"Model call failed: {type(e).__name__}: {e}", 400)) from e

        if not resp.is_success:
            raise ExternalServiceError(
                f"Model call failed {resp.status_code}: {resp.text[:MAX_ERROR_BODY_CHARS]}"
            )

        try:
            data = resp.json()
        except ValueError as e:
            raise ExternalServiceError("Could not parse model JSON") from e

        result = parse_model_payload(data)
        logger.debug("model %s returned keys=%s", self.model_name, sorted(result))
        return result
