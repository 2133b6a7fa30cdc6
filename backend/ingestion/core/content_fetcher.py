from __future__ import annotations

import logging
import re
import time
from typing import Optional

import httpx
from bs4 import BeautifulSoup, Comment

from ingestion.core.errors import FetchError, truncate_message

logger = logging.getLogger("cockpit.ingestion.content")


USER_AGENT = "Mozilla/5.0 (compatible; DyersCockpitBot/1.0; +https://dyerempire.com)"
MAX_CONTENT_CHARS = 12_000
# Raw body ceiling before extraction; markup is typically several times the text.
MAX_BODY_CHARS = 2_000_000

_WS_RE = re.compile(r"\s+")
_MARKUP_TYPES = ("text/html", "application/xhtml")


def strip_html(html: str) -> str:
    """Drop script/style/noscript/comments and tags, collapse whitespace."""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["script", "style", "noscript", "template"]):
        tag.decompose()
    for comment in soup.find_all(string=lambda s: isinstance(s, Comment)):
        comment.extract()
    text = soup.get_text(separator=" ")
    return _WS_RE.sub(" ", text).strip()


def is_markup(content_type: Optional[str]) -> bool:
    ct = (content_type or "").lower()
    return any(t in ct for t in _MARKUP_TYPES)


class ContentFetcher:
    """Fetch a url's content with bounded connect/header and body-read budgets.

    - Redirects are followed.
    - Non-2xx, transport errors and timeouts all surface as FetchError, which the
      pipeline records per item.
    - Retained text is capped at `max_chars`.
    """

    def __init__(
        self,
        *,
        timeout_seconds: float = 20.0,
        body_timeout_seconds: Optional[float] = None,
        max_chars: int = MAX_CONTENT_CHARS,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self.body_timeout_seconds = body_timeout_seconds or timeout_seconds
        self.max_chars = max_chars
        self._transport = transport

    def _client(self) -> httpx.Client:
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout_seconds, connect=self.timeout_seconds),
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=self._transport,
        )

    def fetch(self, url: str) -> str:
        start = time.monotonic()
        try:
            with self._client() as client, client.stream("GET", url) as resp:
                if not resp.is_success:
                    raise FetchError(f"Fetch failed {resp.status_code}")
                content_type = resp.headers.get("content-type", "")
                body = self._read_body(resp)
        except httpx.TimeoutException as e:
            raise FetchError(f"Fetch timed out: {type(e).__name__}") from e
        except httpx.HTTPError as e:
            raise FetchError(truncate_message(f"Fetch error: {type(e).__name__}: {e}", 400)) from e

        text = strip_html(body) if is_markup(content_type) else body
        text = text[: self.max_chars]
        logger.info(
            "fetched url chars=%d markup=%s duration_ms=%d",
            len(text),
            is_markup(content_type),
            int((time.monotonic() - start) * 1000),
        )
        return text

    def _read_body(self, resp: httpx.Response) -> str:
        # Body budget is independent of the header phase.
        deadline = time.monotonic() + self.body_timeout_seconds
        parts: list[str] = []
        size = 0
        for chunk in resp.iter_text():
            parts.append(chunk)
            size += len(chunk)
            if size >= MAX_BODY_CHARS:
                break
            if time.monotonic() > deadline:
                raise FetchError(f"Fetch body exceeded {self.body_timeout_seconds:.0f}s")
        return "".join(parts)
