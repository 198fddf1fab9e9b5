"""Metadata analysis: slug, title and description for submitted HTML.

Per submission:

    PREPARE → CALL → (RETRY)* → PARSE → POSTPROCESS → DONE
                                   └─ any terminal failure → DONE(fallback)

CALL/RETRY live in ``llm.openai.MetadataClient``. The model's output is
untrusted: it is decoded strictly, checked field by field, and any
violation routes to the deterministic fallback.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Optional

from .content.text import (
    describe_from_text,
    detect_features,
    extract_tags,
    extract_text,
    reading_time_minutes,
    truncate,
    word_count,
)
from .errors import AnalysisTerminalError
from .llm.openai import MetadataClient
from .llm.prompts import get_prompt
from .slugs import normalize_slug, validate_slug

logger = logging.getLogger("pagedrop.analyzer")

MAX_TITLE_LENGTH = 60
MAX_DESCRIPTION_LENGTH = 160
DEFAULT_TITLE = "Untitled Post"
REQUIRED_FIELDS = ("slug", "title", "description")

# Checked in order; first hit wins.
CONTENT_TYPE_KEYWORDS = (
    ("technical", ("function", "algorithm", "code", "programming", "api", "database")),
    ("tutorial", ("step", "tutorial", "how to", "guide", "walkthrough")),
    ("news", ("breaking", "announced", "report", "according to", "press release")),
    ("creative", ("story", "poem", "creative", "imagine", "once upon")),
)


@dataclass
class AnalysisResult:
    slug: str
    title: str
    description: str
    word_count: int
    reading_time_minutes: int
    content_type: str
    features: dict[str, bool] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    used_fallback: bool = False
    error_kind: Optional[str] = None


def classify_content_type(text: str) -> str:
    """Keyword classifier over plain text: technical/tutorial/news/creative/general."""
    lower = (text or "").lower()
    for content_type, keywords in CONTENT_TYPE_KEYWORDS:
        if any(k in lower for k in keywords):
            return content_type
    return "general"


def parse_metadata(raw: str) -> dict[str, str]:
    """Strictly decode the model's JSON answer.

    The answer must be a JSON object holding non-blank string ``slug``,
    ``title`` and ``description``. Anything else is a terminal failure:
    the service answered, just incorrectly, so retrying won't help.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, TypeError) as e:
        raise AnalysisTerminalError(f"Failed to parse JSON response: {e}") from e

    if not isinstance(data, dict):
        raise AnalysisTerminalError("Response JSON is not an object")

    missing = [f for f in REQUIRED_FIELDS if not isinstance(data.get(f), str) or not data[f].strip()]
    if missing:
        raise AnalysisTerminalError(f"Missing required fields in response: {', '.join(missing)}")

    return {f: data[f].strip() for f in REQUIRED_FIELDS}


class MetadataAnalyzer:
    """Derives publishable metadata for sanitized HTML."""

    def __init__(self, client: Optional[MetadataClient] = None):
        self.client = client

    def _timestamp_slug(self) -> str:
        return f"post-{int(time.time())}"

    def _fallback_slug(self, fallback_title: Optional[str]) -> str:
        if fallback_title and fallback_title.strip():
            return normalize_slug(fallback_title)
        return self._timestamp_slug()

    def _finish(
        self,
        html: str,
        text: str,
        content_type: str,
        slug: str,
        title: str,
        description: str,
        used_fallback: bool = False,
        error_kind: Optional[str] = None,
    ) -> AnalysisResult:
        return AnalysisResult(
            slug=slug,
            title=truncate(title, MAX_TITLE_LENGTH),
            description=truncate(description, MAX_DESCRIPTION_LENGTH),
            word_count=word_count(text),
            reading_time_minutes=reading_time_minutes(text),
            content_type=content_type,
            features=detect_features(html),
            tags=extract_tags(text),
            used_fallback=used_fallback,
            error_kind=error_kind,
        )

    def postprocess(
        self,
        metadata: dict,
        html: str,
        text: str,
        content_type: str,
        fallback_title: Optional[str] = None,
    ) -> AnalysisResult:
        """Clamp and repair parsed metadata.

        An invalid slug is regenerated from the title; over-long title and
        description are truncated; a missing description is synthesized
        from the plain text.
        """
        title = (metadata.get("title") or "").strip() or (fallback_title or DEFAULT_TITLE)
        slug = (metadata.get("slug") or "").strip()
        if not validate_slug(slug).is_valid:
            logger.debug(f"Model slug {slug[:80]!r} invalid, regenerating from title")
            slug = normalize_slug(title or fallback_title)

        description = (metadata.get("description") or "").strip() or describe_from_text(text)
        return self._finish(html, text, content_type, slug, title, description)

    def fallback(
        self,
        html: str,
        text: Optional[str] = None,
        content_type: Optional[str] = None,
        fallback_title: Optional[str] = None,
        error_kind: Optional[str] = None,
    ) -> AnalysisResult:
        """Metadata from local data alone. Never raises."""
        try:
            if text is None:
                text = extract_text(html)
            title = (fallback_title or "").strip() or DEFAULT_TITLE
            return self._finish(
                html,
                text,
                content_type or "general",
                self._fallback_slug(fallback_title),
                title,
                describe_from_text(text),
                used_fallback=True,
                error_kind=error_kind,
            )
        except Exception as e:
            logger.error(f"Fallback analysis degraded to minimal result: {type(e).__name__}: {e}")
            return AnalysisResult(
                slug=self._timestamp_slug(),
                title=DEFAULT_TITLE,
                description=describe_from_text(""),
                word_count=0,
                reading_time_minutes=0,
                content_type=content_type or "general",
                used_fallback=True,
                error_kind=error_kind or type(e).__name__,
            )

    async def analyze_content(
        self,
        html: str,
        fallback_title: Optional[str] = None,
        strict: bool = False,
    ) -> AnalysisResult:
        """Analyze sanitized HTML.

        Args:
            html: Sanitized HTML.
            fallback_title: Caller's title hint (page title, filename stem).
            strict: Re-raise terminal analysis errors instead of falling back.

        Returns:
            AnalysisResult from the model, or from the fallback path.

        Raises:
            AnalysisTerminalError: only when ``strict`` is set.
        """
        # PREPARE
        text = extract_text(html)
        content_type = classify_content_type(text)
        prompt = get_prompt(content_type)

        if self.client is None:
            if strict:
                raise AnalysisTerminalError("No analysis client configured", attempts=0)
            return self.fallback(html, text, content_type, fallback_title, error_kind="no_client")

        try:
            # CALL / RETRY
            raw = await self.client.request_metadata(html, prompt)
            # PARSE
            metadata = parse_metadata(raw)
        except AnalysisTerminalError as e:
            logger.warning(
                f"Analysis failed, using fallback metadata "
                f"(stage=analyze, kind={type(e).__name__}, status={e.status}, "
                f"attempts={getattr(e, 'attempts', '?')}, content_length={len(html)})"
            )
            if strict:
                raise
            return self.fallback(html, text, content_type, fallback_title, error_kind=type(e).__name__)

        # POSTPROCESS
        return self.postprocess(metadata, html, text, content_type, fallback_title)
