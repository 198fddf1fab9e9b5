"""Submission pipeline: chat message in, outcome out.

    extract → sanitize → validate → analyze → resolve slug → create post

Every failure below this boundary is caught here and mapped to one of
three outcomes (help / rejected / success). Channels only ever see a
``SubmissionOutcome``; nothing raised downstream reaches the user.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Optional

import httpx

from .analyzer import AnalysisResult, MetadataAnalyzer
from .communication.errors import classify_error
from .config import PagedropSettings
from .content.extractor import InboundMessage, extract_content
from .content.sanitizer import sanitize_html, validate_html_content
from .content.text import extract_html_title
from .db.posts import Post, create_post, slug_exists
from .errors import DuplicateSlugError, ExtractionError, ValidationError
from .llm.openai import MetadataClient
from .ratelimit import RateLimiter, get_rate_limiter
from .slugs import resolve_unique_slug

logger = logging.getLogger("pagedrop.submission")

OUTCOME_HELP = "help"
OUTCOME_REJECTED = "rejected"
OUTCOME_SUCCESS = "success"

HELP_TEXT = """How to submit a page:

1. Attach an .html file with the caption !submit
2. Or paste HTML in a code block:
   !submit ```html
   <h1>My page</h1>
   ```
3. Or inline: !submit `<p>Hello</p>`

Scripts, event handlers and embedded frames are removed before publishing."""

# Errors the user caused and can fix; logged without a traceback
_EXPECTED_ERRORS = (ExtractionError, ValidationError, DuplicateSlugError)


@dataclass
class SubmissionOutcome:
    kind: str  # "help" | "rejected" | "success"
    detail: dict = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.kind == OUTCOME_SUCCESS


def title_hint(html: str, filename: Optional[str] = None) -> Optional[str]:
    """Caller-side title guess: page title/h1, else the attachment filename stem."""
    title = extract_html_title(html)
    if title:
        return title
    if filename:
        stem = os.path.splitext(os.path.basename(filename))[0]
        stem = stem.replace("_", " ").replace("-", " ").strip()
        if stem:
            return stem
    return None


class SubmissionPipeline:
    """Runs one chat submission end to end."""

    def __init__(
        self,
        settings: PagedropSettings,
        analyzer: Optional[MetadataAnalyzer] = None,
        limiter: Optional[RateLimiter] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.analyzer = analyzer or MetadataAnalyzer(self._build_client(settings))
        self.limiter = limiter or get_rate_limiter()
        self.transport = transport

    @staticmethod
    def _build_client(settings: PagedropSettings) -> Optional[MetadataClient]:
        if not settings.llm_api_key:
            return None
        return MetadataClient(
            api_key=settings.llm_api_key,
            model=settings.llm_model,
            base_url=settings.llm_base_url,
            timeout=settings.llm_timeout,
            max_attempts=settings.llm_max_attempts,
            base_delay=settings.llm_retry_base_delay,
        )

    def post_url(self, slug: str) -> str:
        return f"{self.settings.base_url.rstrip('/')}/{slug}"

    async def submit(self, message: InboundMessage) -> SubmissionOutcome:
        """Process a submission. Never raises."""
        user_id = str(message.author_id)

        allowed, wait_msg = self.limiter.check(user_id)
        if not allowed:
            return SubmissionOutcome(OUTCOME_REJECTED, {"message": wait_msg, "error_kind": "RateLimited"})

        stage = "extract"
        content_length = 0
        try:
            extracted = await extract_content(
                message,
                max_file_size=self.settings.max_file_size,
                timeout=self.settings.download_timeout,
                transport=self.transport,
            )
            if not extracted.found:
                logger.debug(f"No HTML in message from {user_id}, sending usage help")
                return SubmissionOutcome(OUTCOME_HELP, {"message": HELP_TEXT})
            content_length = len(extracted.content)

            # <head> does not survive sanitizing, so the title is read first
            hint = title_hint(extracted.content, extracted.filename)

            stage = "sanitize"
            clean = sanitize_html(extracted.content)

            stage = "validate"
            problems = validate_html_content(clean, self.settings.max_content_length)
            if problems:
                raise ValidationError("Content validation failed", problems)

            stage = "analyze"
            result = await self.analyzer.analyze_content(clean, fallback_title=hint)

            stage = "store"
            post = await self._store(result, clean, message)

        except Exception as e:
            context = (
                f"stage={stage}, kind={type(e).__name__}, user={user_id}, "
                f"content_length={content_length}"
            )
            if isinstance(e, _EXPECTED_ERRORS):
                logger.info(f"Submission rejected ({context}): {e}")
            else:
                logger.error(f"Submission failed ({context})", exc_info=True)
            return SubmissionOutcome(OUTCOME_REJECTED, {
                "message": classify_error(e),
                "stage": stage,
                "error_kind": type(e).__name__,
            })

        logger.info(
            f"Post published: slug={post.slug} user={user_id} source={extracted.source} "
            f"type={result.content_type} fallback={result.used_fallback}"
        )
        return SubmissionOutcome(OUTCOME_SUCCESS, {
            "slug": post.slug,
            "url": self.post_url(post.slug),
            "title": post.title,
            "description": post.description,
            "word_count": result.word_count,
            "reading_time_minutes": result.reading_time_minutes,
            "content_type": result.content_type,
            "features": result.features,
            "tags": result.tags,
            "used_fallback": result.used_fallback,
            "post": post,
        })

    async def _store(self, result: AnalysisResult, html: str, message: InboundMessage) -> Post:
        """Claim a unique slug and create the post.

        A DuplicateSlugError from the insert means another submission
        claimed the slug after our check; slug resolution is retried once.
        """
        fields = {
            "title": result.title,
            "description": result.description,
            "html_content": html,
            "author_id": str(message.author_id),
            "author_name": message.author_name,
        }

        slug = await resolve_unique_slug(result.slug, slug_exists)
        try:
            return await create_post(slug=slug, **fields)
        except DuplicateSlugError as e:
            logger.info(f"Slug '{e.slug}' was claimed concurrently, resolving again")

        slug = await resolve_unique_slug(result.slug, slug_exists)
        return await create_post(slug=slug, **fields)
