"""Exception hierarchy for the submission pipeline.

Errors are classified by type, not by string matching. The submission
pipeline is the only place that turns them into user-facing text.
"""

from typing import Optional


class PagedropError(Exception):
    """Base class for all pipeline errors."""
    pass


class ExtractionError(PagedropError):
    """No usable content could be pulled from the message (download failed, bad file)."""
    pass


class ValidationError(PagedropError):
    """Content is fundamentally unusable (too short/long, dangerous after sanitizing)."""

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.errors = errors or []


# ════════════════════════════════════════════════════════
# Analysis errors: transient may be retried, terminal never.
# ════════════════════════════════════════════════════════

class AnalysisError(PagedropError):
    """Base class for language-model analysis failures."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AnalysisTransientError(AnalysisError):
    """429 / 502 / 503 / 504 or a network-level failure; a retry may succeed."""
    pass


class AnalysisTerminalError(AnalysisError):
    """Bad credentials, malformed response, or retries exhausted."""

    def __init__(self, message: str, status: Optional[int] = None, attempts: int = 1):
        super().__init__(message, status)
        self.attempts = attempts


# ════════════════════════════════════════════════════════
# Store errors
# ════════════════════════════════════════════════════════

class StoreError(PagedropError):
    """Generic persistence failure."""
    pass


class DuplicateSlugError(StoreError):
    """A post with this slug already exists."""

    def __init__(self, slug: str):
        super().__init__(f"Post with slug '{slug}' already exists")
        self.slug = slug
