"""Channel-agnostic error classification for user-facing messages."""

import asyncio

import asyncpg
import httpx

from ..errors import (
    AnalysisError,
    DuplicateSlugError,
    ExtractionError,
    StoreError,
    ValidationError,
)


def classify_error(e: Exception) -> str:
    """Classify any exception into a user-friendly message.

    Works for all channels (Telegram, CLI). Returns a short string
    suitable for sending directly to the user. Never includes stack
    traces or internal details beyond the exception type name.
    """
    # 1-2: Content problems the user can fix
    if isinstance(e, ValidationError):
        if e.errors:
            return f"Content validation failed: {', '.join(e.errors)}"
        return f"Content validation failed: {e}"
    if isinstance(e, ExtractionError):
        return f"Could not read your HTML: {e}"

    # 3: Slug collision that survived re-resolution
    if isinstance(e, DuplicateSlugError):
        return "A post with that address was just created. Please try again."

    # 4: Analysis errors only surface when fallback was disabled
    if isinstance(e, AnalysisError):
        return "Metadata analysis failed. Please try again later."

    # 5-6: Database errors
    if isinstance(e, StoreError):
        return "Database error while saving your post. Please try again later."
    if isinstance(e, asyncpg.InterfaceError):
        return "Database connection pool exhausted. Please try again in a moment."
    if isinstance(e, asyncpg.PostgresError):
        return "Database error. Please try again later."

    # 7-8: Network / timeout errors
    if isinstance(e, httpx.ConnectError):
        return "Cannot reach the file host. Please check the attachment and try again."
    if isinstance(e, (httpx.TimeoutException, asyncio.TimeoutError)):
        return "Request timed out. Please try again."

    # 9: Fallback, type name only
    type_name = type(e).__name__
    return f"Something went wrong ({type_name}). Check logs for details."
