"""Pull raw HTML out of an inbound chat message.

Sources, in priority order:
1. A file attachment (downloaded over HTTP, size-capped)
2. A ```html fenced block in the message text
3. The first fenced block of any kind
4. Inline `single-backtick` spans

The first text candidate containing an HTML tag wins. No candidate at
all is not an error; the caller shows usage help instead.
"""

import logging
import os
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from ..errors import ExtractionError
from .sanitizer import contains_html_tag

logger = logging.getLogger("pagedrop.extractor")

DEFAULT_MAX_FILE_SIZE = 25 * 1024 * 1024
DEFAULT_DOWNLOAD_TIMEOUT = 30.0
ALLOWED_EXTENSIONS = (".html", ".htm", ".xhtml")
USER_AGENT = "pagedrop/1.0 (+attachment-fetch)"

SOURCE_ATTACHMENT = "attachment"
SOURCE_CODEBLOCK = "codeblock"
SOURCE_NONE = "none"

_HTML_FENCE_RE = re.compile(r"```html[ \t]*\n?(.*?)```", re.IGNORECASE | re.DOTALL)
_ANY_FENCE_RE = re.compile(r"```[\w+-]*[ \t]*\n?(.*?)```", re.DOTALL)
_INLINE_RE = re.compile(r"`([^`\n]+)`")


@dataclass
class Attachment:
    """Attachment descriptor supplied by the chat platform."""
    url: str
    name: str
    size: int = 0
    content_type: Optional[str] = None


@dataclass
class InboundMessage:
    """A chat message as seen by the submission pipeline."""
    author_id: str
    author_name: str
    text: str = ""
    attachment: Optional[Attachment] = None


@dataclass
class ExtractedContent:
    content: str
    source: str               # 'attachment', 'codeblock', 'none'
    filename: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.source != SOURCE_NONE


def format_file_size(size: int) -> str:
    """Human-readable byte count (``25 MB``, ``1.5 KB``)."""
    if size < 1024:
        return f"{size} bytes"
    value = float(size)
    for unit in ("KB", "MB", "GB"):
        value /= 1024
        if value < 1024 or unit == "GB":
            break
    return f"{value:.1f}".rstrip("0").rstrip(".") + f" {unit}"


def validate_attachment(attachment: Attachment, max_file_size: int = DEFAULT_MAX_FILE_SIZE) -> list[str]:
    """Check an attachment descriptor before downloading it."""
    errors = []
    name = (attachment.name or "").strip()
    if not name:
        errors.append("File has no name")
    if not attachment.url:
        errors.append("File URL is not accessible")
    if attachment.size and attachment.size > max_file_size:
        errors.append(
            f"File is too large ({format_file_size(attachment.size)}). "
            f"Maximum size is {format_file_size(max_file_size)}"
        )
    ext = os.path.splitext(name.lower())[1]
    if name and ext not in ALLOWED_EXTENSIONS:
        errors.append(f"File type not supported ({ext or 'no extension'}). Allowed types: {', '.join(ALLOWED_EXTENSIONS)}")
    return errors


async def download_attachment(
    attachment: Attachment,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> bytes:
    """Download attachment bytes, aborting as soon as the ceiling is crossed.

    Raises:
        ExtractionError: network failure, timeout, HTTP error or over-size.
    """
    too_large = f"File is too large (maximum {format_file_size(max_file_size)})"
    try:
        async with httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": USER_AGENT},
            transport=transport,
        ) as client:
            async with client.stream("GET", attachment.url) as resp:
                if resp.status_code >= 400:
                    raise ExtractionError(f"Failed to download file: HTTP {resp.status_code}")

                declared = resp.headers.get("content-length", "")
                if declared.isdigit() and int(declared) > max_file_size:
                    raise ExtractionError(too_large)

                chunks: list[bytes] = []
                total = 0
                async for chunk in resp.aiter_bytes():
                    total += len(chunk)
                    if total > max_file_size:
                        raise ExtractionError(too_large)
                    chunks.append(chunk)
                return b"".join(chunks)
    except ExtractionError:
        raise
    except httpx.TimeoutException as e:
        raise ExtractionError("Failed to download file: request timed out") from e
    except httpx.HTTPError as e:
        raise ExtractionError("Failed to download file: network error") from e


async def extract_from_attachment(
    attachment: Attachment,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ExtractedContent:
    errors = validate_attachment(attachment, max_file_size)
    if errors:
        raise ExtractionError(", ".join(errors))

    data = await download_attachment(attachment, max_file_size, timeout, transport)
    content = data.decode("utf-8-sig", errors="replace").strip()

    if not content:
        raise ExtractionError("Downloaded file is empty")
    if not contains_html_tag(content):
        raise ExtractionError("File does not contain valid HTML content")

    logger.info(f"Attachment downloaded: {attachment.name} ({len(data)} bytes)")
    return ExtractedContent(content=content, source=SOURCE_ATTACHMENT, filename=attachment.name)


def extract_from_text(text: str) -> Optional[str]:
    """Find HTML in fenced or inline code within message text."""
    if not text:
        return None

    candidates: list[str] = []
    html_fence = _HTML_FENCE_RE.search(text)
    if html_fence:
        candidates.append(html_fence.group(1))
    any_fence = _ANY_FENCE_RE.search(text)
    if any_fence:
        candidates.append(any_fence.group(1))

    without_fences = _ANY_FENCE_RE.sub(" ", text)
    candidates.extend(m.group(1) for m in _INLINE_RE.finditer(without_fences))

    for candidate in candidates:
        candidate = candidate.strip()
        if contains_html_tag(candidate):
            return candidate
    return None


async def extract_content(
    message: InboundMessage,
    max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    timeout: float = DEFAULT_DOWNLOAD_TIMEOUT,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> ExtractedContent:
    """Extract raw HTML from a message.

    Returns:
        ExtractedContent with source 'attachment' or 'codeblock', or
        source 'none' (empty content) when the message carries nothing usable.

    Raises:
        ExtractionError: the attachment exists but could not be used.
    """
    if message.attachment is not None:
        return await extract_from_attachment(message.attachment, max_file_size, timeout, transport)

    content = extract_from_text(message.text or "")
    if content:
        return ExtractedContent(content=content, source=SOURCE_CODEBLOCK)

    return ExtractedContent(content="", source=SOURCE_NONE)
