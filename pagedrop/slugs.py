"""Slug generation and validation for post addresses.

Slugs are the public address of a post: ``[a-z0-9-]``, 3–80 chars,
alphanumeric at both ends, no consecutive hyphens, not a reserved word.
``normalize_slug`` always returns a slug that passes ``validate_slug``.
"""

import inspect
import logging
import re
import secrets
import string
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Optional, Union

logger = logging.getLogger("pagedrop.slugs")

MIN_SLUG_LENGTH = 3
MAX_SLUG_LENGTH = 80
MAX_UNIQUE_ATTEMPTS = 100

# Folding table for Latin-1 letters. Explicit so results never depend on locale.
DIACRITICS_MAP = {
    "À": "A", "Á": "A", "Â": "A", "Ã": "A", "Ä": "A", "Å": "A", "Æ": "AE",
    "Ç": "C", "È": "E", "É": "E", "Ê": "E", "Ë": "E", "Ì": "I", "Í": "I",
    "Î": "I", "Ï": "I", "Ð": "D", "Ñ": "N", "Ò": "O", "Ó": "O", "Ô": "O",
    "Õ": "O", "Ö": "O", "Ø": "O", "Ù": "U", "Ú": "U", "Û": "U", "Ü": "U",
    "Ý": "Y", "Þ": "TH", "ß": "ss", "à": "a", "á": "a", "â": "a", "ã": "a",
    "ä": "a", "å": "a", "æ": "ae", "ç": "c", "è": "e", "é": "e", "ê": "e",
    "ë": "e", "ì": "i", "í": "i", "î": "i", "ï": "i", "ð": "d", "ñ": "n",
    "ò": "o", "ó": "o", "ô": "o", "õ": "o", "ö": "o", "ø": "o", "ù": "u",
    "ú": "u", "û": "u", "ü": "u", "ý": "y", "þ": "th", "ÿ": "y",
    "Œ": "OE", "œ": "oe", "Š": "S", "š": "s", "Ž": "Z", "ž": "z", "Ÿ": "Y",
}

# Symbols worth keeping as words when cleaning user-typed slugs
SYMBOL_REPLACEMENTS = {
    "&": " and ",
    "@": " at ",
    "#": " hash ",
    "%": " percent ",
    "$": " dollar ",
    "+": " plus ",
    "=": " equals ",
}

RESERVED_SLUGS = frozenset({
    # System routes
    "api", "admin", "auth", "login", "logout", "register", "dashboard",
    "static", "assets", "public", "images", "css", "js", "robots.txt",
    "sitemap.xml", "favicon.ico", "manifest.json",
    # Application routes
    "search", "about", "contact", "help", "privacy", "terms", "stats",
    "health", "status", "ping", "metrics", "sitemap", "feed", "rss",
    # Common reserved words
    "www", "mail", "ftp", "localhost", "test", "staging", "dev", "demo",
    "blog", "news", "posts", "post", "page", "pages", "user", "users",
    "profile", "settings", "config", "system", "internal", "external",
    # HTTP methods and API terms
    "get", "put", "patch", "delete", "head", "options", "trace",
    "connect", "webhook", "callback", "oauth", "token", "refresh",
    # Database / technical terms
    "db", "database", "sql", "query", "index", "cache", "session",
    "cookie", "cors", "csrf", "xss", "injection", "exploit",
    # File extensions
    "html", "htm", "xml", "json", "txt", "pdf", "jpg", "jpeg", "png",
    "gif", "svg", "ico", "php", "asp", "jsp",
    # Platform terms
    "submit", "bot", "telegram", "discord", "pagedrop", "new", "edit",
    "upload", "uploads", "raw", "embed",
})

_TAG_RE = re.compile(r"<[^>]*>")
_SEPARATOR_RE = re.compile(r"[\s_]+")
_DISALLOWED_RE = re.compile(r"[^a-z0-9\-.~]")
_HYPHEN_RUN_RE = re.compile(r"-{2,}")
_EDGE_RE = re.compile(r"^[^a-z0-9]+|[^a-z0-9]+$")
_VALID_CHARS_RE = re.compile(r"^[a-z0-9-]+$")
_ALNUM = string.ascii_lowercase + string.digits


@dataclass
class SlugValidation:
    """Structured result of ``validate_slug``."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def random_suffix(length: int = 6) -> str:
    """Random lowercase alphanumeric string."""
    return "".join(secrets.choice(_ALNUM) for _ in range(length))


def strip_diacritics(text: str) -> str:
    """Fold accented Latin letters to ASCII using ``DIACRITICS_MAP``."""
    return "".join(DIACRITICS_MAP.get(ch, ch) for ch in text)


def is_reserved_slug(slug: str) -> bool:
    return slug.lower() in RESERVED_SLUGS


def normalize_slug(
    text: Optional[str],
    max_length: int = MAX_SLUG_LENGTH,
    replacements: Optional[dict[str, str]] = None,
) -> str:
    """Convert arbitrary text into a URL-safe slug.

    Args:
        text: Source text (a title, a filename, user input). May contain HTML.
        max_length: Upper bound on slug length (clamped to 3..80).
        replacements: Literal substrings replaced before normalizing,
            e.g. ``SYMBOL_REPLACEMENTS``.

    Returns:
        A slug that always passes ``validate_slug``. When nothing usable
        survives, ``post-<random6>`` is returned.
    """
    max_length = min(max(max_length, MIN_SLUG_LENGTH), MAX_SLUG_LENGTH)
    slug = text if isinstance(text, str) else ""

    for find, replace in (replacements or {}).items():
        slug = slug.replace(find, replace)

    slug = _TAG_RE.sub("", slug)
    slug = strip_diacritics(slug)
    slug = slug.lower()
    slug = _SEPARATOR_RE.sub("-", slug)
    slug = _DISALLOWED_RE.sub("", slug)
    # Dots and tildes survive the character filter but separate words in a post address
    slug = slug.replace(".", "-").replace("~", "-")
    slug = _HYPHEN_RUN_RE.sub("-", slug)
    slug = _EDGE_RE.sub("", slug)

    if len(slug) > max_length:
        slug = slug[:max_length]
        # Don't cut a word in half when a boundary sits in the last 30%
        last_dash = slug.rfind("-")
        if last_dash > max_length * 0.7:
            slug = slug[:last_dash]
        slug = _EDGE_RE.sub("", slug)

    if len(slug) < MIN_SLUG_LENGTH:
        return f"post-{random_suffix(6)}"

    if is_reserved_slug(slug):
        slug = f"{slug}-post"

    return slug


def validate_slug(slug: Optional[str]) -> SlugValidation:
    """Check a candidate slug against the post address rules."""
    errors: list[str] = []

    if not slug or not isinstance(slug, str):
        return SlugValidation(False, ["Slug must be a non-empty string"])

    if len(slug) < MIN_SLUG_LENGTH:
        errors.append(f"Slug must be at least {MIN_SLUG_LENGTH} characters long")
    if len(slug) > MAX_SLUG_LENGTH:
        errors.append(f"Slug must be no more than {MAX_SLUG_LENGTH} characters long")
    if not _VALID_CHARS_RE.match(slug):
        errors.append("Slug contains invalid characters (only lowercase letters, numbers, and hyphens allowed)")
    if not slug[0].isascii() or not slug[0].isalnum():
        errors.append("Slug must start with a letter or number")
    if not slug[-1].isascii() or not slug[-1].isalnum():
        errors.append("Slug must end with a letter or number")
    if "--" in slug:
        errors.append("Slug cannot contain consecutive hyphens")
    if is_reserved_slug(slug):
        errors.append("Slug cannot be a reserved word")

    return SlugValidation(not errors, errors)


def _with_suffix(base: str, suffix: str) -> str:
    """Append ``-suffix`` while keeping the result within the length cap."""
    room = MAX_SLUG_LENGTH - len(suffix) - 1
    return f"{base[:room].rstrip('-')}-{suffix}"


ExistsFn = Callable[[str], Union[bool, Awaitable[bool]]]


async def resolve_unique_slug(
    base: str,
    exists_fn: ExistsFn,
    max_attempts: int = MAX_UNIQUE_ATTEMPTS,
) -> str:
    """Return ``base`` if free, else ``base-1``, ``base-2``, ...

    Args:
        base: Desired slug.
        exists_fn: Predicate telling whether a slug is taken. May be sync or async.
        max_attempts: Numbered candidates to try before giving up on counting.

    Returns:
        The first free candidate, or ``base-<random8>`` once attempts are exhausted.
    """

    async def _exists(candidate: str) -> bool:
        result = exists_fn(candidate)
        if inspect.isawaitable(result):
            result = await result
        return bool(result)

    if not await _exists(base):
        return base

    for counter in range(1, max_attempts + 1):
        candidate = _with_suffix(base, str(counter))
        if not await _exists(candidate):
            return candidate

    fallback = _with_suffix(base, random_suffix(8))
    logger.warning(f"Slug '{base}' exhausted {max_attempts} numbered candidates, using {fallback}")
    return fallback
