"""HTML sanitization: allow-list based, hardcoded.

Everything that reaches the language model or the post store passes
through ``sanitize_html``. Only the tags and attributes listed here
survive; everything else is removed together with its content, except
for a handful of inert containers whose text is kept.
"""

import logging
import re
from typing import Optional

from bs4 import BeautifulSoup, CData, Comment, Declaration, Doctype, ProcessingInstruction, Tag

logger = logging.getLogger("pagedrop.sanitizer")

# ============================================================
# ALLOW LISTS
# ============================================================

ALLOWED_TAGS = frozenset({
    # Text content
    "p", "br", "strong", "b", "em", "i", "u", "span", "div",
    # Headers
    "h1", "h2", "h3", "h4", "h5", "h6",
    # Lists
    "ul", "ol", "li", "dl", "dt", "dd",
    # Links and media
    "a", "img", "figure", "figcaption",
    # Tables
    "table", "caption", "thead", "tbody", "tfoot", "tr", "td", "th",
    # Code
    "code", "pre", "blockquote",
    # Semantic
    "article", "section", "aside", "header", "footer", "main", "nav",
    # Other safe elements
    "hr", "small", "sub", "sup", "mark", "del", "ins", "abbr", "cite",
    "q", "dfn", "time", "kbd", "samp", "var", "details", "summary", "s",
})

# Inert containers: the tag goes, its (sanitized) content stays.
UNWRAP_TAGS = frozenset({
    "html", "body", "font", "center", "big", "tt", "nobr", "label",
})

GLOBAL_ATTRIBUTES = frozenset({"class", "id", "style"})

ALLOWED_ATTRIBUTES = {
    "a": frozenset({"href", "title", "target", "rel"}),
    "img": frozenset({"src", "alt", "title", "width", "height"}),
    "blockquote": frozenset({"cite"}),
    "q": frozenset({"cite"}),
    "time": frozenset({"datetime"}),
    "abbr": frozenset({"title"}),
    "dfn": frozenset({"title"}),
    "th": frozenset({"scope", "colspan", "rowspan"}),
    "td": frozenset({"colspan", "rowspan"}),
    "details": frozenset({"open"}),
    "ol": frozenset({"start", "type"}),
}

ALLOWED_PROTOCOLS = frozenset({"http", "https", "mailto", "tel"})

ALLOWED_STYLES = frozenset({
    "color", "background-color", "font-size", "font-family", "font-weight",
    "font-style", "text-align", "text-decoration", "margin", "padding",
    "border", "width", "height", "display", "float", "clear",
})

ALLOWED_TARGETS = frozenset({"_blank", "_self", "_parent", "_top"})
ALLOWED_RELS = frozenset({"nofollow", "noopener", "noreferrer", "alternate", "canonical"})
ALLOWED_SCOPES = frozenset({"row", "col", "rowgroup", "colgroup"})

URL_ATTRIBUTES = frozenset({"href", "src", "cite"})

# Checked after whitespace is squashed out of the declaration value
STYLE_BLOCKLIST = (
    "expression(", "@import", "javascript", "vbscript",
    "behavior:", "binding:", "url(", "\\", "/*",
)

_CONTROL_RE = re.compile(r"[\x00-\x20\x7f]+")
_SCHEME_RE = re.compile(r"^([a-z][a-z0-9+.\-]*):")
_CLASS_ID_RE = re.compile(r"[^A-Za-z0-9_\- ]")
_DIMENSION_RE = re.compile(r"^\d{1,4}%?$")
_INTEGER_RE = re.compile(r"^\d{1,4}$")
_WHITESPACE_RE = re.compile(r"\s+")

_DROPPED_NODES = (Comment, Doctype, Declaration, ProcessingInstruction, CData)


# ============================================================
# ATTRIBUTE VALUES
# ============================================================

def _is_dangerous_scheme(value: str, allow_data: bool = False) -> bool:
    """True for javascript:/vbscript: values, and data: unless allowed.

    Browsers ignore embedded whitespace and control characters in a
    scheme, so those are removed before comparing.
    """
    compact = _CONTROL_RE.sub("", value).lower()
    if compact.startswith(("javascript:", "vbscript:")):
        return True
    if compact.startswith("data:"):
        return not allow_data
    return False


def _clean_url(url: str, allow_data_image: bool = False) -> Optional[str]:
    url = url.strip()
    compact = _CONTROL_RE.sub("", url).lower()

    if compact.startswith("data:"):
        # Raster images only, svg can carry script
        if allow_data_image and compact.startswith("data:image/") and not compact.startswith("data:image/svg"):
            return url
        return None

    match = _SCHEME_RE.match(compact)
    if match and match.group(1) not in ALLOWED_PROTOCOLS:
        return None
    return url


def _clean_style(style: str) -> Optional[str]:
    kept = []
    for declaration in style.split(";"):
        prop, sep, value = declaration.partition(":")
        if not sep:
            continue
        prop = prop.strip().lower()
        value = value.strip()
        if not prop or not value or prop not in ALLOWED_STYLES:
            continue
        squashed = _WHITESPACE_RE.sub("", value.lower())
        if any(bad in squashed for bad in STYLE_BLOCKLIST):
            continue
        kept.append(f"{prop}: {value}")
    return "; ".join(kept) or None


def _clean_attribute_value(
    tag_name: str,
    attr: str,
    value: str,
    allow_data_images: bool,
) -> Optional[str]:
    """Return the sanitized value, or None to drop the attribute."""
    allow_data = allow_data_images and tag_name == "img" and attr == "src"
    if _is_dangerous_scheme(value, allow_data=allow_data):
        return None

    if attr in URL_ATTRIBUTES:
        return _clean_url(value, allow_data_image=allow_data)
    if attr == "style":
        return _clean_style(value)
    if attr in ("class", "id"):
        cleaned = _WHITESPACE_RE.sub(" ", _CLASS_ID_RE.sub("", value)).strip()
        return cleaned or None
    if attr == "target":
        return value if value in ALLOWED_TARGETS else None
    if attr == "rel":
        rels = [r for r in value.lower().split() if r in ALLOWED_RELS]
        return " ".join(rels) or None
    if attr in ("width", "height"):
        return value.strip() if _DIMENSION_RE.match(value.strip()) else None
    if attr in ("colspan", "rowspan", "start"):
        return value.strip() if _INTEGER_RE.match(value.strip()) else None
    if attr == "scope":
        return value.lower() if value.lower() in ALLOWED_SCOPES else None
    return value


def _clean_attributes(tag: Tag, allow_data_images: bool):
    allowed = ALLOWED_ATTRIBUTES.get(tag.name, frozenset()) | GLOBAL_ATTRIBUTES
    cleaned: dict[str, str] = {}
    for name, value in tag.attrs.items():
        name = name.lower()
        # Event handlers never survive, whatever the allow list says
        if name.startswith("on") or name not in allowed:
            continue
        if isinstance(value, list):
            value = " ".join(value)
        safe = _clean_attribute_value(tag.name, name, value or "", allow_data_images)
        if safe is not None:
            cleaned[name] = safe
    tag.attrs = cleaned


# ============================================================
# TREE WALK
# ============================================================

def _clean_tree(soup: BeautifulSoup, allow_data_images: bool) -> int:
    """Sanitize the parsed tree in place. Returns number of removed elements.

    Iterative so deeply nested input cannot exhaust the recursion limit.
    """
    removed = 0
    stack: list[Tag] = [soup]
    while stack:
        node = stack.pop()
        pending = list(node.children)
        while pending:
            child = pending.pop(0)
            if isinstance(child, _DROPPED_NODES):
                child.extract()
                continue
            if not isinstance(child, Tag):
                continue

            name = (child.name or "").lower()
            if name in ALLOWED_TAGS:
                _clean_attributes(child, allow_data_images)
                stack.append(child)
            elif name in UNWRAP_TAGS:
                grandchildren = list(child.children)
                child.unwrap()
                pending[0:0] = grandchildren
            else:
                child.decompose()
                removed += 1
    return removed


def sanitize_html(html: Optional[str], allow_data_images: bool = False) -> str:
    """Strip executable and unsafe constructs from HTML.

    Args:
        html: Untrusted HTML (a fragment or a whole document).
        allow_data_images: Keep ``data:image/*`` (non-svg) on ``<img src>``.

    Returns:
        Tag-balanced HTML containing only allow-listed tags/attributes.
        Never raises: if sanitizing fails the input is returned unchanged
        and the failure is logged. Callers must still run
        ``validate_html_content`` on the result before persisting it.
    """
    if not html or not isinstance(html, str):
        return ""

    try:
        soup = BeautifulSoup(html, "html.parser")
        removed = _clean_tree(soup, allow_data_images)
        result = str(soup).strip()
        if removed:
            logger.debug(f"Sanitizer removed {removed} element(s) ({len(html)} -> {len(result)} chars)")
        return result
    except Exception as e:
        logger.error(f"HTML sanitization failed, returning input unchanged ({len(html)} chars): {type(e).__name__}: {e}")
        return html


# ============================================================
# POST-SANITIZE VALIDATION
# ============================================================

MIN_CONTENT_LENGTH = 10
DEFAULT_MAX_CONTENT_LENGTH = 1_000_000

_HTML_TAG_RE = re.compile(r"<[a-zA-Z][^>]*>")

# Residual-danger check looks at structure only: tag names, event-handler
# attribute names and URL-bearing values. Text and harmless attribute
# values (alt, title) may mention "javascript:" freely.
DANGEROUS_TAGS = frozenset({"script", "iframe", "object", "embed", "form", "style"})


def contains_html_tag(content: str) -> bool:
    return bool(content) and bool(_HTML_TAG_RE.search(content))


def _has_dangerous_markup(html: str) -> bool:
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup.find_all(True):
        if tag.name in DANGEROUS_TAGS:
            return True
        for name, value in tag.attrs.items():
            if name.startswith("on"):
                return True
            if name in URL_ATTRIBUTES and isinstance(value, str):
                compact = _CONTROL_RE.sub("", value).lower()
                if _is_dangerous_scheme(compact, allow_data=True) or compact.startswith("data:text/html"):
                    return True
    return False


def validate_html_content(html: str, max_length: int = DEFAULT_MAX_CONTENT_LENGTH) -> list[str]:
    """Check size and residual danger of (sanitized) HTML.

    Returns:
        List of problems; empty when the content is acceptable.
    """
    errors: list[str] = []
    if not html or not html.strip():
        return ["Content is empty"]

    if len(html) < MIN_CONTENT_LENGTH:
        errors.append(f"Content is too short (minimum {MIN_CONTENT_LENGTH} characters)")
    if len(html) > max_length:
        errors.append(f"Content is too long (maximum {max_length} characters)")
    if not contains_html_tag(html):
        errors.append("Content does not appear to be HTML")

    if _has_dangerous_markup(html):
        errors.append("Content contains potentially dangerous HTML")

    return errors
