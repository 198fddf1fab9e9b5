"""Plain-text views of HTML: text extraction, counts, feature flags."""

import math
import re
from collections import Counter
from typing import Optional

from bs4 import BeautifulSoup

WORDS_PER_MINUTE = 200
DEFAULT_DESCRIPTION = "User-generated content shared via chat"

_STOPWORDS = frozenset({
    "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
    "by", "is", "are", "was", "were", "be", "been", "have", "has", "had",
    "do", "does", "did", "will", "would", "could", "should", "may", "might",
    "must", "can", "this", "that", "these", "those", "a", "an", "from",
    "your", "you", "they", "their", "there", "what", "when", "which", "into",
})

_SENTENCE_SPLIT_RE = re.compile(r"[.!?]+")
_WHITESPACE_RE = re.compile(r"\s+")
_NON_WORD_RE = re.compile(r"[^\w\s]")


def extract_text(html: str) -> str:
    """Visible text of an HTML string, whitespace collapsed."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for node in soup(["script", "style", "template", "noscript"]):
        node.decompose()
    return _WHITESPACE_RE.sub(" ", soup.get_text(" ")).strip()


def extract_html_title(html: str) -> Optional[str]:
    """Best title hint found in the markup: ``<title>``, else first ``<h1>``."""
    if not html:
        return None
    soup = BeautifulSoup(html, "html.parser")
    for node in (soup.title, soup.find("h1")):
        if node is not None:
            text = _WHITESPACE_RE.sub(" ", node.get_text(" ")).strip()
            if text:
                return text
    return None


def word_count(text: str) -> int:
    return len(text.split())


def reading_time_minutes(text: str) -> int:
    return math.ceil(word_count(text) / WORDS_PER_MINUTE)


def truncate(text: str, limit: int) -> str:
    """Cut ``text`` to ``limit`` chars, marking the cut with an ellipsis."""
    text = text.strip()
    if len(text) <= limit:
        return text
    return text[: limit - 3].rstrip() + "..."


def describe_from_text(text: str, limit: int = 160) -> str:
    """Fallback description: the first sentence longer than 10 chars.

    Known heuristic limitation: list-like or code-heavy content can
    yield a sentence that is not representative.
    """
    text = (text or "").strip()
    if not text:
        return DEFAULT_DESCRIPTION

    for sentence in _SENTENCE_SPLIT_RE.split(text):
        sentence = sentence.strip()
        if len(sentence) > 10:
            return truncate(sentence, limit)

    return truncate(text, limit)


def extract_tags(text: str, limit: int = 5) -> list[str]:
    """Most frequent non-stopword words longer than 3 characters."""
    words = [
        w for w in _NON_WORD_RE.sub("", text.lower()).split()
        if len(w) > 3 and w not in _STOPWORDS
    ]
    return [word for word, _ in Counter(words).most_common(limit)]


def detect_features(html: str) -> dict[str, bool]:
    soup = BeautifulSoup(html or "", "html.parser")
    return {
        "has_images": soup.find("img") is not None,
        "has_links": soup.find("a", href=True) is not None,
        "has_code": soup.find(["pre", "code"]) is not None,
        "has_lists": soup.find(["ul", "ol"]) is not None,
    }
