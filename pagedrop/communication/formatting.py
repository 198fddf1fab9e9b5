"""Render submission outcomes as Telegram HTML.

Telegram supports a limited HTML subset (<b>, <i>, <code>, <pre>, <a>);
everything taken from the outcome is escaped before insertion.
"""

import html as _html

from ..submission import OUTCOME_HELP, OUTCOME_SUCCESS, SubmissionOutcome

FEATURE_LABELS = {
    "has_images": "images",
    "has_links": "links",
    "has_code": "code",
    "has_lists": "lists",
}


def _escape(text) -> str:
    return _html.escape(str(text), quote=False)


def format_outcome(outcome: SubmissionOutcome) -> str:
    """Message text for a submission outcome."""
    detail = outcome.detail

    if outcome.kind == OUTCOME_HELP:
        return f"<pre>{_escape(detail.get('message', ''))}</pre>"

    if outcome.kind != OUTCOME_SUCCESS:
        return f"⚠️ {_escape(detail.get('message', 'Submission rejected.'))}"

    url = _html.escape(detail["url"], quote=True)
    lines = [
        f"✅ <b>Published:</b> {_escape(detail['title'])}",
        f'<a href="{url}">{_escape(detail["url"])}</a>',
        "",
        f"<i>{_escape(detail['description'])}</i>",
        "",
        f"📝 {detail['word_count']} words · {detail['reading_time_minutes']} min read · {_escape(detail['content_type'])}",
    ]

    features = [label for key, label in FEATURE_LABELS.items() if detail.get("features", {}).get(key)]
    if features:
        lines.append(f"Contains: {', '.join(features)}")
    if detail.get("tags"):
        lines.append(" ".join(f"#{_escape(t)}" for t in detail["tags"]))
    if detail.get("used_fallback"):
        lines.append("<i>(metadata generated locally, analysis service unavailable)</i>")

    return "\n".join(lines)
