"""End-to-end tests for the submission pipeline (fake store, mocked analysis)."""

import json
import re

import httpx
import pytest
from unittest.mock import AsyncMock, MagicMock, patch

from pagedrop.analyzer import MetadataAnalyzer
from pagedrop.content.extractor import Attachment, InboundMessage
from pagedrop.db.posts import create_post as real_create
from pagedrop.errors import AnalysisTerminalError, DuplicateSlugError
from pagedrop.llm.openai import MetadataClient
from pagedrop.ratelimit import RateLimiter
from pagedrop.submission import (
    OUTCOME_HELP,
    OUTCOME_REJECTED,
    OUTCOME_SUCCESS,
    SubmissionPipeline,
    title_hint,
)

SCRIPT_CASE = "!submit ```html\n<h1>Hello</h1><script>alert(1)</script>\n```"


def _message(text, attachment=None, author_id="u1"):
    return InboundMessage(author_id=author_id, author_name="User One", text=text, attachment=attachment)


def _analyzer(*responses):
    client = MagicMock()
    client.request_metadata = AsyncMock(side_effect=list(responses))
    return MetadataAnalyzer(client)


def _metadata(slug="hello", title="Hello", description="A friendly greeting page."):
    return json.dumps({"slug": slug, "title": title, "description": description})


def _pipeline(settings, analyzer=None, limiter=None, transport=None):
    return SubmissionPipeline(
        settings,
        analyzer=analyzer or _analyzer(_metadata()),
        limiter=limiter or RateLimiter(max_requests=100),
        transport=transport,
    )


class TestSuccess:
    @pytest.mark.asyncio
    async def test_script_is_stripped_and_post_stored(self, settings, fake_db):
        outcome = await _pipeline(settings).submit(_message(SCRIPT_CASE))

        assert outcome.kind == OUTCOME_SUCCESS
        post = outcome.detail["post"]
        assert post.html_content == "<h1>Hello</h1>"
        assert re.fullmatch(r"[a-z0-9-]+", post.slug)
        assert post.author_id == "u1"
        assert outcome.detail["url"] == f"https://pages.test/{post.slug}"
        assert outcome.detail["word_count"] == 1
        assert outcome.detail["reading_time_minutes"] == 1
        assert outcome.detail["content_type"] == "general"
        assert len(fake_db.rows) == 1

    @pytest.mark.asyncio
    async def test_analysis_unreachable_uses_fallback(self, settings, fake_db):
        response = MagicMock()
        response.status_code = 503
        analyzer = MetadataAnalyzer(MetadataClient(api_key="k", base_delay=0))

        with patch("httpx.AsyncClient") as mock_client_cls:
            mock_client = AsyncMock()
            mock_client.post = AsyncMock(return_value=response)
            mock_client.__aenter__ = AsyncMock(return_value=mock_client)
            mock_client.__aexit__ = AsyncMock(return_value=False)
            mock_client_cls.return_value = mock_client

            outcome = await _pipeline(settings, analyzer=analyzer).submit(_message(SCRIPT_CASE))

        assert mock_client.post.call_count == 3
        assert outcome.kind == OUTCOME_SUCCESS
        assert outcome.detail["used_fallback"] is True
        # h1 text is the title hint
        assert outcome.detail["slug"] == "hello"
        assert outcome.detail["title"] == "Hello"
        assert outcome.detail["description"]

    @pytest.mark.asyncio
    async def test_no_api_key_still_publishes(self, settings, fake_db):
        pipeline = SubmissionPipeline(settings, limiter=RateLimiter())
        outcome = await pipeline.submit(_message("!submit `<h1>Quarterly numbers look fine</h1>`"))

        assert outcome.kind == OUTCOME_SUCCESS
        assert outcome.detail["slug"] == "quarterly-numbers-look-fine"
        assert outcome.detail["used_fallback"] is True

    @pytest.mark.asyncio
    async def test_full_document_title_survives_sanitizing(self, settings, fake_db):
        document = (
            "<html><head><title>Trip Report Berlin</title></head>"
            "<body><p>We walked a lot today.</p></body></html>"
        )
        pipeline = SubmissionPipeline(settings, limiter=RateLimiter())

        outcome = await pipeline.submit(_message(f"!submit ```html\n{document}\n```"))

        assert outcome.kind == OUTCOME_SUCCESS
        assert outcome.detail["title"] == "Trip Report Berlin"
        assert outcome.detail["slug"] == "trip-report-berlin"
        assert "<title>" not in outcome.detail["post"].html_content

    @pytest.mark.asyncio
    async def test_existing_slug_gets_counter(self, settings, fake_db):
        fake_db.insert("hello", "Old", "Old", "<p>old</p>", "u0", "Someone")

        outcome = await _pipeline(settings).submit(_message(SCRIPT_CASE))

        assert outcome.kind == OUTCOME_SUCCESS
        assert outcome.detail["slug"] == "hello-1"

    @pytest.mark.asyncio
    async def test_concurrent_claim_is_resolved_once(self, settings, fake_db):
        pipeline = _pipeline(settings)
        calls = []

        async def racing_create(**fields):
            calls.append(fields["slug"])
            if len(calls) == 1:
                # Someone else claims the slug between check and insert
                fake_db.insert(fields["slug"], "Other", "Other", "<p>x</p>", "u9", "Racer")
                raise DuplicateSlugError(fields["slug"])
            return await real_create(**fields)

        with patch("pagedrop.submission.create_post", side_effect=racing_create):
            outcome = await pipeline.submit(_message(SCRIPT_CASE))

        assert outcome.kind == OUTCOME_SUCCESS
        assert calls == ["hello", "hello-1"]

    @pytest.mark.asyncio
    async def test_duplicate_twice_is_rejected(self, settings, fake_db):
        with patch("pagedrop.submission.create_post", AsyncMock(side_effect=DuplicateSlugError("hello"))) as mock_create:
            outcome = await _pipeline(settings).submit(_message(SCRIPT_CASE))

        assert mock_create.call_count == 2
        assert outcome.kind == OUTCOME_REJECTED
        assert outcome.detail["error_kind"] == "DuplicateSlugError"

    @pytest.mark.asyncio
    async def test_attachment_submission(self, settings, fake_db):
        def handler(request):
            return httpx.Response(200, content=b"<article><p>Notes from the trip, day one.</p></article>")

        attachment = Attachment(url="https://files.test/trip_notes.html", name="trip_notes.html", size=60)
        analyzer = MetadataAnalyzer(None)
        pipeline = _pipeline(settings, analyzer=analyzer, transport=httpx.MockTransport(handler))

        outcome = await pipeline.submit(_message("!submit", attachment=attachment))

        assert outcome.kind == OUTCOME_SUCCESS
        # No <title>/<h1>, so the filename stem is the title hint
        assert outcome.detail["slug"] == "trip-notes"
        assert outcome.detail["title"] == "trip notes"


class TestHelp:
    @pytest.mark.asyncio
    async def test_no_content(self, settings, fake_db):
        analyzer = _analyzer()
        outcome = await _pipeline(settings, analyzer=analyzer).submit(_message("!submit please publish this"))

        assert outcome.kind == OUTCOME_HELP
        assert "code block" in outcome.detail["message"]
        assert fake_db.rows == {}
        analyzer.client.request_metadata.assert_not_called()


class TestRejected:
    @pytest.mark.asyncio
    async def test_too_short_after_sanitizing(self, settings, fake_db):
        outcome = await _pipeline(settings).submit(_message("!submit `<b>a</b><script>x()</script>`"))

        assert outcome.kind == OUTCOME_REJECTED
        assert outcome.detail["stage"] == "validate"
        assert "too short" in outcome.detail["message"]
        assert fake_db.rows == {}

    @pytest.mark.asyncio
    async def test_only_script(self, settings, fake_db):
        outcome = await _pipeline(settings).submit(_message("!submit ```html\n<script>alert(1)</script>\n```"))

        assert outcome.kind == OUTCOME_REJECTED
        assert "Content is empty" in outcome.detail["message"]

    @pytest.mark.asyncio
    async def test_too_long(self, settings, fake_db):
        settings.max_content_length = 50
        outcome = await _pipeline(settings).submit(_message("!submit `<p>" + "word " * 40 + "</p>`"))

        assert outcome.kind == OUTCOME_REJECTED
        assert "too long" in outcome.detail["message"]

    @pytest.mark.asyncio
    async def test_download_failure(self, settings, fake_db):
        def handler(request):
            return httpx.Response(500)

        attachment = Attachment(url="https://files.test/a.html?token=SECRET", name="a.html", size=10)
        pipeline = _pipeline(settings, transport=httpx.MockTransport(handler))
        outcome = await pipeline.submit(_message("!submit", attachment=attachment))

        assert outcome.kind == OUTCOME_REJECTED
        assert outcome.detail["stage"] == "extract"
        assert "HTTP 500" in outcome.detail["message"]
        assert "SECRET" not in outcome.detail["message"]

    @pytest.mark.asyncio
    async def test_store_down(self, settings, fake_db):
        import asyncpg
        fake_db.error = asyncpg.InterfaceError("connection refused")

        outcome = await _pipeline(settings).submit(_message(SCRIPT_CASE))

        assert outcome.kind == OUTCOME_REJECTED
        assert outcome.detail["stage"] == "store"
        assert "connection refused" not in outcome.detail["message"]

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, settings, fake_db):
        analyzer = MagicMock()
        analyzer.analyze_content = AsyncMock(side_effect=KeyError("internal detail"))

        outcome = await _pipeline(settings, analyzer=analyzer).submit(_message(SCRIPT_CASE))

        assert outcome.kind == OUTCOME_REJECTED
        assert outcome.detail["message"] == "Something went wrong (KeyError). Check logs for details."

    @pytest.mark.asyncio
    async def test_strict_analysis_error_is_contained(self, settings, fake_db):
        analyzer = MagicMock()
        analyzer.analyze_content = AsyncMock(side_effect=AnalysisTerminalError("HTTP 401 key=abc", status=401))

        outcome = await _pipeline(settings, analyzer=analyzer).submit(_message(SCRIPT_CASE))

        assert outcome.kind == OUTCOME_REJECTED
        assert "abc" not in outcome.detail["message"]

    @pytest.mark.asyncio
    async def test_rate_limited(self, settings, fake_db):
        limiter = RateLimiter(max_requests=1, window_seconds=60)
        pipeline = _pipeline(settings, analyzer=_analyzer(_metadata(), _metadata()), limiter=limiter)

        first = await pipeline.submit(_message(SCRIPT_CASE))
        second = await pipeline.submit(_message(SCRIPT_CASE))

        assert first.kind == OUTCOME_SUCCESS
        assert second.kind == OUTCOME_REJECTED
        assert "Rate limit exceeded" in second.detail["message"]
        assert len(fake_db.rows) == 1


class TestTitleHint:
    def test_prefers_title_then_h1(self):
        assert title_hint("<title>Doc</title><h1>Head</h1>", "file.html") == "Doc"
        assert title_hint("<h1>Head</h1>", "file.html") == "Head"

    def test_filename_stem(self):
        assert title_hint("<p>x</p>", "my_great-page.html") == "my great page"

    def test_nothing(self):
        assert title_hint("<p>x</p>", None) is None
