"""Tests for classify_error(): exception to user-facing message."""

import asyncio

import asyncpg
import httpx
import pytest

from pagedrop.communication.errors import classify_error
from pagedrop.errors import (
    AnalysisTerminalError,
    DuplicateSlugError,
    ExtractionError,
    StoreError,
    ValidationError,
)


# ── Pipeline errors ─────────────────────────────────────────

class TestPipelineErrors:
    def test_validation_lists_problems(self):
        msg = classify_error(ValidationError("failed", ["Content is too short", "Content is empty"]))
        assert msg == "Content validation failed: Content is too short, Content is empty"

    def test_validation_without_list(self):
        assert "validation failed" in classify_error(ValidationError("bad"))

    def test_extraction(self):
        assert classify_error(ExtractionError("Failed to download file: HTTP 404")) == (
            "Could not read your HTML: Failed to download file: HTTP 404"
        )

    def test_duplicate_slug(self):
        assert "try again" in classify_error(DuplicateSlugError("hello"))

    def test_analysis_hides_details(self):
        msg = classify_error(AnalysisTerminalError("HTTP 401 Bearer sk-123", status=401))
        assert "sk-123" not in msg
        assert "analysis failed" in msg

    def test_store_error(self):
        msg = classify_error(StoreError("relation posts does not exist"))
        assert "Database error" in msg
        assert "relation" not in msg


# ── Library errors ──────────────────────────────────────────

class TestLibraryErrors:
    def test_asyncpg_interface(self):
        assert "pool" in classify_error(asyncpg.InterfaceError("closed"))

    def test_asyncpg_postgres(self):
        assert classify_error(asyncpg.PostgresError("x")) == "Database error. Please try again later."

    def test_connect_error(self):
        assert "Cannot reach" in classify_error(httpx.ConnectError("refused"))

    @pytest.mark.parametrize("exc", [
        httpx.ReadTimeout("slow"),
        httpx.ConnectTimeout("slow"),
        asyncio.TimeoutError(),
    ])
    def test_timeouts(self, exc):
        assert "timed out" in classify_error(exc)


class TestFallback:
    def test_generic_names_type_only(self):
        msg = classify_error(ValueError("secret internals"))
        assert msg == "Something went wrong (ValueError). Check logs for details."
