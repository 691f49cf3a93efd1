"""Tests for request and result models."""

import pydantic
import pytest

from aicore.models import (
    SummarizeRequest,
    SummarizerConfig,
    SummaryResult,
    TokenUsage,
    TranslationBatchRequest,
    TranslationEntry,
)


class TestSummaryModels:
    """Tests for summarization models."""

    def test_config_defaults(self):
        """Config defaults match the documented values."""
        config = SummarizerConfig()

        assert config.max_length == 200
        assert config.style == "concise"
        assert config.language == "English"

    def test_request_bounds(self):
        """Text must be between 50 and 50,000 characters."""
        with pytest.raises(pydantic.ValidationError):
            SummarizeRequest(text="x" * 49)
        with pytest.raises(pydantic.ValidationError):
            SummarizeRequest(text="x" * 50_001)

        assert SummarizeRequest(text="x" * 50).config is None

    def test_result_serializes_camel_case(self):
        """API output uses camelCase keys."""
        result = SummaryResult(
            summary="Short.",
            original_length=100,
            summary_length=6,
            tokens_used=TokenUsage(input=30, output=2),
        )

        assert result.to_api() == {
            "summary": "Short.",
            "originalLength": 100,
            "summaryLength": 6,
            "tokensUsed": {"input": 30, "output": 2},
        }


class TestTranslationModels:
    """Tests for translation models."""

    def test_character_count(self):
        """Text and description both count."""
        request = TranslationBatchRequest(
            entries=[
                TranslationEntry(key="a", text="abc", description="de"),
                TranslationEntry(key="b", text="f"),
            ],
            source_locale="en",
            target_locale="ja",
        )

        assert request.character_count == 6
        assert request.format == "plain"

    def test_rejects_unknown_format(self):
        """Only plain, markdown, and html formats are accepted."""
        with pytest.raises(pydantic.ValidationError):
            TranslationBatchRequest(entries=[], source_locale="en", target_locale="ja", format="pdf")
