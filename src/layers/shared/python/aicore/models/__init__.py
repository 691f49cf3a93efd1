"""Pydantic models for invocation requests and results."""

from aicore.models.base import BaseModel
from aicore.models.summary import (
    MAX_TEXT_LENGTH,
    MIN_TEXT_LENGTH,
    SummarizeRequest,
    SummarizerConfig,
    SummaryResult,
    SummaryStyle,
    TokenUsage,
)
from aicore.models.translation import (
    TranslationBatchRequest,
    TranslationEntry,
    TranslationFormat,
    TranslationResult,
)

__all__ = [
    "BaseModel",
    "MAX_TEXT_LENGTH",
    "MIN_TEXT_LENGTH",
    "SummarizeRequest",
    "SummarizerConfig",
    "SummaryResult",
    "SummaryStyle",
    "TokenUsage",
    "TranslationBatchRequest",
    "TranslationEntry",
    "TranslationFormat",
    "TranslationResult",
]
