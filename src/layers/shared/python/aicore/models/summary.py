"""Summarization request and result models."""

from typing import Literal

from pydantic import Field

from aicore.models.base import BaseModel

SummaryStyle = Literal["concise", "detailed", "bullet-points"]

MIN_TEXT_LENGTH = 50
MAX_TEXT_LENGTH = 50_000


class SummarizerConfig(BaseModel):
    """Optional summarization settings."""

    max_length: int = Field(default=200, ge=50, le=1000, description="Word limit for the summary")
    style: SummaryStyle = "concise"
    language: str = Field(default="English", min_length=1, max_length=50)


class SummarizeRequest(BaseModel):
    """Summarization API payload."""

    text: str = Field(..., min_length=MIN_TEXT_LENGTH, max_length=MAX_TEXT_LENGTH)
    config: SummarizerConfig | None = None


class TokenUsage(BaseModel):
    """Estimated token counts (characters / 4)."""

    input: int
    output: int


class SummaryResult(BaseModel):
    """Summary returned to the caller, real or fallback."""

    summary: str
    original_length: int
    summary_length: int
    tokens_used: TokenUsage
