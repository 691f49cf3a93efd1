"""Translation batch models."""

from typing import Literal

from pydantic import Field

from aicore.models.base import BaseModel

TranslationFormat = Literal["plain", "markdown", "html"]


class TranslationEntry(BaseModel):
    """A single UI string to translate."""

    key: str = Field(..., min_length=1, description="Unique within a batch")
    text: str
    description: str | None = Field(default=None, description="Context for translators")

    @property
    def character_count(self) -> int:
        return len(self.text) + len(self.description or "")


class TranslationBatchRequest(BaseModel):
    """A batch of entries to translate between two locales."""

    entries: list[TranslationEntry] = Field(default_factory=list)
    source_locale: str = Field(..., min_length=1)
    target_locale: str = Field(..., min_length=1)
    tone: str | None = None
    format: TranslationFormat = "plain"

    @property
    def character_count(self) -> int:
        """Total characters of every entry's text and description."""
        return sum(entry.character_count for entry in self.entries)


class TranslationResult(BaseModel):
    """Translated text for one entry."""

    key: str
    translated_text: str
