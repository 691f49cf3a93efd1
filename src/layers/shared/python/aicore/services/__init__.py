"""Invocation services built on the execution layer."""

from aicore.services.response_parser import (
    extract_balanced_object,
    extract_fenced_block,
    parse_string_map,
)
from aicore.services.summarizer_service import SummarizerService, build_fallback_summary
from aicore.services.translation_service import (
    MAX_BATCH_CHARACTERS,
    MAX_BATCH_ENTRIES,
    TranslationService,
    validate_batch,
)

__all__ = [
    # Response parsing
    "extract_balanced_object",
    "extract_fenced_block",
    "parse_string_map",
    # Summarization
    "SummarizerService",
    "build_fallback_summary",
    # Translation
    "MAX_BATCH_CHARACTERS",
    "MAX_BATCH_ENTRIES",
    "TranslationService",
    "validate_batch",
]
