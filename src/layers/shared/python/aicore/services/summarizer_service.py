"""Summarization service with graceful degradation.

A summary request runs through the circuit breaker and retry engine. When
the provider cannot produce a summary (retries exhausted, terminal
error, or breaker open) the service builds an extractive summary from
the leading sentences instead of failing, so callers always get a
SummaryResult.
"""

import math
import re
from dataclasses import replace
from typing import TYPE_CHECKING, Any

import pydantic
import structlog

from aicore.execution.circuit_breaker import (
    CircuitBreaker,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
    get_circuit_breaker_registry,
)
from aicore.execution.fault_injection import FaultInjectionHarness
from aicore.execution.retry_policy import RetryEngine, RetryPolicy, get_retry_policy
from aicore.models.summary import SummarizeRequest, SummarizerConfig, SummaryResult, TokenUsage
from aicore.observability.metrics import MetricsSink, get_metrics_sink
from aicore.utils.exceptions import (
    CircuitBreakerOpenError,
    EmptyResponseError,
    ValidationError,
    extract_status,
)

if TYPE_CHECKING:
    from aicore.providers.base import ModelProvider

logger = structlog.get_logger()

RETRY_METRIC = "ai.summarizer.retry"
OUTCOME_METRIC = "ai.summarizer.outcome"

FALLBACK_SENTENCES = 3
UNAVAILABLE_SUMMARY = "Summary is temporarily unavailable."

_SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?。！？])\s+")

STYLE_INSTRUCTIONS = {
    "concise": "Create a brief, concise summary focusing on the main points.",
    "detailed": "Create a comprehensive summary that covers key details and context.",
    "bullet-points": "Create a summary using bullet points to highlight key information.",
}


def estimate_tokens(text: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(text) / 4)


def build_system_prompt(max_length: int, style: str, language: str) -> str:
    """Build the summarizer system prompt."""
    return (
        f"You are a professional text summarizer. {STYLE_INSTRUCTIONS[style]}\n"
        "\n"
        "Instructions:\n"
        f"- Summarize in {language}\n"
        f"- Keep the summary under {max_length} words\n"
        "- Focus on the most important information\n"
        "- Maintain the original meaning and context\n"
        "- Use clear, readable language\n"
        "- Do not add your own opinions or interpretations\n"
        '- Do not start with phrases like "Here is a summary of the text" '
        f'or "Here is the summary in {language}:"\n'
        "\n"
        "Output only the summary, nothing else."
    )


def build_fallback_summary(text: str, max_length: int) -> str:
    """Build an extractive summary from the leading sentences.

    Args:
        text: Source text.
        max_length: Requested summary length in words.

    Returns:
        Up to the first three sentences, cut to max(100, max_length * 6)
        characters with a trailing ellipsis when truncated.
    """
    trimmed = text.strip()
    if not trimmed:
        return UNAVAILABLE_SUMMARY

    sentences = [s for s in _SENTENCE_BOUNDARY.split(trimmed) if s]
    candidate = " ".join(sentences[:FALLBACK_SENTENCES]) or trimmed

    budget = max(100, max_length * 6)
    if len(candidate) > budget:
        return candidate[: budget - 1].rstrip() + "…"
    return candidate


def is_transient_error(error: Exception) -> bool:
    """Retry when there is no status, or a 5xx/429 status."""
    if isinstance(error, CircuitBreakerOpenError):
        return False

    status = extract_status(error)
    if status is None:
        return True
    return status >= 500 or status == 429


class SummarizerService:
    """Summarize text through a model provider, degrading to extraction."""

    def __init__(
        self,
        provider: "ModelProvider",
        *,
        registry: CircuitBreakerRegistry | None = None,
        metrics: MetricsSink | None = None,
        faults: FaultInjectionHarness | None = None,
        retry_policy: RetryPolicy | None = None,
        breaker_config: CircuitBreakerConfig | None = None,
        retry_engine: RetryEngine | None = None,
    ):
        """Initialize the summarizer service.

        Args:
            provider: Model provider used for generation.
            registry: Circuit breaker registry, defaults to the process registry.
            metrics: Metrics sink, defaults to the process sink.
            faults: Fault injection harness.
            retry_policy: Attempt count and backoff; predicates are set here.
            breaker_config: Breaker settings, keyed summarizer:<provider>.
            retry_engine: Retry engine (tests inject one without real sleeps).
        """
        self.provider = provider
        self._metrics = metrics
        self.faults = faults or FaultInjectionHarness()
        self.retry_policy = retry_policy or get_retry_policy("summarizer")
        self.retry_engine = retry_engine or RetryEngine()

        registry = registry or get_circuit_breaker_registry()
        self.breaker: CircuitBreaker = registry.get(
            breaker_config or CircuitBreakerConfig(key=f"summarizer:{provider.name}")
        )
        self.logger = logger.bind(service="summarizer", provider=provider.name)

    @property
    def metrics(self) -> MetricsSink:
        return self._metrics or get_metrics_sink()

    async def summarize(
        self,
        text: str,
        config: SummarizerConfig | dict[str, Any] | None = None,
    ) -> SummaryResult:
        """Summarize text.

        Args:
            text: Text to summarize (50 to 50,000 characters after trimming).
            config: Optional length, style, and language settings.

        Returns:
            The model's summary, or an extractive fallback.

        Raises:
            ValidationError: If the text or config is out of bounds.
            FaultInjectedError: From the before-run or fallback checkpoints.
        """
        try:
            request = SummarizeRequest.model_validate({"text": (text or "").strip(), "config": config})
        except pydantic.ValidationError as e:
            raise ValidationError.from_pydantic(e) from e

        text = request.text
        settings = request.config or SummarizerConfig()

        system_prompt = build_system_prompt(settings.max_length, settings.style, settings.language)
        user_prompt = f"Please summarize the following text: {text}"
        input_tokens = math.ceil((len(system_prompt) + len(text)) / 4)

        self.faults.maybe_inject("summarizer.before-run")

        try:
            self.breaker.ensure_can_attempt()

            async def run_once() -> str:
                release = self.breaker.before_request()
                try:
                    self.faults.maybe_inject("summarizer.retry-attempt")
                    output = (await self.provider.generate(system_prompt, user_prompt)).strip()
                    if not output:
                        raise EmptyResponseError(self.provider.name)
                    self.breaker.record_success()
                    return output
                except Exception:
                    self.breaker.record_failure()
                    raise
                finally:
                    release()

            def on_retry(error: Exception, attempt: int) -> None:
                self.logger.warning(
                    "Retrying summarize",
                    attempt=attempt,
                    error=str(error),
                    error_class=type(error).__name__,
                )
                self.metrics.record_metric(
                    RETRY_METRIC,
                    1,
                    {
                        "attempt": attempt,
                        "status": extract_status(error) or "unknown",
                        "style": settings.style,
                        "language": settings.language,
                    },
                )

            policy = replace(self.retry_policy, should_retry=is_transient_error, on_retry=on_retry)
            summary = await self.retry_engine.attempt(run_once, policy)

            self.faults.maybe_inject("summarizer.after-run")

        except Exception as e:
            return self._fallback(text, settings, input_tokens, e)

        self.metrics.record_metric(
            OUTCOME_METRIC,
            1,
            {"result": "success", "status": 200, "style": settings.style, "language": settings.language},
        )
        self.logger.debug("Summary generated", summary_length=len(summary))

        return SummaryResult(
            summary=summary,
            original_length=len(text),
            summary_length=len(summary),
            tokens_used=TokenUsage(input=input_tokens, output=estimate_tokens(summary)),
        )

    def _fallback(
        self,
        text: str,
        settings: SummarizerConfig,
        input_tokens: int,
        error: Exception,
    ) -> SummaryResult:
        status = extract_status(error)
        self.logger.warning(
            "Summarize failed, using extractive fallback",
            error=str(error),
            error_class=type(error).__name__,
            status=status,
        )

        summary = build_fallback_summary(text, settings.max_length)

        self.metrics.record_metric(
            OUTCOME_METRIC,
            1,
            {
                "result": "fallback",
                "status": status if status is not None else "unknown",
                "style": settings.style,
                "language": settings.language,
            },
        )
        self.faults.maybe_inject("summarizer.fallback")

        return SummaryResult(
            summary=summary,
            original_length=len(text),
            summary_length=len(summary),
            tokens_used=TokenUsage(input=input_tokens, output=estimate_tokens(summary)),
        )
