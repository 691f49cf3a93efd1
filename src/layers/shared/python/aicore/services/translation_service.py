"""Batch translation service.

Translation has no safe local fallback for arbitrary UI strings, so a
batch that still fails after retries surfaces as a TranslationError
carrying the cause and whether a later retry may succeed.
"""

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
from aicore.models.translation import TranslationBatchRequest, TranslationResult
from aicore.observability.metrics import MetricsSink, get_metrics_sink
from aicore.utils.exceptions import (
    CircuitBreakerOpenError,
    TranslationError,
    ValidationError,
    extract_status,
)

if TYPE_CHECKING:
    from aicore.providers.base import ModelProvider

logger = structlog.get_logger()

MAX_BATCH_ENTRIES = 50
MAX_BATCH_CHARACTERS = 20_000

RETRY_METRIC = "ai.translation.retry"
OUTCOME_METRIC = "ai.translation.outcome"


def validate_batch(request: TranslationBatchRequest) -> None:
    """Check batch limits before any provider call.

    Args:
        request: Translation batch.

    Raises:
        ValidationError: If the batch has too many entries, too many
            characters, or duplicate keys.
    """
    errors = []

    if len(request.entries) > MAX_BATCH_ENTRIES:
        errors.append(
            {
                "field": "entries",
                "message": f"Batch has {len(request.entries)} entries; maximum is {MAX_BATCH_ENTRIES}",
            }
        )

    characters = request.character_count
    if characters > MAX_BATCH_CHARACTERS:
        errors.append(
            {
                "field": "entries",
                "message": f"Batch has {characters} characters; maximum is {MAX_BATCH_CHARACTERS}",
            }
        )

    seen: set[str] = set()
    duplicates: list[str] = []
    for entry in request.entries:
        if entry.key in seen and entry.key not in duplicates:
            duplicates.append(entry.key)
        seen.add(entry.key)
    if duplicates:
        errors.append({"field": "entries.key", "message": f"Duplicate keys: {', '.join(duplicates)}"})

    if errors:
        raise ValidationError(message="Invalid translation batch", errors=errors)


def is_retriable(error: Exception) -> bool:
    """Retry errors flagged retriable, except breaker rejections."""
    if isinstance(error, CircuitBreakerOpenError):
        return False
    return bool(getattr(error, "retriable", False))


class TranslationService:
    """Translate UI string batches through a model provider."""

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
        self.provider = provider
        self._metrics = metrics
        self.faults = faults or FaultInjectionHarness()
        self.retry_policy = retry_policy or get_retry_policy("translation")
        self.retry_engine = retry_engine or RetryEngine()

        registry = registry or get_circuit_breaker_registry()
        self.breaker: CircuitBreaker = registry.get(
            breaker_config or CircuitBreakerConfig(key=f"translation:{provider.name}")
        )
        self.logger = logger.bind(service="translation", provider=provider.name)

    @property
    def metrics(self) -> MetricsSink:
        return self._metrics or get_metrics_sink()

    async def translate_batch(
        self,
        request: TranslationBatchRequest | dict[str, Any],
    ) -> list[TranslationResult]:
        """Translate a batch of entries.

        Args:
            request: Batch request, or its dict form.

        Returns:
            Exactly one result per entry, in input order. Keys the model
            omitted keep their source text.

        Raises:
            ValidationError: If the batch is malformed or over the limits.
            TranslationError: If the batch fails after retries.
            FaultInjectedError: From the before-run checkpoint.
        """
        if not isinstance(request, TranslationBatchRequest):
            try:
                request = TranslationBatchRequest.model_validate(request)
            except pydantic.ValidationError as e:
                raise ValidationError.from_pydantic(e) from e

        if not request.entries:
            return []

        validate_batch(request)

        labels = {
            "source": request.source_locale,
            "target": request.target_locale,
            "provider": self.provider.name,
        }

        self.faults.maybe_inject("translation.before-run")

        async def run_once() -> list[TranslationResult]:
            release = self.breaker.before_request()
            try:
                self.faults.maybe_inject("translation.retry-attempt")
                results = await self.provider.translate_batch(request)
                self.breaker.record_success()
                return results
            except Exception:
                self.breaker.record_failure()
                raise
            finally:
                release()

        def on_retry(error: Exception, attempt: int) -> None:
            self.logger.warning(
                "Retrying translation batch",
                attempt=attempt,
                error=str(error),
                error_class=type(error).__name__,
                entries=len(request.entries),
            )
            self.metrics.record_metric(
                RETRY_METRIC,
                1,
                {**labels, "attempt": attempt, "status": extract_status(error) or "unknown"},
            )

        policy = replace(self.retry_policy, should_retry=is_retriable, on_retry=on_retry)

        try:
            self.breaker.ensure_can_attempt()
            results = await self.retry_engine.attempt(run_once, policy)
        except Exception as e:
            status = extract_status(e)
            self.metrics.record_metric(
                OUTCOME_METRIC,
                1,
                {**labels, "result": "error", "status": status if status is not None else "unknown"},
            )
            self.logger.error(
                "Translation batch failed",
                error=str(e),
                error_class=type(e).__name__,
                entries=len(request.entries),
            )
            raise TranslationError(
                "Failed to translate batch after retries",
                retriable=bool(getattr(e, "retriable", False)),
            ) from e

        self.faults.maybe_inject("translation.after-run")

        self.metrics.record_metric(OUTCOME_METRIC, 1, {**labels, "result": "success", "status": 200})
        self.logger.info("Translation batch completed", entries=len(results))

        return self._align(request, results)

    @staticmethod
    def _align(request: TranslationBatchRequest, results: list[TranslationResult]) -> list[TranslationResult]:
        """One result per entry, in entry order."""
        by_key = {result.key: result.translated_text for result in results}
        return [
            TranslationResult(key=entry.key, translated_text=by_key.get(entry.key, entry.text))
            for entry in request.entries
        ]
