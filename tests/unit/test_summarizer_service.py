"""Tests for the summarizer service."""

import pytest

from aicore.execution.circuit_breaker import CircuitBreakerConfig, CircuitState
from aicore.execution.fault_injection import FaultInjectionHarness, enable_fault_injection
from aicore.execution.retry_policy import RetryPolicy
from aicore.services.summarizer_service import (
    OUTCOME_METRIC,
    RETRY_METRIC,
    UNAVAILABLE_SUMMARY,
    SummarizerService,
    build_fallback_summary,
    build_system_prompt,
)
from aicore.utils.exceptions import (
    FaultInjectedError,
    ProviderTimeoutError,
    UpstreamStatusError,
    ValidationError,
)


@pytest.fixture
def make_service(registry, metrics, retry_engine):
    """Build a SummarizerService wired to test doubles."""

    def _make(provider, **kwargs):
        kwargs.setdefault("breaker_config", CircuitBreakerConfig(key="summarizer:test", failure_threshold=5))
        return SummarizerService(
            provider,
            registry=registry,
            metrics=metrics,
            retry_engine=retry_engine,
            faults=kwargs.pop("faults", FaultInjectionHarness()),
            **kwargs,
        )

    return _make


class TestSummarize:
    """Tests for SummarizerService.summarize."""

    @pytest.mark.asyncio
    async def test_success(self, make_service, provider_factory, metrics, long_text):
        """A successful call returns the model summary and token estimates."""
        provider = provider_factory(["  Hello  "])
        service = make_service(provider)

        result = await service.summarize(long_text, {"style": "detailed", "language": "French"})

        assert result.summary == "Hello"
        assert result.summary_length == 5
        assert result.original_length == len(long_text)
        assert result.tokens_used.output == 2

        system_prompt, user_prompt, json_output = provider.calls[0]
        expected_input = -(-(len(system_prompt) + len(long_text)) // 4)
        assert result.tokens_used.input == expected_input
        assert user_prompt == f"Please summarize the following text: {long_text}"
        assert json_output is False
        assert "Summarize in French" in system_prompt

        outcome = metrics.find(OUTCOME_METRIC)[0]
        assert outcome.labels == {"result": "success", "status": 200, "style": "detailed", "language": "French"}

    @pytest.mark.asyncio
    async def test_minimum_length_text(self, make_service, provider_factory):
        """Text of exactly the minimum length is summarized."""
        service = make_service(provider_factory([" Hello "]))

        result = await service.summarize("a" * 50)

        assert result.summary == "Hello"
        assert result.original_length == 50
        assert result.summary_length == 5
        assert result.tokens_used.output == 2

    @pytest.mark.asyncio
    async def test_persistent_500_falls_back(self, make_service, provider_factory, metrics, sleep, long_text):
        """Three 500s exhaust retries and degrade to the extractive fallback."""
        errors = [UpstreamStatusError("scripted", 500) for _ in range(3)]
        service = make_service(provider_factory(errors))

        result = await service.summarize(long_text)

        assert result.summary
        assert len(result.summary) <= max(100, 200 * 6)
        assert result.summary.startswith("The city council approved a new transit plan on Monday.")

        outcome = metrics.find(OUTCOME_METRIC)[0]
        assert outcome.labels["result"] == "fallback"
        assert outcome.labels["status"] == 500

        retries = metrics.find(RETRY_METRIC)
        assert [r.labels["attempt"] for r in retries] == [1, 2]
        assert sleep.calls == [0.25, 0.5]

    @pytest.mark.asyncio
    async def test_recovers_after_transient_failure(self, make_service, provider_factory, metrics, long_text):
        """A transient failure followed by success returns the real summary."""
        provider = provider_factory([ProviderTimeoutError("scripted", 1000), "Recovered."])
        service = make_service(provider)

        result = await service.summarize(long_text)

        assert result.summary == "Recovered."
        assert len(provider.calls) == 2
        assert metrics.find(RETRY_METRIC)[0].labels["status"] == "unknown"

    @pytest.mark.asyncio
    async def test_client_error_is_not_retried(self, make_service, provider_factory, metrics, long_text):
        """A 400 is terminal and goes straight to the fallback."""
        provider = provider_factory([UpstreamStatusError("scripted", 400)])
        service = make_service(provider)

        result = await service.summarize(long_text)

        assert len(provider.calls) == 1
        assert metrics.find(OUTCOME_METRIC)[0].labels["status"] == 400
        assert result.summary_length == len(result.summary)

    @pytest.mark.asyncio
    async def test_empty_output_counts_as_failure(self, make_service, provider_factory, metrics, long_text):
        """Whitespace-only output is retried as a 502."""
        service = make_service(provider_factory(["   ", "", "\n"]))

        await service.summarize(long_text)

        assert metrics.find(OUTCOME_METRIC)[0].labels == {
            "result": "fallback",
            "status": 502,
            "style": "concise",
            "language": "English",
        }

    @pytest.mark.asyncio
    async def test_open_breaker_degrades_without_calling(
        self, make_service, provider_factory, registry, metrics, long_text
    ):
        """An open breaker yields a fallback and no provider call."""
        provider = provider_factory()
        service = make_service(
            provider, breaker_config=CircuitBreakerConfig(key="summarizer:test", failure_threshold=1)
        )
        service.breaker.record_failure()
        assert service.breaker.state == CircuitState.OPEN

        result = await service.summarize(long_text)

        assert provider.calls == []
        assert result.summary
        assert metrics.find(OUTCOME_METRIC)[0].labels["status"] == 503

    @pytest.mark.asyncio
    async def test_failures_open_breaker(self, make_service, provider_factory, long_text):
        """Each failed attempt counts toward the breaker threshold."""
        errors = [UpstreamStatusError("scripted", 503) for _ in range(3)]
        service = make_service(
            provider_factory(errors),
            breaker_config=CircuitBreakerConfig(key="summarizer:test", failure_threshold=2),
        )

        await service.summarize(long_text)

        assert service.breaker.state == CircuitState.OPEN

    @pytest.mark.asyncio
    async def test_custom_retry_policy_attempts(self, make_service, provider_factory, long_text):
        """The configured attempt count bounds provider calls."""
        provider = provider_factory([UpstreamStatusError("scripted", 500) for _ in range(5)])
        service = make_service(provider, retry_policy=RetryPolicy(attempts=5, initial_delay_ms=0))

        await service.summarize(long_text)

        assert len(provider.calls) == 5


class TestSummarizeValidation:
    """Tests for input validation."""

    @pytest.mark.asyncio
    async def test_short_text_rejected(self, make_service, provider_factory):
        """Text under 50 characters after trimming is rejected."""
        provider = provider_factory()
        service = make_service(provider)

        with pytest.raises(ValidationError):
            await service.summarize("   too short   ")
        assert provider.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "config",
        [{"max_length": 10}, {"max_length": 5000}, {"style": "poetic"}, {"language": ""}],
    )
    async def test_bad_config_rejected(self, make_service, provider_factory, long_text, config):
        """Out-of-range settings raise ValidationError."""
        service = make_service(provider_factory())

        with pytest.raises(ValidationError):
            await service.summarize(long_text, config)

    @pytest.mark.asyncio
    async def test_camel_case_config_accepted(self, make_service, provider_factory, long_text):
        """API-shaped camelCase config keys are accepted."""
        provider = provider_factory()
        service = make_service(provider)

        await service.summarize(long_text, {"maxLength": 120})

        assert "under 120 words" in provider.calls[0][0]


class TestSummarizeFaults:
    """Tests for fault injection checkpoints."""

    @pytest.mark.asyncio
    async def test_before_run_propagates(self, make_service, provider_factory, long_text):
        """before-run fires before any attempt and is not degraded."""
        provider = provider_factory()
        service = make_service(provider, faults=FaultInjectionHarness(["summarizer.before-run"]))

        with pytest.raises(FaultInjectedError):
            await service.summarize(long_text)
        assert provider.calls == []

    @pytest.mark.asyncio
    async def test_retry_attempt_fails_every_attempt(self, make_service, provider_factory, metrics, long_text):
        """retry-attempt fails each attempt, then the fallback is used."""
        provider = provider_factory()
        service = make_service(provider, faults=FaultInjectionHarness(["summarizer.retry-attempt"]))

        result = await service.summarize(long_text)

        assert provider.calls == []
        assert len(metrics.find(RETRY_METRIC)) == 2
        assert metrics.find(OUTCOME_METRIC)[0].labels["status"] == "unknown"
        assert result.summary

    @pytest.mark.asyncio
    async def test_after_run_degrades(self, make_service, provider_factory, metrics, long_text):
        """after-run turns a successful call into a fallback."""
        provider = provider_factory(["Model summary."])
        service = make_service(provider, faults=FaultInjectionHarness(["summarizer.after-run"]))

        result = await service.summarize(long_text)

        assert result.summary != "Model summary."
        assert len(provider.calls) == 1
        assert [r.labels["result"] for r in metrics.find(OUTCOME_METRIC)] == ["fallback"]

    @pytest.mark.asyncio
    async def test_global_fallback_fault_propagates(self, make_service, provider_factory, long_text):
        """A process-wide fallback fault escapes the fallback path."""
        enable_fault_injection("summarizer.fallback")
        service = make_service(provider_factory([UpstreamStatusError("scripted", 400)]))

        with pytest.raises(FaultInjectedError):
            await service.summarize(long_text)


class TestFallbackSummary:
    """Tests for build_fallback_summary."""

    def test_first_three_sentences(self):
        """Only the leading three sentences are kept."""
        text = "One. Two! Three? Four. Five."

        assert build_fallback_summary(text, 200) == "One. Two! Three?"

    def test_cjk_punctuation(self):
        """Full-width sentence terminators split too."""
        assert build_fallback_summary("第一句。 第二句！ 第三句？ 第四句。", 200) == "第一句。 第二句！ 第三句？"

    def test_truncates_to_budget(self):
        """Long text is cut to max(100, max_length * 6) with an ellipsis."""
        text = "word " * 200

        summary = build_fallback_summary(text, 10)

        assert len(summary) <= 100
        assert summary.endswith("…")

    def test_budget_scales_with_max_length(self):
        """A larger max_length allows a longer fallback."""
        text = "x" * 1000

        assert len(build_fallback_summary(text, 100)) == 600

    def test_blank_text(self):
        """Blank text yields the unavailable message."""
        assert build_fallback_summary("   ", 200) == UNAVAILABLE_SUMMARY


class TestSystemPrompt:
    """Tests for build_system_prompt."""

    @pytest.mark.parametrize(
        "style,phrase",
        [
            ("concise", "brief, concise summary"),
            ("detailed", "comprehensive summary"),
            ("bullet-points", "bullet points"),
        ],
    )
    def test_style_instructions(self, style, phrase):
        """Each style adds its instruction."""
        assert phrase in build_system_prompt(200, style, "English")
