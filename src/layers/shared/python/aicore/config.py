"""Environment-driven configuration and service factories.

Settings are resolved once from an environment mapping and validated up
front, so a missing API key or a malformed number fails at construction
rather than on the first request.

Usage:
    service = create_translation_service_from_env()
    results = await service.translate_batch(request)
"""

import os
from collections.abc import Mapping
from typing import Any, Literal

import httpx
import pydantic
import structlog
from pydantic import BaseModel, ConfigDict, Field

from aicore.execution.circuit_breaker import (
    DEFAULT_FAILURE_THRESHOLD,
    DEFAULT_HALF_OPEN_MAX_CALLS,
    DEFAULT_RECOVERY_TIMEOUT_MS,
    CircuitBreakerConfig,
    CircuitBreakerRegistry,
)
from aicore.execution.fault_injection import FAULT_INJECTION_ENV, FaultInjectionHarness
from aicore.execution.retry_policy import get_retry_policy
from aicore.observability.metrics import MetricsSink, create_metrics_sink
from aicore.providers import DEFAULT_GEMINI_MODEL, DEFAULT_OPENAI_MODEL, create_provider
from aicore.providers.openai import OPENAI_BASE_URL
from aicore.services.summarizer_service import SummarizerService
from aicore.services.translation_service import TranslationService
from aicore.utils.duration import require_duration_ms
from aicore.utils.exceptions import ConfigurationError

logger = structlog.get_logger()

DEFAULT_REQUEST_TIMEOUT_MS = 30_000
DEFAULT_RETRY_ATTEMPTS = 3

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


class CircuitBreakerSettings(BaseModel):
    """Breaker settings shared by every invoker."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    failure_threshold: int = Field(default=DEFAULT_FAILURE_THRESHOLD, ge=1)
    recovery_timeout_ms: int = Field(default=DEFAULT_RECOVERY_TIMEOUT_MS, ge=0)
    half_open_max_calls: int = Field(default=DEFAULT_HALF_OPEN_MAX_CALLS, ge=1)

    def for_key(self, key: str) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            key=key,
            enabled=self.enabled,
            failure_threshold=self.failure_threshold,
            recovery_timeout_ms=self.recovery_timeout_ms,
            half_open_max_calls=self.half_open_max_calls,
        )


class AIServiceConfig(BaseModel):
    """Resolved configuration for providers and invokers."""

    model_config = ConfigDict(frozen=True)

    provider: Literal["gemini", "gpt"] = "gemini"
    gemini_api_key: str | None = None
    gemini_model: str = DEFAULT_GEMINI_MODEL
    openai_api_key: str | None = None
    openai_model: str = DEFAULT_OPENAI_MODEL
    openai_base_url: str = OPENAI_BASE_URL
    request_timeout_ms: int = Field(default=DEFAULT_REQUEST_TIMEOUT_MS, gt=0)
    retry_attempts: int = Field(default=DEFAULT_RETRY_ATTEMPTS, ge=1)
    circuit_breaker: CircuitBreakerSettings = Field(default_factory=CircuitBreakerSettings)
    fault_flags: tuple[str, ...] = ()
    metrics_backend: Literal["memory", "log", "cloudwatch"] = "log"
    metrics_namespace: str = "AICore"

    @classmethod
    def from_env(cls, env: Mapping[str, str] | None = None, **overrides: Any) -> "AIServiceConfig":
        """Resolve configuration from environment variables.

        Args:
            env: Environment mapping, defaults to os.environ.
            **overrides: Field values taking precedence over the environment.

        Returns:
            Validated configuration.

        Raises:
            ConfigurationError: If a value is malformed or the selected
                provider has no API key.
        """
        env = os.environ if env is None else env

        recovery_timeout_ms = require_duration_ms(
            env.get("EXTERNAL_API_RECOVERY_TIMEOUT"), "EXTERNAL_API_RECOVERY_TIMEOUT"
        )
        if recovery_timeout_ms is None:
            seconds = _int_setting(env, "EXTERNAL_API_RECOVERY_TIMEOUT_SECONDS")
            if seconds is not None:
                recovery_timeout_ms = seconds * 1000

        breaker = {
            "enabled": _bool_setting(env, "CIRCUIT_BREAKER_ENABLED"),
            "failure_threshold": _int_setting(env, "EXTERNAL_API_FAILURE_THRESHOLD"),
            "recovery_timeout_ms": recovery_timeout_ms,
            "half_open_max_calls": _int_setting(env, "EXTERNAL_API_HALF_OPEN_MAX_CALLS"),
        }

        values = {
            "provider": _str_setting(env, "TRANSLATION_PROVIDER"),
            "gemini_api_key": _str_setting(env, "GEMINI_API_KEY"),
            "gemini_model": _str_setting(env, "GEMINI_MODEL"),
            "openai_api_key": _str_setting(env, "OPENAI_API_KEY"),
            "openai_model": _str_setting(env, "OPENAI_TRANSLATION_MODEL"),
            "openai_base_url": _str_setting(env, "OPENAI_BASE_URL"),
            "request_timeout_ms": require_duration_ms(env.get("AI_REQUEST_TIMEOUT"), "AI_REQUEST_TIMEOUT"),
            "retry_attempts": _int_setting(env, "EXTERNAL_API_RETRY_ATTEMPTS"),
            "circuit_breaker": {k: v for k, v in breaker.items() if v is not None},
            "fault_flags": tuple(
                flag.strip() for flag in (env.get(FAULT_INJECTION_ENV) or "").split(",") if flag.strip()
            ),
            "metrics_backend": (_str_setting(env, "METRICS_BACKEND") or "").lower() or None,
            "metrics_namespace": _str_setting(env, "METRICS_NAMESPACE"),
        }
        values = {k: v for k, v in values.items() if v is not None}
        values.update(overrides)

        try:
            config = cls.model_validate(values)
        except pydantic.ValidationError as e:
            first = e.errors()[0]
            setting = ".".join(str(loc) for loc in first.get("loc", ()))
            raise ConfigurationError(
                f"Invalid AI service configuration: {setting}: {first.get('msg')}",
                setting=setting,
            ) from e

        config.require_api_key()
        return config

    def require_api_key(self) -> None:
        """Fail fast when the selected provider has no API key."""
        if self.provider == "gemini" and not self.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is required for the gemini provider", "GEMINI_API_KEY")
        if self.provider == "gpt" and not self.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for the gpt provider", "OPENAI_API_KEY")


def _str_setting(env: Mapping[str, str], name: str) -> str | None:
    value = env.get(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def _int_setting(env: Mapping[str, str], name: str) -> int | None:
    value = _str_setting(env, name)
    if value is None:
        return None
    try:
        return int(value)
    except ValueError as e:
        raise ConfigurationError(f"Invalid integer for {name}: {value!r}", setting=name) from e


def _bool_setting(env: Mapping[str, str], name: str) -> bool | None:
    value = _str_setting(env, name)
    if value is None:
        return None
    lowered = value.lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ConfigurationError(f"Invalid boolean for {name}: {value!r}", setting=name)


def _resolve_metrics(config: AIServiceConfig, metrics: MetricsSink | None) -> MetricsSink:
    if metrics is not None:
        return metrics
    return create_metrics_sink(config.metrics_backend, config.metrics_namespace)


def create_translation_service_from_env(
    env: Mapping[str, str] | None = None,
    *,
    registry: CircuitBreakerRegistry | None = None,
    metrics: MetricsSink | None = None,
    http_client: httpx.AsyncClient | None = None,
    **overrides: Any,
) -> TranslationService:
    """Build a TranslationService from environment settings.

    Args:
        env: Environment mapping, defaults to os.environ.
        registry: Circuit breaker registry, defaults to the process registry.
        metrics: Metrics sink, defaults to the configured backend.
        http_client: Optional shared HTTP client for the provider.
        **overrides: AIServiceConfig field overrides.

    Returns:
        Configured TranslationService.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    config = AIServiceConfig.from_env(env, **overrides)
    sink = _resolve_metrics(config, metrics)
    provider = create_provider(config, http_client=http_client, metrics=sink)

    logger.info(
        "Translation service configured",
        provider=provider.name,
        model=provider.model,
        breaker_enabled=config.circuit_breaker.enabled,
    )

    return TranslationService(
        provider,
        registry=registry,
        metrics=sink,
        faults=FaultInjectionHarness(config.fault_flags),
        retry_policy=get_retry_policy("translation", attempts=config.retry_attempts),
        breaker_config=config.circuit_breaker.for_key(f"translation:{provider.name}"),
    )


def create_summarizer_service_from_env(
    env: Mapping[str, str] | None = None,
    *,
    registry: CircuitBreakerRegistry | None = None,
    metrics: MetricsSink | None = None,
    http_client: httpx.AsyncClient | None = None,
    **overrides: Any,
) -> SummarizerService:
    """Build a SummarizerService from environment settings.

    Takes the same arguments as create_translation_service_from_env.
    """
    config = AIServiceConfig.from_env(env, **overrides)
    sink = _resolve_metrics(config, metrics)
    provider = create_provider(config, http_client=http_client, metrics=sink)

    logger.info(
        "Summarizer service configured",
        provider=provider.name,
        model=provider.model,
        breaker_enabled=config.circuit_breaker.enabled,
    )

    return SummarizerService(
        provider,
        registry=registry,
        metrics=sink,
        faults=FaultInjectionHarness(config.fault_flags),
        retry_policy=get_retry_policy("summarizer", attempts=config.retry_attempts),
        breaker_config=config.circuit_breaker.for_key(f"summarizer:{provider.name}"),
    )
