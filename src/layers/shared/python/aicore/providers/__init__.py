"""LLM provider adapters.

Usage:
    provider = create_provider(config)
    text = await provider.generate(system_prompt, user_prompt)
"""

from typing import TYPE_CHECKING

import httpx

from aicore.observability.metrics import MetricsSink
from aicore.providers.base import (
    ModelProvider,
    build_translation_system_prompt,
    build_translation_user_prompt,
)
from aicore.providers.gemini import DEFAULT_GEMINI_MODEL, GeminiProvider
from aicore.providers.openai import DEFAULT_OPENAI_MODEL, OpenAIProvider
from aicore.utils.exceptions import ConfigurationError

if TYPE_CHECKING:
    from aicore.config import AIServiceConfig

PROVIDERS: dict[str, type[ModelProvider]] = {
    GeminiProvider.name: GeminiProvider,
    OpenAIProvider.name: OpenAIProvider,
}


def create_provider(
    config: "AIServiceConfig",
    http_client: httpx.AsyncClient | None = None,
    metrics: MetricsSink | None = None,
) -> ModelProvider:
    """Build the adapter selected by the configuration.

    Args:
        config: Resolved service configuration.
        http_client: Optional shared HTTP client.
        metrics: Optional metrics sink.

    Returns:
        Provider instance.

    Raises:
        ConfigurationError: If the provider is unknown or its API key is missing.
    """
    if config.provider == GeminiProvider.name:
        if not config.gemini_api_key:
            raise ConfigurationError("GEMINI_API_KEY is required for the gemini provider", "GEMINI_API_KEY")
        return GeminiProvider(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            timeout_ms=config.request_timeout_ms,
            http_client=http_client,
            metrics=metrics,
        )

    if config.provider == OpenAIProvider.name:
        if not config.openai_api_key:
            raise ConfigurationError("OPENAI_API_KEY is required for the gpt provider", "OPENAI_API_KEY")
        return OpenAIProvider(
            api_key=config.openai_api_key,
            model=config.openai_model,
            timeout_ms=config.request_timeout_ms,
            http_client=http_client,
            metrics=metrics,
            base_url=config.openai_base_url,
        )

    raise ConfigurationError(
        f"Unsupported provider '{config.provider}'; expected one of {sorted(PROVIDERS)}",
        "TRANSLATION_PROVIDER",
    )


__all__ = [
    "DEFAULT_GEMINI_MODEL",
    "DEFAULT_OPENAI_MODEL",
    "GeminiProvider",
    "ModelProvider",
    "OpenAIProvider",
    "PROVIDERS",
    "build_translation_system_prompt",
    "build_translation_user_prompt",
    "create_provider",
]
