"""Base class for LLM provider adapters.

An adapter turns one logical request into exactly one HTTP POST and maps
the transport outcome into the error taxonomy. Retries and circuit
breaking are the callers' job.
"""

import json
import time
from abc import ABC, abstractmethod
from typing import Any

import httpx
import structlog

from aicore.models.translation import TranslationBatchRequest, TranslationEntry, TranslationResult
from aicore.observability.metrics import MetricsSink, RequestMetric, get_metrics_sink
from aicore.services.response_parser import parse_string_map
from aicore.utils.exceptions import (
    EmptyResponseError,
    ProviderConnectionError,
    ProviderTimeoutError,
    UpstreamStatusError,
)

logger = structlog.get_logger()

DEFAULT_TIMEOUT_MS = 30_000


def build_translation_system_prompt(
    source_locale: str,
    target_locale: str,
    format: str = "plain",
    tone: str | None = None,
) -> str:
    """Build the localization system prompt.

    Args:
        source_locale: Locale of the input text.
        target_locale: Locale to translate into.
        format: Input markup (plain, markdown, html).
        tone: Audience description, defaults to general audiences.

    Returns:
        System prompt text.
    """
    return (
        "You are a professional localization specialist. "
        f"Translate the provided entries from {source_locale} to {target_locale}.\n"
        f"Entries are formatted as {format} text.\n"
        "\n"
        "Output requirements:\n"
        "- Respond with valid JSON only. Use the exact input keys.\n"
        "- Preserve Markdown/HTML tags, emojis, placeholders (e.g. {name}, {{value}}, <b>...</b>).\n"
        "- Keep punctuation, spacing, variables, and array ordering intact.\n"
        f"- Use natural, localized phrasing suitable for {tone or 'general audiences'}.\n"
        "- Do not explain the translation or include additional commentary."
    )


def build_translation_user_prompt(entries: list[TranslationEntry]) -> str:
    """Build the user prompt listing entries as JSON.

    Empty fields are dropped from each entry.
    """
    data = []
    for entry in entries:
        item = {"key": entry.key, "text": entry.text, "description": entry.description}
        data.append({k: v for k, v in item.items() if v is not None and v != ""})

    return (
        "Translate the following entries and respond with JSON mapping keys to translated strings.\n"
        + json.dumps(data, indent=2, ensure_ascii=False)
    )


class ModelProvider(ABC):
    """Abstract base class for LLM providers."""

    name: str = ""

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        http_client: httpx.AsyncClient | None = None,
        metrics: MetricsSink | None = None,
    ):
        """Initialize the provider.

        Args:
            api_key: Provider API key.
            model: Model identifier.
            timeout_ms: Per-request timeout in milliseconds.
            http_client: Shared client; a short-lived one is used per call if None.
            metrics: Metrics sink, defaults to the process sink.
        """
        self.api_key = api_key
        self.model = model
        self.timeout_ms = timeout_ms
        self._http_client = http_client
        self._metrics = metrics
        self.logger = logger.bind(service=f"{self.name}_provider", model=model)

    @property
    def metrics(self) -> MetricsSink:
        return self._metrics or get_metrics_sink()

    @abstractmethod
    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        json_output: bool = False,
    ) -> str:
        """Send one prompt pair and return the model's text.

        Args:
            system_prompt: Instructions for the model.
            user_prompt: The content to act on.
            json_output: Ask the provider for a JSON response.

        Returns:
            Response text, stripped.

        Raises:
            ProviderError: On transport failure, non-2xx status, or no text.
        """

    async def translate_batch(self, request: TranslationBatchRequest) -> list[TranslationResult]:
        """Translate a batch with one provider call.

        Keys missing from the model's output keep their original text.

        Args:
            request: Translation batch.

        Returns:
            One result per entry, in input order.

        Raises:
            ProviderError: If the call fails.
            ResponseParseError: If the output holds no string map.
        """
        text = await self.generate(
            build_translation_system_prompt(
                request.source_locale,
                request.target_locale,
                request.format,
                request.tone,
            ),
            build_translation_user_prompt(request.entries),
            json_output=True,
        )

        parsed = parse_string_map(text)

        missing = [entry.key for entry in request.entries if entry.key not in parsed]
        if missing:
            self.logger.warning("Model omitted translation keys", missing_keys=missing)

        return [
            TranslationResult(key=entry.key, translated_text=parsed.get(entry.key, entry.text))
            for entry in request.entries
        ]

    async def post_json(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
        params: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """POST a JSON body and decode the JSON response.

        Args:
            url: Endpoint URL.
            payload: Request body.
            headers: Extra request headers.
            params: Query parameters.

        Returns:
            Decoded response body.

        Raises:
            ProviderTimeoutError: If the request exceeds the timeout.
            ProviderConnectionError: On any other transport failure.
            UpstreamStatusError: On a non-2xx response.
            EmptyResponseError: If the body is not a JSON object.
        """
        request_headers = {"Content-Type": "application/json", **(headers or {})}
        timeout = self.timeout_ms / 1000
        status: int | None = None
        start = time.perf_counter()

        try:
            if self._http_client is not None:
                response = await self._http_client.post(
                    url, json=payload, headers=request_headers, params=params, timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(url, json=payload, headers=request_headers, params=params)

            status = response.status_code

            if not response.is_success:
                self.logger.warning(
                    "Provider request failed",
                    status=status,
                    body=response.text[:200],
                )
                raise UpstreamStatusError(self.name, status, response.reason_phrase)

            try:
                body = response.json()
            except ValueError as e:
                raise EmptyResponseError(self.name, f"{self.name} API returned invalid JSON: {e}") from e

            if not isinstance(body, dict):
                raise EmptyResponseError(self.name, f"{self.name} API returned a non-object body")

            self.logger.debug("Provider request succeeded", status=status)
            return body

        except httpx.TimeoutException as e:
            raise ProviderTimeoutError(self.name, self.timeout_ms) from e
        except httpx.TransportError as e:
            raise ProviderConnectionError(self.name, str(e)) from e
        finally:
            self.metrics.record_request_metric(
                RequestMetric(
                    route=self.model,
                    method="POST",
                    status=status if status is not None else 0,
                    duration_ms=(time.perf_counter() - start) * 1000,
                    service=self.name,
                )
            )
