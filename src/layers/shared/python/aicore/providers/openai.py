"""OpenAI chat completions provider."""

from typing import Any

import httpx

from aicore.observability.metrics import MetricsSink
from aicore.providers.base import DEFAULT_TIMEOUT_MS, ModelProvider
from aicore.utils.exceptions import EmptyResponseError

DEFAULT_OPENAI_MODEL = "gpt-4o-mini"
OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIProvider(ModelProvider):
    """OpenAI-compatible /chat/completions adapter."""

    name = "gpt"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_OPENAI_MODEL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        http_client: httpx.AsyncClient | None = None,
        metrics: MetricsSink | None = None,
        base_url: str = OPENAI_BASE_URL,
    ):
        super().__init__(api_key, model, timeout_ms, http_client, metrics)
        self.base_url = base_url.rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/chat/completions"

    def build_payload(self, system_prompt: str, user_prompt: str, json_output: bool) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "model": self.model,
            "temperature": 0.2,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if json_output:
            payload["response_format"] = {"type": "json_object"}
        return payload

    async def generate(
        self,
        system_prompt: str,
        user_prompt: str,
        *,
        json_output: bool = False,
    ) -> str:
        body = await self.post_json(
            self.endpoint,
            self.build_payload(system_prompt, user_prompt, json_output),
            headers={"Authorization": f"Bearer {self.api_key}"},
        )
        text = extract_text(body)
        if not text:
            raise EmptyResponseError(self.name)
        return text


def extract_text(body: dict[str, Any]) -> str:
    """Get the first choice's message content."""
    choices = body.get("choices") or []
    if not choices:
        return ""

    message = choices[0].get("message") or {}
    return (message.get("content") or "").strip()
