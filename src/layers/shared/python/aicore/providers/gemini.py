"""Google Gemini provider."""

from typing import Any

import httpx

from aicore.observability.metrics import MetricsSink
from aicore.providers.base import DEFAULT_TIMEOUT_MS, ModelProvider
from aicore.utils.exceptions import EmptyResponseError

DEFAULT_GEMINI_MODEL = "gemini-1.5-pro-latest"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(ModelProvider):
    """Gemini generateContent adapter."""

    name = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        timeout_ms: int = DEFAULT_TIMEOUT_MS,
        http_client: httpx.AsyncClient | None = None,
        metrics: MetricsSink | None = None,
        base_url: str = GEMINI_BASE_URL,
    ):
        # Accept "models/<id>" as well as the bare id
        if model.startswith("models/"):
            model = model[len("models/"):]
        super().__init__(api_key, model, timeout_ms, http_client, metrics)
        self.base_url = base_url.rstrip("/")

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    def build_payload(self, system_prompt: str, user_prompt: str, json_output: bool) -> dict[str, Any]:
        generation_config: dict[str, Any] = {"temperature": 0.1}
        if json_output:
            generation_config["responseMimeType"] = "application/json"

        return {
            "systemInstruction": {"parts": [{"text": system_prompt}]},
            "contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
            "generationConfig": generation_config,
        }

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
            params={"key": self.api_key},
        )
        text = extract_text(body)
        if not text:
            raise EmptyResponseError(self.name)
        return text


def extract_text(body: dict[str, Any]) -> str:
    """Join the text parts of the first candidate."""
    candidates = body.get("candidates") or []
    if not candidates:
        return ""

    content = candidates[0].get("content") or {}
    parts = content.get("parts") or []
    return "".join(part.get("text") or "" for part in parts).strip()
