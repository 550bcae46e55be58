from __future__ import annotations

import os

from arfolk.errors import GenerationError
from arfolk.providers.base import LLMProvider


class AnthropicProvider(LLMProvider):
    def __init__(self, model: str = "claude-sonnet-4-20250514", timeout: float = 60.0):
        import anthropic
        self._anthropic = anthropic
        self.client = anthropic.AsyncAnthropic(
            api_key=os.environ.get("ANTHROPIC_API_KEY", ""),
            timeout=timeout,
        )
        self.model = model

    async def generate(
        self, prompt: str, system: str | None = None, temperature: float | None = None
    ) -> str:
        if not self.client.api_key:
            raise GenerationError("ANTHROPIC_API_KEY is not configured")
        kwargs = {}
        if system:
            kwargs["system"] = system
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            message = await self.client.messages.create(
                model=self.model,
                max_tokens=4096,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except self._anthropic.APIStatusError as e:
            raise GenerationError(
                "Anthropic returned an error", status=e.status_code, body=e.response.text,
            ) from e
        except self._anthropic.APIError as e:
            raise GenerationError(f"Anthropic request failed: {e}") from e
        return "".join(block.text for block in message.content if block.type == "text")

    def name(self) -> str:
        return f"anthropic/{self.model}"
