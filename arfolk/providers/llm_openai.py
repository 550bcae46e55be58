from __future__ import annotations

import os

from arfolk.errors import GenerationError
from arfolk.providers.base import LLMProvider


class OpenAIProvider(LLMProvider):
    def __init__(self, model: str = "gpt-4o-mini", timeout: float = 60.0):
        import openai
        self._openai = openai
        self.client = openai.AsyncOpenAI(
            api_key=os.environ.get("OPENAI_API_KEY", ""),
            timeout=timeout,
        )
        self.model = model

    async def generate(
        self, prompt: str, system: str | None = None, temperature: float | None = None
    ) -> str:
        if not self.client.api_key:
            raise GenerationError("OPENAI_API_KEY is not configured")
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        kwargs = {}
        if temperature is not None:
            kwargs["temperature"] = temperature
        try:
            resp = await self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                **kwargs,
            )
        except self._openai.APIStatusError as e:
            raise GenerationError(
                "OpenAI returned an error", status=e.status_code, body=e.response.text,
            ) from e
        except self._openai.APIError as e:
            raise GenerationError(f"OpenAI request failed: {e}") from e
        if not resp.choices:
            raise GenerationError("OpenAI response has no choices")
        content = resp.choices[0].message.content
        if content is None:
            raise GenerationError("OpenAI response has no message content")
        return content

    def name(self) -> str:
        return f"openai/{self.model}"
