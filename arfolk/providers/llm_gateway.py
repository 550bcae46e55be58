from __future__ import annotations

import logging
import os
import time

import httpx

from arfolk.errors import GenerationError
from arfolk.providers.base import LLMProvider

log = logging.getLogger("arfolk.llm")

DEFAULT_URL = "https://ai.gateway.lovable.dev/v1/chat/completions"


class GatewayProvider(LLMProvider):
    """OpenAI-style chat-completions gateway spoken to over plain HTTP."""

    def __init__(
        self,
        url: str = DEFAULT_URL,
        model: str = "google/gemini-2.5-flash",
        api_key_env: str = "LOVABLE_API_KEY",
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.url = url
        self.model = model
        self.api_key_env = api_key_env
        self.timeout = timeout
        self.transport = transport

    async def generate(
        self, prompt: str, system: str | None = None, temperature: float | None = None
    ) -> str:
        api_key = os.environ.get(self.api_key_env, "")
        if not api_key:
            raise GenerationError(f"{self.api_key_env} is not configured")

        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        body: dict = {"model": self.model, "messages": messages}
        if temperature is not None:
            body["temperature"] = temperature

        log.info("── PROMPT (%s) ──\n%s", self.model, prompt)
        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(
                    self.url,
                    headers={"Authorization": f"Bearer {api_key}"},
                    json=body,
                )
        except httpx.TimeoutException as e:
            raise GenerationError(f"AI gateway timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise GenerationError(f"AI gateway unreachable: {e}") from e

        if resp.is_error:
            log.error("AI gateway error %d: %s", resp.status_code, resp.text)
            raise GenerationError(
                "AI gateway returned an error", status=resp.status_code, body=resp.text,
            )

        try:
            content = resp.json()["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise GenerationError(
                "AI gateway response has no message content",
                status=resp.status_code, body=resp.text,
            ) from e
        if not isinstance(content, str):
            raise GenerationError("AI gateway message content is not text", status=resp.status_code)

        elapsed = time.monotonic() - t0
        log.info("── RESPONSE (%.1fs) ──\n%s", elapsed, content)
        return content

    def name(self) -> str:
        return f"gateway/{self.model}"
