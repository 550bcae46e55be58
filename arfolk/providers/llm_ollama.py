from __future__ import annotations

import logging
import time

import httpx

from arfolk.errors import GenerationError
from arfolk.providers.base import LLMProvider

log = logging.getLogger("arfolk.llm")


class OllamaProvider(LLMProvider):
    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "qwen3:8b",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.transport = transport

    async def generate(
        self, prompt: str, system: str | None = None, temperature: float | None = None
    ) -> str:
        log.info("── PROMPT (%s) ──\n%s", self.model, prompt)
        if system:
            log.info("── SYSTEM ──\n%s", system)
        body: dict = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
        }
        if system:
            body["system"] = system
        if temperature is not None:
            body["options"] = {"temperature": temperature}

        t0 = time.monotonic()
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                resp = await client.post(f"{self.base_url}/api/generate", json=body)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPStatusError as e:
            raise GenerationError(
                "Ollama returned an error",
                status=e.response.status_code, body=e.response.text,
            ) from e
        except httpx.HTTPError as e:
            raise GenerationError(f"Ollama unreachable at {self.base_url}: {e}") from e
        except ValueError as e:
            raise GenerationError("Ollama response is not JSON") from e

        response = data.get("response")
        if not isinstance(response, str):
            raise GenerationError("Ollama response has no text")
        elapsed = time.monotonic() - t0
        tokens = data.get("eval_count", "?")
        log.info("── RESPONSE (%.1fs, %s tokens) ──\n%s", elapsed, tokens, response)
        return response

    def name(self) -> str:
        return f"ollama/{self.model}"
