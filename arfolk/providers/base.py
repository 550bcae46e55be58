from __future__ import annotations

from abc import ABC, abstractmethod


class LLMProvider(ABC):
    @abstractmethod
    async def generate(
        self, prompt: str, system: str | None = None, temperature: float | None = None
    ) -> str:
        """Return the raw completion text.

        Implementations raise ``GenerationError`` for every transport,
        credential or upstream failure.
        """
        ...

    @abstractmethod
    def name(self) -> str:
        ...
