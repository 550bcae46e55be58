"""Fetch a monument, ask the LLM for questions about it and parse the reply."""
from __future__ import annotations

import logging
import sqlite3
from typing import TYPE_CHECKING

from arfolk.config import DEFAULTS
from arfolk.db import row_to_subject
from arfolk.errors import FetchError, GenerationError
from arfolk.models import Difficulty, GenerationRequest, QuizSet, Subject
from arfolk.prompts import build_request, format_system_prompt
from arfolk.quiz_parser import parse_quiz

if TYPE_CHECKING:
    from arfolk.config import Settings
    from arfolk.db import Database
    from arfolk.providers.base import LLMProvider

_log = logging.getLogger("arfolk.qgen")


def _model_kwargs(settings: Settings) -> dict:
    """Pass the configured model on unless it is the gateway's default."""
    if not settings.llm_model or settings.llm_model == DEFAULTS["llm_model"]:
        return {}
    return {"model": settings.llm_model}


def make_llm(settings: Settings) -> LLMProvider:
    if settings.llm_provider == "gateway":
        from arfolk.providers.llm_gateway import GatewayProvider
        return GatewayProvider(
            url=settings.gateway_url,
            model=settings.llm_model,
            api_key_env=settings.gateway_api_key_env,
            timeout=settings.request_timeout,
        )
    elif settings.llm_provider == "ollama":
        from arfolk.providers.llm_ollama import OllamaProvider
        return OllamaProvider(
            base_url=settings.ollama_url,
            timeout=settings.request_timeout,
            **_model_kwargs(settings),
        )
    elif settings.llm_provider == "anthropic":
        from arfolk.providers.llm_anthropic import AnthropicProvider
        return AnthropicProvider(timeout=settings.request_timeout, **_model_kwargs(settings))
    elif settings.llm_provider == "openai":
        from arfolk.providers.llm_openai import OpenAIProvider
        return OpenAIProvider(timeout=settings.request_timeout, **_model_kwargs(settings))
    raise ValueError(f"Unknown LLM provider: {settings.llm_provider}")


def fetch_subject(db: Database, subject_id: str) -> Subject:
    if not subject_id:
        raise FetchError("no monument id given")
    try:
        row = db.get_monument(subject_id)
    except sqlite3.Error as e:
        raise FetchError(f"could not read monument {subject_id!r}: {e}") from e
    if row is None:
        raise FetchError(f"monument {subject_id!r} not found")
    return row_to_subject(row)


class GenerationGateway:
    """The single network boundary of the quiz pipeline."""

    def __init__(self, llm: LLMProvider):
        self.llm = llm

    async def generate(self, request: GenerationRequest) -> str:
        system = format_system_prompt(request)
        _log.info(
            "Generate %d %s question(s) via %s",
            request.question_count, request.difficulty.value, self.llm.name(),
        )
        try:
            return await self.llm.generate(request.subject_text, system=system)
        except GenerationError as e:
            _log.warning("Generation failed: %s", e)
            raise


async def generate_quiz(
    gateway: GenerationGateway,
    db: Database,
    subject_id: str,
    difficulty: Difficulty | str | None = None,
    question_count: int | None = None,
) -> QuizSet:
    """Run fetch → prompt → generate → parse for one monument."""
    subject = fetch_subject(db, subject_id)
    request = build_request(subject, difficulty, question_count)
    raw = await gateway.generate(request)
    return parse_quiz(raw)
