"""Recover a validated question set from free-text generator output.

The generator is asked for a bare JSON array but routinely wraps it in
prose or code fences.  Extraction first tries the widest span from the
first ``[`` to the last ``]``; when that span does not decode (prose after
the array containing brackets, say), each balanced top-level array found
by a string-aware scan is tried in order.

Items are validated one by one.  Structurally broken items are dropped and
logged; only when nothing usable remains does parsing fail.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Iterator

from arfolk.errors import EmptySetError, ParseError
from arfolk.models import OPTION_COUNT, QuizQuestion, QuizSet

_log = logging.getLogger("arfolk.parser")


def _greedy_span(text: str) -> str | None:
    start = text.find("[")
    end = text.rfind("]")
    if start < 0 or end < start:
        return None
    return text[start : end + 1]


def _find_json_arrays(text: str) -> list[str]:
    """Find outermost balanced ``[…]`` substrings in *text*, ignoring string contents.

    Single pass over *text*.  An opening bracket that never closes does not
    hide balanced arrays after it.
    """
    stack: list[int] = []
    closed: list[tuple[int, int]] = []
    in_str = False
    escape = False
    for j, ch in enumerate(text):
        if in_str:
            if escape:
                escape = False
            elif ch == "\\":
                escape = True
            elif ch == '"':
                in_str = False
            continue
        if ch == '"' and stack:
            in_str = True
        elif ch == "[":
            stack.append(j)
        elif ch == "]" and stack:
            closed.append((stack.pop(), j))

    results: list[str] = []
    last_end = -1
    for start, end in sorted(closed):
        if start > last_end:
            results.append(text[start : end + 1])
            last_end = end
    return results


def _decode_array(span: str) -> list | None:
    try:
        value = json.loads(span)
    except (json.JSONDecodeError, RecursionError):
        return None
    return value if isinstance(value, list) else None


def _candidate_arrays(text: str) -> Iterator[list]:
    """Yield decoded arrays from *text*, widest span first.

    The bracket scan only runs when the widest span is not enough.
    """
    greedy = _greedy_span(text)
    if greedy is None:
        return
    value = _decode_array(greedy)
    if value is not None:
        yield value
    for span in _find_json_arrays(text):
        if span == greedy:
            continue
        value = _decode_array(span)
        if value is not None:
            yield value


def _validate_item(item) -> str | None:
    """Return ``None`` if *item* is a usable question, else the reason it is not.

    May patch *item* in place (string indices, missing explanation).
    """
    if not isinstance(item, dict):
        return f"expected object, got {type(item).__name__}"

    question = item.get("question")
    if not isinstance(question, str) or not question.strip():
        return "question missing or empty"

    options = item.get("options")
    if not isinstance(options, list) or len(options) != OPTION_COUNT:
        n = len(options) if isinstance(options, list) else type(options).__name__
        return f"options must be list of {OPTION_COUNT} (got {n})"
    if not all(isinstance(o, str) and o.strip() for o in options):
        return "options must be non-empty strings"

    # Coerce correctAnswer from string to int (common LLM mistake)
    ci = item.get("correctAnswer")
    if isinstance(ci, str) and ci.strip().isdigit():
        item["correctAnswer"] = int(ci.strip())
        ci = item["correctAnswer"]
    if isinstance(ci, bool) or not isinstance(ci, int):
        return f"correctAnswer not an int (got {type(ci).__name__}: {ci!r})"
    if ci < 0 or ci >= OPTION_COUNT:
        return f"correctAnswer out of range: {ci}"

    explanation = item.get("explanation")
    if explanation is None:
        item["explanation"] = ""
    elif not isinstance(explanation, str):
        return f"explanation not text (got {type(explanation).__name__})"
    return None


def _build_set(items: list) -> tuple[QuizSet, list[str]]:
    questions: list[QuizQuestion] = []
    dropped: list[str] = []
    for i, item in enumerate(items):
        reason = _validate_item(item)
        if reason:
            dropped.append(f"item {i}: {reason}")
            continue
        questions.append(QuizQuestion(
            prompt=item["question"].strip(),
            options=tuple(o.strip() for o in item["options"]),
            correct_index=item["correctAnswer"],
            explanation=item["explanation"].strip(),
        ))
    return tuple(questions), dropped


def parse_quiz(raw_text: str) -> QuizSet:
    """Parse generator output into an ordered QuizSet.

    Raises ``ParseError`` when no array can be decoded, and
    ``EmptySetError`` when arrays decode but hold no valid question.
    """
    # Reasoning models may emit draft JSON inside <think> blocks
    text = re.sub(r"<think>.*?</think>", "", raw_text or "", flags=re.DOTALL)

    decoded_any = False
    all_dropped: list[str] = []
    for items in _candidate_arrays(text):
        decoded_any = True
        questions, dropped = _build_set(items)
        all_dropped.extend(dropped)
        if questions:
            for d in dropped:
                _log.info("Dropped %s", d)
            _log.info("Parsed %d question(s), dropped %d", len(questions), len(dropped))
            return questions

    if not decoded_any:
        _log.warning("Unparseable quiz output (no JSON array): %.300s", raw_text)
        raise ParseError("generator output contains no JSON array")
    for d in all_dropped:
        _log.info("Dropped %s", d)
    _log.warning("Quiz output held no valid questions: %.300s", raw_text)
    raise EmptySetError("generator output contains no valid questions")
