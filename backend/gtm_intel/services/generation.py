"""
Generation Step Executor.

One call to the external reasoning service: a role (system message) and a
prompt (user message) in, one parsed JSON value out. Retry policy, if any,
belongs to the caller.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any

import openai

from ..core.config import Settings
from ..core.errors import ParseError, UpstreamCallError
from .llm import limit_llm_concurrency

logger = logging.getLogger(__name__)

# ```json ... ``` or ``` ... ```
_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*([\s\S]*?)```")

# Raw text kept on ParseError for diagnostics
MAX_RAW_TEXT_CHARS = 20000


def parse_structured_text(raw: str) -> Any:
    """
    Parse model output as JSON.

    Accepts plain JSON, JSON wrapped in a Markdown code fence, and a single
    top-level object/array surrounded by prose. Raises ParseError otherwise.
    """
    text = (raw or "").strip()
    if not text:
        raise ParseError("Empty response from reasoning service", raw_text=raw)

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    fence = _FENCE_RE.search(text)
    if fence:
        try:
            return json.loads(fence.group(1).strip())
        except json.JSONDecodeError:
            pass

    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = text.find(open_ch)
        end = text.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(text[start : end + 1])
            except json.JSONDecodeError:
                continue

    raise ParseError(
        "Reasoning service response was not valid JSON",
        raw_text=text[:MAX_RAW_TEXT_CHARS],
    )


class GenerationStepExecutor:
    """
    Executes a single generation request.

    - Transport/auth failures surface as UpstreamCallError.
    - Unparseable output surfaces as ParseError carrying the raw text.
    """

    def __init__(self, client: openai.OpenAI, settings: Settings) -> None:
        self._client = client
        self._settings = settings

    def execute(self, role: str, prompt: str) -> Any:
        try:
            with limit_llm_concurrency(self._settings.LLM_MAX_CONCURRENCY):
                response = self._client.chat.completions.create(
                    model=self._settings.LLM_MODEL,
                    messages=[
                        {"role": "system", "content": role},
                        {"role": "user", "content": prompt},
                    ],
                    temperature=self._settings.LLM_TEMPERATURE,
                    max_tokens=self._settings.LLM_MAX_TOKENS,
                )
        except openai.APIError as e:
            logger.warning(
                "Reasoning service call failed: %s",
                e,
                extra={"step": "generation"},
            )
            raise UpstreamCallError(f"Reasoning service call failed: {e}") from e

        choices = getattr(response, "choices", None) or []
        if not choices:
            raise ParseError("Reasoning service returned no choices", raw_text="")

        raw_text = choices[0].message.content or ""
        return parse_structured_text(raw_text)
