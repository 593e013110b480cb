from __future__ import annotations

from contextlib import contextmanager
from threading import BoundedSemaphore, Lock

from openai import OpenAI

from ..core.config import Settings
from ..core.errors import ConfigurationError

_llm_semaphore: BoundedSemaphore | None = None
_semaphore_lock = Lock()


def _get_semaphore(max_concurrency: int) -> BoundedSemaphore:
    """
    Lazy-initialised global semaphore for limiting concurrent LLM calls.
    The first caller fixes the bound for the process.
    """
    global _llm_semaphore
    with _semaphore_lock:
        if _llm_semaphore is None:
            _llm_semaphore = BoundedSemaphore(max(1, max_concurrency))
    return _llm_semaphore


@contextmanager
def limit_llm_concurrency(max_concurrency: int):
    """
    Simple context manager to bound concurrent calls to the LLM provider.

    Usage:

        with limit_llm_concurrency(settings.LLM_MAX_CONCURRENCY):
            client.chat.completions.create(...)

    Use inside the thread that actually performs the HTTP request.
    """
    sem = _get_semaphore(max_concurrency)
    sem.acquire()
    try:
        yield
    finally:
        sem.release()


def build_llm_client(settings: Settings) -> OpenAI:
    """
    Factory for the OpenAI‑compatible client used by the generation executor.

    - If OPENROUTER_API_KEY is set, route requests via OpenRouter.
    - Otherwise, fall back to the standard OpenAI API using OPENAI_API_KEY.

    Build it once per process and pass it by reference.
    """
    if settings.OPENROUTER_API_KEY:
        return OpenAI(
            base_url="https://openrouter.ai/api/v1",
            api_key=settings.OPENROUTER_API_KEY.strip(),
            default_headers={
                "HTTP-Referer": settings.FRONTEND_ORIGIN or "http://localhost:3000",
                "X-Title": "GTM Intel",
            },
        )

    if settings.OPENAI_API_KEY:
        return OpenAI(api_key=settings.OPENAI_API_KEY.strip())

    raise ConfigurationError(
        "No LLM API key configured. Set either OPENAI_API_KEY or OPENROUTER_API_KEY."
    )
